"""
Completion template rendering and loading.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ..models.tool import CompletionTemplate, ShellFamily


logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER = "tool"
DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def render_template(template: str, token: str, replacement: str) -> str:
    """Replace every occurrence of ``token`` in ``template`` with ``replacement``."""
    if not token:
        raise ValueError("token must not be empty")
    return template.replace(token, replacement)


def template_filename(shell_family: ShellFamily) -> str:
    return f"completions.{shell_family.extension}"


def load_completion_templates(bash_dir: Path,
                              zsh_dir: Path,
                              template_dir: Optional[Path] = None,
                              placeholder: str = DEFAULT_PLACEHOLDER) -> List[CompletionTemplate]:
    """
    Load ``completions.bash`` and ``completions.zsh`` from ``template_dir``.

    Missing files are left out; the installer skips families without a template.

    Args:
        bash_dir: Install target for the bash script
        zsh_dir: Install target for the zsh script
        template_dir: Directory holding the templates, defaults to the bundled ones
        placeholder: Token standing in for the tool name

    Returns:
        Templates in bash, zsh order
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    targets = {ShellFamily.BASH: Path(bash_dir), ShellFamily.ZSH: Path(zsh_dir)}

    templates = []
    for family in (ShellFamily.BASH, ShellFamily.ZSH):
        path = template_dir / template_filename(family)
        if not path.exists():
            logger.debug(f"No {family.value} completion template at {path}")
            continue
        templates.append(CompletionTemplate(
            shell_family=family,
            template_content=path.read_text(),
            install_target_dir=targets[family],
            placeholder=placeholder
        ))
    return templates
