"""
Installs built executables and their rendered completion scripts.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Sequence

from ..errors import InstallError
from ..models.installation import Executable, InstallationResult
from ..models.tool import CompletionTemplate, ShellFamily, ToolSpec
from .templating import render_template


DEFAULT_COMPLETION_PREFIX = "dgtools"


class Installer:
    """Places executables into the binary directory and completions next to them."""

    def __init__(self, bin_dir: Path, completion_prefix: str = DEFAULT_COMPLETION_PREFIX):
        """
        Initialize the installer.

        Args:
            bin_dir: Target directory for executables
            completion_prefix: Organization prefix of completion file names
        """
        self.logger = logging.getLogger(__name__)
        self.bin_dir = Path(bin_dir)
        self.completion_prefix = completion_prefix

    def completion_filename(self, spec: ToolSpec, shell_family: ShellFamily) -> str:
        """File name unique per tool, so tools sharing a completion directory never collide."""
        return f"{self.completion_prefix}.{spec.name}.{shell_family.extension}"

    def install(self, executable: Executable, spec: ToolSpec,
                templates: Sequence[CompletionTemplate]) -> InstallationResult:
        """
        Install ``executable`` and the completion scripts rendered from ``templates``.

        Returns:
            InstallationResult with ``verified`` still False

        Raises:
            InstallError: The binary or a present completion script could not be written,
                or more than one template was given for a shell family
        """
        by_family = self._index_templates(templates)

        binary_path = self._install_binary(executable, spec)

        completion_paths: List[Path] = []
        for family in (ShellFamily.BASH, ShellFamily.ZSH):
            template = by_family.get(family)
            if template is None:
                self.logger.info(f"No {family.value} completion template for {spec.name}, skipping")
                continue
            self.logger.info(f"Installing {family.value} completion for {spec.name}...")
            path = self._install_completion(template, spec)
            completion_paths.append(path)
            if family == ShellFamily.ZSH:
                self.logger.info(
                    f"To enable zsh completion add this to your ~/.zshrc\n\n\tsource {path}\n"
                )

        self.logger.info(f"Installed {spec.name} from {spec.source_path} dir")
        return InstallationResult(
            binary_path=binary_path,
            completion_paths=tuple(completion_paths),
            verified=False
        )

    def _index_templates(self, templates: Sequence[CompletionTemplate]) -> Dict[ShellFamily, CompletionTemplate]:
        by_family: Dict[ShellFamily, CompletionTemplate] = {}
        for template in templates:
            if template.shell_family in by_family:
                raise InstallError(
                    f"More than one {template.shell_family.value} completion template given"
                )
            by_family[template.shell_family] = template
        return by_family

    def _install_binary(self, executable: Executable, spec: ToolSpec) -> Path:
        target = self.bin_dir / spec.name
        try:
            self.bin_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.bin_dir, prefix=f".{spec.name}.")
            os.close(fd)
            try:
                shutil.copyfile(executable.path, tmp_name)
                os.chmod(tmp_name, 0o755)
                os.replace(tmp_name, target)
            finally:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
        except OSError as e:
            raise InstallError(f"Could not install {spec.name} into {self.bin_dir}: {e}") from e

        self.logger.info(f"Installed binary {target}")
        return target

    def _install_completion(self, template: CompletionTemplate, spec: ToolSpec) -> Path:
        rendered = render_template(template.template_content, template.placeholder, spec.name)
        target_dir = Path(template.install_target_dir)
        target = target_dir / self.completion_filename(spec, template.shell_family)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(rendered)
            target.chmod(0o644)
        except OSError as e:
            raise InstallError(
                f"Could not install {template.shell_family.value} completion for {spec.name} "
                f"into {target_dir}: {e}"
            ) from e
        return target
