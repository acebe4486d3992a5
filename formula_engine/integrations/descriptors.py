"""
Formula descriptor repository: one JSON file per packaged tool.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..errors import InvalidSpec
from ..models.tool import ToolSpec


class DescriptorRepository:
    """Reads tool descriptors from a formulas directory."""

    def __init__(self, formulas_dir: Path):
        """
        Initialize the repository.

        Args:
            formulas_dir: Directory containing ``<tool>.json`` descriptors
        """
        self.logger = logging.getLogger(__name__)
        self.formulas_dir = Path(formulas_dir)

    def list_names(self) -> List[str]:
        """Names of all descriptors, sorted."""
        if not self.formulas_dir.is_dir():
            return []
        return sorted(p.stem for p in self.formulas_dir.glob("*.json"))

    def load(self, name: str) -> ToolSpec:
        """
        Load the descriptor for ``name``.

        Raises:
            InvalidSpec: The file is missing, is not valid JSON, or fails validation
        """
        path = self.formulas_dir / f"{name}.json"
        if not path.exists():
            raise InvalidSpec(f"No formula for {name!r} in {self.formulas_dir}")

        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise InvalidSpec(f"Formula {path} is not valid JSON: {e}") from e

        spec = ToolSpec.parse(data)
        if spec.name != name:
            raise InvalidSpec(f"Formula {path} declares name {spec.name!r}, expected {name!r}")
        return spec

    def load_all(self, names: Optional[Iterable[str]] = None) -> List[ToolSpec]:
        """Load the given descriptors, or every descriptor in the directory."""
        selected = list(names) if names else self.list_names()
        specs = [self.load(name) for name in selected]
        self.logger.info(f"Loaded {len(specs)} formulas from {self.formulas_dir}")
        return specs
