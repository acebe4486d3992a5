"""
Core modules for the formula engine.
"""

from .orchestrator import PackagingEngine
from .fetcher import Fetcher
from .builder import Builder
from .installer import Installer
from .verifier import Verifier
from .artifact_manager import ArtifactManager
from .templating import load_completion_templates, render_template

__all__ = [
    "PackagingEngine",
    "Fetcher",
    "Builder",
    "Installer",
    "Verifier",
    "ArtifactManager",
    "load_completion_templates",
    "render_template"
]
