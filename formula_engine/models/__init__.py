"""
Data models for the formula engine.
"""

from .tool import (
    CompletionTemplate,
    LiveRef,
    PipelineState,
    ShellFamily,
    SourceRef,
    ToolSpec,
    VersionedArchive,
)
from .installation import Executable, InstallationResult, PipelineOutcome, SourceTree

__all__ = [
    "CompletionTemplate",
    "LiveRef",
    "PipelineState",
    "ShellFamily",
    "SourceRef",
    "ToolSpec",
    "VersionedArchive",
    "Executable",
    "InstallationResult",
    "PipelineOutcome",
    "SourceTree"
]
