"""
Pipeline artifact and result models.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .tool import PipelineState


class SourceTree(BaseModel):
    """Local source tree produced by the fetcher."""
    model_config = ConfigDict(frozen=True)

    root: Path = Field(..., description="Root directory of the fetched source")
    trusted: bool = Field(..., description="True when the content was verified against a checksum")
    checksum: Optional[str] = Field(None, description="sha256 of the fetched archive")
    cache_hit: bool = Field(default=False, description="True when no download was needed")


class Executable(BaseModel):
    """Built executable, before installation."""
    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    build_output: str = Field(default="", description="Captured toolchain output")


class InstallationResult(BaseModel):
    """Installed files of one tool."""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "binary_path": "/usr/local/bin/bake",
                "completion_paths": [
                    "/usr/local/etc/bash_completion.d/dgtools.bake.bash",
                    "/usr/local/share/zsh/site-functions/dgtools.bake.zsh"
                ],
                "verified": True
            }
        }
    )

    binary_path: Path = Field(..., description="Installed executable")
    completion_paths: Tuple[Path, ...] = Field(
        default_factory=tuple,
        description="Installed completion scripts, bash before zsh"
    )
    verified: bool = Field(default=False, description="Whether the probe succeeded")


class PipelineOutcome(BaseModel):
    """Outcome of one tool's pipeline run."""
    tool_name: str = Field(..., description="Tool name")
    state: PipelineState = Field(default=PipelineState.PENDING)
    failed_stage: Optional[str] = Field(None, description="Stage that failed, if any")
    error: Optional[str] = Field(None, description="Error message if failed")
    error_output: Optional[str] = Field(None, description="Captured process output of the failing stage")
    result: Optional[InstallationResult] = None
    trusted_source: bool = Field(default=True, description="False for unpinned or live sources")

    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.state == PipelineState.DONE

    def advance(self, state: PipelineState) -> None:
        """Move to the next pipeline state."""
        self.state = state

    def fail(self, stage: str, error: str, output: Optional[str] = None) -> None:
        """Mark the pipeline as failed at ``stage``."""
        self.state = PipelineState.FAILED
        self.failed_stage = stage
        self.error = error
        self.error_output = output

    def complete(self) -> None:
        """Stamp completion time."""
        self.completed_at = datetime.utcnow()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
