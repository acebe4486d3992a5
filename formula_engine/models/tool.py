"""
Tool-related data models.
"""

import re
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import InvalidSpec


TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")
SHA256_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class PipelineState(str, Enum):
    """State of a single tool's packaging pipeline."""
    PENDING = "pending"
    FETCHED = "fetched"
    BUILT = "built"
    INSTALLED = "installed"
    VERIFIED = "verified"
    DONE = "done"
    FAILED = "failed"


class ShellFamily(str, Enum):
    """Shell families a completion script can be installed for."""
    BASH = "bash"
    ZSH = "zsh"

    @property
    def extension(self) -> str:
        return self.value


class VersionedArchive(BaseModel):
    """Release archive pinned by its sha256 checksum."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["archive"] = "archive"
    url: str = Field(..., description="Archive download URL")
    checksum: Optional[str] = Field(None, description="Expected sha256 of the archive")

    @field_validator("checksum")
    @classmethod
    def validate_checksum(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if not SHA256_PATTERN.match(v):
            raise ValueError(f"checksum must be a 64 character sha256 hex digest, got {v!r}")
        return v


class LiveRef(BaseModel):
    """Mutable branch of a git repository. Development use only."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["live"] = "live"
    repository_url: str = Field(..., description="Git repository URL")
    branch: str = Field(default="master", description="Branch to track")


SourceRef = Union[VersionedArchive, LiveRef]


class ToolSpec(BaseModel):
    """Immutable descriptor of one packaged tool."""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "bake",
                "description": "Go Build + Something like Make = Bake",
                "source_path": "bake",
                "source_ref": {
                    "kind": "archive",
                    "url": "https://github.com/DavidGamba/dgtools/archive/refs/tags/bake/v0.1.0.tar.gz",
                    "checksum": "c03ea914b3dfb885bd4821118b89411a06b7ac17f9e78b4cf066a4826a85841f"
                },
                "build_env": {"GOEXPERIMENT": "rangefunc"}
            }
        }
    )

    name: str = Field(..., description="Tool name, used as binary name and substitution token")
    description: str = Field(default="", description="One-line tool description")
    source_path: str = Field(..., description="Subdirectory of the source tree holding the tool")
    source_ref: SourceRef = Field(..., discriminator="kind", description="Where the source comes from")
    build_env: Dict[str, str] = Field(default_factory=dict, description="Build environment overrides")
    homepage: Optional[str] = Field(None, description="Project homepage")
    version: Optional[str] = Field(None, description="Released version, if any")
    probe_args: Tuple[str, ...] = Field(default=("--help",), description="Arguments used to smoke-test the tool")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v:
            raise ValueError("name must not be empty")
        if not TOOL_NAME_PATTERN.match(v):
            raise ValueError(
                f"name {v!r} may only contain letters, digits, '.', '_', '+' and '-'"
            )
        return v

    @field_validator("source_path")
    @classmethod
    def validate_source_path(cls, v):
        path = PurePosixPath(v)
        if not v or path.is_absolute() or ".." in path.parts:
            raise ValueError(f"source_path {v!r} must be a relative path inside the source tree")
        return v

    @field_validator("build_env")
    @classmethod
    def validate_build_env(cls, v):
        for key in v:
            if not key or "=" in key:
                raise ValueError(f"invalid build environment variable name {key!r}")
        return v

    @property
    def trusted_source(self) -> bool:
        """True when the source is pinned by a checksum."""
        return isinstance(self.source_ref, VersionedArchive) and self.source_ref.checksum is not None

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "ToolSpec":
        """Build a ToolSpec from a raw mapping, raising InvalidSpec on bad input."""
        if not isinstance(data, Mapping):
            raise InvalidSpec(f"Tool descriptor must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            name = data.get("name") or "<unnamed>"
            raise InvalidSpec(f"Invalid tool descriptor {name}: {e}") from e

    def check(self) -> "ToolSpec":
        """Re-run validation on this instance.

        Instances built with ``model_construct`` skip validation, so the engine
        calls this before doing anything external.
        """
        if getattr(self, "source_ref", None) is None:
            raise InvalidSpec(f"Tool {getattr(self, 'name', '<unnamed>')} declares no source reference")
        return type(self).parse(self.model_dump())


class CompletionTemplate(BaseModel):
    """Completion script template for one shell family."""
    model_config = ConfigDict(frozen=True)

    shell_family: ShellFamily
    template_content: str
    install_target_dir: Path
    placeholder: str = Field(default="tool", description="Token replaced with the tool name")

    @field_validator("placeholder")
    @classmethod
    def validate_placeholder(cls, v):
        if not v:
            raise ValueError("placeholder must not be empty")
        return v

    @model_validator(mode="after")
    def validate_has_placeholder(self):
        if self.placeholder not in self.template_content:
            raise ValueError(
                f"{self.shell_family.value} template does not contain placeholder {self.placeholder!r}"
            )
        return self
