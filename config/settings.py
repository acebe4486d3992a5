"""
Configuration settings for the formula engine.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InstallConfig(BaseModel):
    """Install target configuration."""
    prefix: Path = Field(default_factory=lambda: Path.home() / ".local", description="Install prefix")
    bin_dir: Optional[Path] = Field(None, description="Executable directory, defaults to <prefix>/bin")
    bash_completion_dir: Optional[Path] = Field(
        None, description="Bash completion directory, defaults to <prefix>/etc/bash_completion.d"
    )
    zsh_completion_dir: Optional[Path] = Field(
        None, description="Zsh completion directory, defaults to <prefix>/share/zsh/site-functions"
    )
    completion_prefix: str = Field(default="dgtools", description="Prefix of completion file names")
    template_dir: Optional[Path] = Field(None, description="Directory with completions.bash/.zsh templates")
    placeholder: str = Field(default="tool", description="Template token replaced by the tool name")

    @model_validator(mode="after")
    def fill_target_dirs(self):
        if self.bin_dir is None:
            self.bin_dir = self.prefix / "bin"
        if self.bash_completion_dir is None:
            self.bash_completion_dir = self.prefix / "etc" / "bash_completion.d"
        if self.zsh_completion_dir is None:
            self.zsh_completion_dir = self.prefix / "share" / "zsh" / "site-functions"
        return self

    @field_validator("completion_prefix")
    @classmethod
    def validate_completion_prefix(cls, v):
        if not v or "/" in v:
            raise ValueError(f"completion_prefix must be a plain file name component, got {v!r}")
        return v


class FetchConfig(BaseModel):
    """Source fetch configuration."""
    cache_dir: Path = Field(default=Path("cache"), description="Download and extraction cache")
    timeout: float = Field(default=300, description="Download / git timeout in seconds")


class BuildConfig(BaseModel):
    """Toolchain configuration."""
    commands: List[List[str]] = Field(
        default_factory=lambda: [["go", "get"], ["go", "build", "-o", "{name}"]],
        description="Toolchain invocations, {name} expands to the tool name"
    )
    timeout: float = Field(default=600, description="Timeout per toolchain invocation in seconds")

    @field_validator("commands")
    @classmethod
    def validate_commands(cls, v):
        if not v or any(not command for command in v):
            raise ValueError("commands must contain at least one non-empty command")
        return v


class VerifyConfig(BaseModel):
    """Probe configuration."""
    timeout: float = Field(default=30, description="Probe timeout in seconds")


class ArtifactConfig(BaseModel):
    """Artifact storage configuration."""
    base_path: Path = Field(default=Path("artifacts"), description="Base path for build logs and run summaries")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        description="Log format"
    )
    file_path: Optional[Path] = Field(default=Path("logs/formula_engine.log"))
    max_file_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(default=5, description="Number of log backups to keep")


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FORMULA_",
        env_nested_delimiter="__",
        extra="ignore"
    )

    install: InstallConfig = Field(default_factory=InstallConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    verify: VerifyConfig = Field(default_factory=VerifyConfig)
    artifacts: ArtifactConfig = Field(default_factory=ArtifactConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    formulas_dir: Path = Field(default=Path("formulas"), description="Directory of tool descriptors")
    max_concurrent_jobs: int = Field(default=5, ge=1, description="Tools packaged at once")
