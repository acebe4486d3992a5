"""
Compiles a tool's source subdirectory into a single executable.
"""

import asyncio
import logging
import os
from typing import List, Optional, Sequence

from ..errors import BuildError, BuildTimeout, MissingSourcePath
from ..models.installation import Executable, SourceTree
from ..models.tool import ToolSpec
from .process import run_process


DEFAULT_BUILD_COMMANDS = (
    ("go", "get"),
    ("go", "build", "-o", "{name}"),
)


class Builder:
    """Runs the toolchain inside the tool's source directory."""

    def __init__(self,
                 commands: Optional[Sequence[Sequence[str]]] = None,
                 timeout: Optional[float] = 600):
        """
        Initialize the builder.

        Args:
            commands: Toolchain invocations run in order; ``{name}`` expands to the tool name
            timeout: Seconds allowed for each invocation
        """
        self.logger = logging.getLogger(__name__)
        self.commands = [list(c) for c in (commands or DEFAULT_BUILD_COMMANDS)]
        self.timeout = timeout

    def build_environment(self, spec: ToolSpec) -> dict:
        """Environment for the toolchain: a copy of ours plus the tool's build_env."""
        env = dict(os.environ)
        env.update(spec.build_env)
        return env

    def expand(self, command: List[str], spec: ToolSpec) -> List[str]:
        return [arg.replace("{name}", spec.name) for arg in command]

    async def build(self, tree: SourceTree, spec: ToolSpec) -> Executable:
        """
        Build ``spec`` from ``tree``.

        Raises:
            MissingSourcePath: ``spec.source_path`` does not exist in the tree
            BuildTimeout: A toolchain invocation exceeded the timeout
            BuildError: A toolchain invocation failed or produced no executable
        """
        source_dir = tree.root / spec.source_path
        if not source_dir.is_dir():
            raise MissingSourcePath(f"Source path {spec.source_path!r} not found in {tree.root}")

        # Cached trees are reused across runs; drop the previous build's output
        artifact = source_dir / spec.name
        if artifact.is_file() or artifact.is_symlink():
            self.logger.debug(f"Removing previous build output {artifact}")
            try:
                artifact.unlink()
            except OSError as e:
                raise BuildError(f"Could not remove previous build output {artifact}: {e}") from e

        env = self.build_environment(spec)
        if spec.build_env:
            self.logger.info(
                f"Building {spec.name} with overrides: "
                + ", ".join(f"{k}={v}" for k, v in sorted(spec.build_env.items()))
            )

        outputs = []
        for command in self.commands:
            args = self.expand(command, spec)
            self.logger.info(f"[{spec.name}] {' '.join(args)}")
            try:
                result = await run_process(args, cwd=source_dir, env=env, timeout=self.timeout)
            except asyncio.TimeoutError:
                raise BuildTimeout(
                    f"{' '.join(args)} timed out after {self.timeout} seconds",
                    output="".join(outputs)
                )
            except OSError as e:
                raise BuildError(f"Could not run {args[0]}: {e}", output="".join(outputs)) from e

            outputs.append(result.output)
            if result.returncode != 0:
                raise BuildError(
                    f"{' '.join(args)} failed with exit code {result.returncode}",
                    output=result.output,
                    exit_code=result.returncode
                )

        if not artifact.is_file():
            raise BuildError(
                f"Toolchain finished but produced no executable named {spec.name!r} in {source_dir}",
                output="".join(outputs)
            )

        self.logger.info(f"Built {artifact}")
        return Executable(name=spec.name, path=artifact, build_output="".join(outputs))
