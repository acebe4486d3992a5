"""
Smoke test for installed tools.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional, Pattern, Union

from ..errors import VerificationError
from ..models.installation import Executable
from ..models.tool import ToolSpec
from .process import run_process


def usage_pattern(tool_name: str) -> Pattern:
    """Pattern every packaged tool prints in its help output."""
    return re.compile(rf"Use '{re.escape(tool_name)} help[^']*' for extra details")


class Verifier:
    """Runs the probe invocation against an installed executable."""

    def __init__(self, timeout: Optional[float] = 30):
        self.logger = logging.getLogger(__name__)
        self.timeout = timeout

    async def verify(self, executable: Union[Path, Executable], spec: ToolSpec) -> bool:
        """
        Probe the installed ``executable`` and check its usage line.

        Raises:
            VerificationError: Non-zero exit, timeout or no matching usage line.
                ``output`` holds what the tool printed.
        """
        binary_path = executable.path if isinstance(executable, Executable) else Path(executable)
        args = [str(binary_path), *spec.probe_args]
        self.logger.info(f"Probing {' '.join([spec.name, *spec.probe_args])}")

        try:
            result = await run_process(args, timeout=self.timeout, merge_stderr=False)
        except asyncio.TimeoutError:
            raise VerificationError(f"Probe of {spec.name} timed out after {self.timeout} seconds")
        except OSError as e:
            raise VerificationError(f"Could not run {binary_path}: {e}") from e

        if result.returncode != 0:
            raise VerificationError(
                f"Probe of {spec.name} exited with code {result.returncode}",
                output=result.output
            )

        pattern = usage_pattern(spec.name)
        if not pattern.search(result.stdout):
            raise VerificationError(
                f"Probe output of {spec.name} does not match {pattern.pattern!r}",
                output=result.output
            )

        self.logger.info(f"Verified {spec.name}")
        return True
