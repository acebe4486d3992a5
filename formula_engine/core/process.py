"""
Subprocess execution with timeouts.
"""

import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence


logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Captured result of a finished process."""
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def output(self) -> str:
        if self.stderr:
            return f"{self.stdout}{self.stderr}"
        return self.stdout


async def run_process(args: Sequence[str],
                      cwd: Optional[Path] = None,
                      env: Optional[Dict[str, str]] = None,
                      timeout: Optional[float] = None,
                      merge_stderr: bool = True) -> ProcessResult:
    """
    Run a command and capture its output.

    Args:
        args: Command and arguments
        cwd: Working directory
        env: Complete environment for the child; the parent environment is untouched
        timeout: Seconds before the process and its children are killed
        merge_stderr: Interleave stderr into stdout

    Returns:
        ProcessResult

    Raises:
        asyncio.TimeoutError: The process ran longer than ``timeout`` and was killed
        OSError: The executable could not be started
    """
    logger.debug(f"Running {' '.join(args)} in {cwd or '.'}")
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
        start_new_session=True
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug(f"Killing process group {process.pid} after {timeout} seconds")
        _kill_group(process)
        await process.wait()
        raise

    return ProcessResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace") if stdout else "",
        stderr=stderr.decode(errors="replace") if stderr else ""
    )


def _kill_group(process: asyncio.subprocess.Process) -> None:
    # Toolchain children (compile workers, git helpers) hold the output pipe open
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
