"""
Error taxonomy for the packaging pipeline.

Every error knows the pipeline stage it belongs to so the engine can report
``Failed(stage, cause)`` without guessing.
"""

from typing import Optional


class FormulaError(Exception):
    """Base error for all formula pipeline failures."""

    stage = "pipeline"

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.output = output


class InvalidSpec(FormulaError):
    """Malformed tool descriptor, raised before any external action."""

    stage = "validate"


class FetchError(FormulaError):
    """Source could not be fetched."""

    stage = "fetch"


class ChecksumMismatch(FetchError):
    """Downloaded archive does not match the declared checksum."""

    def __init__(self, url: str, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for {url}: expected sha256 {expected}, got {actual}"
        )
        self.url = url
        self.expected = expected
        self.actual = actual


class FetchTimeout(FetchError):
    """Fetch did not complete within the caller supplied timeout."""


class BuildError(FormulaError):
    """Toolchain failure. ``output`` holds the captured toolchain output verbatim."""

    stage = "build"

    def __init__(self, message: str, output: Optional[str] = None,
                 exit_code: Optional[int] = None):
        super().__init__(message, output)
        self.exit_code = exit_code


class MissingSourcePath(BuildError):
    """The tool's source subdirectory is not present in the fetched tree."""


class BuildTimeout(BuildError):
    """Build did not complete within the caller supplied timeout."""


class InstallError(FormulaError):
    """Filesystem failure while installing the binary or completion scripts."""

    stage = "install"


class VerificationError(FormulaError):
    """Probe invocation failed or its output did not match."""

    stage = "verify"
