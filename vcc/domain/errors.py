"""Error taxonomy for the compliance pipeline.

Every error except CatalogError is fatal to a single file only; the
orchestrator converts it into a FileError entry and moves on.
"""

from pathlib import Path
from typing import Optional


class VccError(Exception):
    """Base class for all pipeline errors."""

    stage = "internal"

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class ProbeError(VccError):
    """Source is unreadable or corrupt (ffprobe failed)."""

    stage = "probe"

    def __init__(self, message: str, path: Optional[Path] = None, stderr: Optional[str] = None, rc: Optional[int] = None):
        super().__init__(message, path)
        self.stderr = stderr
        self.rc = rc


class NormalizationError(VccError):
    """A field required for scoring could not be determined."""

    stage = "normalize"


class EncodeError(VccError):
    """Encoder failed, timed out, or cannot honour the plan."""

    stage = "encode"

    def __init__(self, message: str, path: Optional[Path] = None, hw_cap_limit: bool = False):
        super().__init__(message, path)
        self.hw_cap_limit = hw_cap_limit


class EncodeInterrupted(EncodeError):
    """Encode was killed because the run is shutting down."""


class VerifyError(VccError):
    """Encoder reported success but produced no usable output."""

    stage = "verify"


class RemoteIOError(VccError):
    """Listing or fetching from a remote source failed."""

    stage = "fetch"


class UploadError(VccError):
    """Storing a remediated file back to the remote source failed."""

    stage = "upload"


class CatalogError(VccError):
    """Standards catalog could not be loaded or is inconsistent.

    The only process-fatal error: nothing can be scored without a catalog.
    """

    stage = "catalog"
