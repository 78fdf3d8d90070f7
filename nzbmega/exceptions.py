"""
Error taxonomy for the transfer pipeline.

Every error raised by the core derives from NzbMegaError so callers can
catch the whole family at once.
"""
from typing import List, Optional


class NzbMegaError(Exception):
    """Base class for all pipeline errors."""


class SubmissionError(NzbMegaError):
    """Download service rejected the job reference."""


class ServiceConnectionError(NzbMegaError):
    """Download service could not be reached."""


class JobFailedError(NzbMegaError):
    """Download service reported the job as permanently failed."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id


class NotFoundError(NzbMegaError):
    """Local storage path of a slot vanished before materialization."""


class RemoteCreateError(NzbMegaError):
    """Remote folder could not be created (name collision, quota)."""


class TransferError(NzbMegaError):
    """Upload of a single file failed."""

    def __init__(self, file_name: str, cause: Optional[BaseException] = None):
        reason = str(cause) if cause is not None else ""
        reason = reason or (type(cause).__name__ if cause is not None else "unknown error")
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name
        self.cause = cause


class SlotTransferError(NzbMegaError):
    """One or more uploads of a slot failed."""

    def __init__(self, slot_name: str, errors: List[TransferError]):
        self.slot_name = slot_name
        self.errors = list(errors)
        listing = ", ".join(str(e) for e in self.errors)
        super().__init__(
            f"{len(self.errors)} upload(s) failed for '{slot_name}': {listing}"
        )

    @property
    def failed_files(self) -> List[str]:
        return [e.file_name for e in self.errors]


class ShareError(NzbMegaError):
    """Storage service refused to publish a link."""


class AuthenticationError(NzbMegaError):
    """Storage account login failed."""
