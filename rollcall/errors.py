"""Exception hierarchy for rollcall."""


class RollcallError(Exception):
    """Base class for all rollcall errors."""


class ValidationError(RollcallError):
    """A record is missing a required field or is internally inconsistent.

    Raised before anything is written; the caller can correct and retry.
    """

    def __init__(self, message: str, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id


class StoreError(RollcallError):
    """Local persistence failed."""


class StoreReadError(StoreError):
    """A persisted collection exists but could not be read or decoded."""


class StoreWriteError(StoreError):
    """A collection could not be written (disk full, permission denied...)."""


class RecordNotFoundError(RollcallError):
    pass


class AttendanceLockedError(RollcallError):
    """Attempt to change the attendees of a finalized attendance record."""


class FieldMappingError(RollcallError):
    """A record cannot be translated between local and remote field names."""


class SyncError(RollcallError):
    """Base class for failures while talking to the remote store."""


class NetworkError(SyncError):
    """The remote could not be reached or timed out. Safe to retry."""


class RemoteError(SyncError):
    """The remote answered with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SyncInProgressError(SyncError):
    """A sync cycle is already running in this process."""
