class SyncError(Exception):
    """Base class for failures raised while applying a sync batch."""


class SyncTimeoutError(SyncError):
    """The batch ran past SYNC_TRANSACTION_TIMEOUT and was rolled back."""
