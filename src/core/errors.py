"""
Error types shared by the aggregation and availability services.
"""


class ConfigurationError(ValueError):
    """Request is missing required parameters or they cannot be parsed."""


class MalformedRecord(ValueError):
    """A single native record could not be normalized."""

    def __init__(self, source: str, record_id, reason: str):
        self.source = source
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"{source} record {record_id!r}: {reason}")


class NotFound(LookupError):
    """Requested worker or team does not exist in the organization."""


class SourceUnavailable(Exception):
    """Fetching one calendar source failed."""

    def __init__(self, source: str, cause: Exception):
        self.source = source
        self.cause = cause
        super().__init__(f"{source}: {cause}")
