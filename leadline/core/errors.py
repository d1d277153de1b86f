"""Domain errors raised by the lead services and translated by the API layer."""


class LeadValidationError(ValueError):
    """A submission or patch failed validation; the message is safe to show."""


class InvalidPatchError(LeadValidationError):
    pass


class RateLimitExceeded(Exception):
    pass


class StorageError(RuntimeError):
    """A mandatory read or write against the lead store failed."""
