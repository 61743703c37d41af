"""Exceptions raised by the licence lifecycle core."""


class LicenceError(Exception):
    """Base class for all licence core errors."""

    retryable = False


class InvalidArgument(LicenceError, ValueError):
    """A required field is missing or a value is outside its closed set."""


class NotFound(LicenceError, KeyError):
    """The licence key does not exist in the store."""

    def __init__(self, licence_key: str):
        super().__init__(licence_key)
        self.licence_key = licence_key

    def __str__(self) -> str:
        return f"Licence not found: {self.licence_key}"


class KeyGenerationError(LicenceError):
    """Could not produce a key that is not already in use."""


class StorageFailure(LicenceError):
    """The durable write did not complete; prior state is intact."""

    retryable = True
