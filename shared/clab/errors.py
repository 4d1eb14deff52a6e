"""
Exception taxonomy for clab.

- StorageError: the notes store could not read or write a record
- ExtractionError: no well-formed JSON value could be recovered from text
- ServiceError: the model invocation failed (network, auth, status, body)
- ConfigError: missing or unknown persona, manifest, or credential
"""


class ClabError(Exception):
    """Base class for all clab errors."""


class StorageError(ClabError):
    """A NoteStore or agent-state I/O operation failed."""


class ExtractionError(ClabError):
    """No balanced, parseable JSON value was found in a model response."""


class ServiceError(ClabError):
    """The model invocation service failed or returned an unusable response.

    Attributes:
        status_code: HTTP status when the failure came from a response
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigError(ClabError):
    """Configuration needed to start an analysis is missing or invalid."""
