"""Exception hierarchy shared by the import pipeline and resolver."""


class ClippingsError(Exception):
    """Base exception for clippings import errors."""

    pass


class EntryValidationError(ClippingsError):
    """A parsed entry is structurally invalid and must be excluded."""

    def __init__(self, message: str, field: str, parse_index: int | None = None):
        super().__init__(message)
        self.field = field
        self.parse_index = parse_index


class ProviderUnavailable(ClippingsError):
    """The external catalog could not be reached or answered with an error."""

    pass


class StorageFailure(ClippingsError):
    """Persisting an import batch failed; the session is marked failed."""

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id


class NotFoundError(ClippingsError):
    """A referenced record (session, review item, confirmation) does not exist."""

    def __init__(self, resource: str, record_id: str):
        super().__init__(f"{resource} not found: {record_id}")
        self.resource = resource
        self.record_id = record_id
