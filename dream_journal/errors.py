class JournalError(Exception):
    """Base class for dream journal errors."""


class ValidationError(JournalError, ValueError):
    """Malformed or missing input fields."""


class EntryNotFound(JournalError):
    def __init__(self, entry_id: str):
        super().__init__(f"No dream entry with id {entry_id!r}")
        self.entry_id = entry_id


class StorageError(JournalError):
    """Serialization or persistence failure."""


class AnalysisFailed(JournalError):
    """The analysis service could not produce a reply."""


class InvalidTransition(JournalError):
    """A conversation action was requested from a state that does not allow it."""
