from typing import Optional


class VocabError(Exception):
    """Base class for vocabulary notebook errors."""


class ValidationError(VocabError):
    """A required field is empty or an unknown field was given."""


class NotFoundError(VocabError):
    """No entry with the given id exists in the active list."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Entry '{entry_id}' not found")
        self.entry_id = entry_id


class InsufficientDataError(VocabError):
    """Not enough entries to build a quiz."""


class InvalidStateError(VocabError):
    """Operation not valid in the quiz engine's current state."""


class ServiceError(VocabError):
    """The generation service failed or returned no usable text."""

    def __init__(self, status_code: Optional[int], message: str) -> None:
        super().__init__(f"[{status_code}] {message}" if status_code is not None else message)
        self.status_code = status_code
        self.message = message
