from typing import List, Optional


class RecordValidationError(ValueError):
    """Client supplied input that cannot be stored or queried."""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or []


class PersistenceError(IOError):
    """A query or insert failed inside the document store."""
