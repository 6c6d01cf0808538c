from __future__ import annotations


class NotesError(Exception):
    """Base error; ``status_code`` is what the HTTP layer reports."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(NotesError):
    status_code = 400


class MethodNotAllowed(NotesError):
    status_code = 405


class StoreError(NotesError):
    """Any failure from the underlying key-value operations."""

    status_code = 500


class ConfigurationError(StoreError):
    """Store credentials are missing; raised before any network call."""


class ParseError(NotesError):
    """A locally stored value is not valid JSON."""


class NotesClientError(NotesError):
    """The remote notes API answered with an error or could not be reached."""
