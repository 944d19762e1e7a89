from __future__ import annotations


class PasteError(Exception):
    """Base class for paste-related errors."""


class InvalidPasteParameters(PasteError):
    """Raised when creating a paste with invalid parameters."""


class PasteNotFoundError(PasteError):
    """Raised when a paste is missing, expired or out of views."""


class PasteStorageError(PasteError):
    """Raised when the persistence layer fails."""


class DuplicatePasteIdError(PasteStorageError):
    """Raised when inserting a paste whose id is already taken."""
