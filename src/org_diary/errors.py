"""Exceptions and warnings raised by diary operations."""

from __future__ import annotations


class DiaryError(Exception):
    """Base exception for diary operations."""
    pass


class MalformedStampError(DiaryError):
    """Raised when stamp or range text cannot be parsed."""
    pass


class NoIdError(DiaryError):
    """Raised when an entry id cannot be read back after assignment."""
    pass


class InvalidModeError(DiaryError):
    """Raised when an unknown change mode is requested."""
    pass


class MissingFileError(DiaryError):
    """Raised when the year-file for a date does not exist."""
    pass


class InvalidReferenceError(DiaryError):
    """Raised when an entry id is unknown or not unique."""
    pass


class LinkResolutionWarning(UserWarning):
    """Link target found, but its search text was not."""
    pass
