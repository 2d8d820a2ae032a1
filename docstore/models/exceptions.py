"""
Custom exceptions for the document store.
"""

from typing import Any


class DocStoreError(Exception):
    """Base class for all document store errors."""


class RecordDecodeError(DocStoreError):
    """
    Raised when a log line cannot be decoded into a record.

    Decoding errors fail the whole load; lines are never skipped.
    """

    def __init__(self, reason: str, line: str, line_no: int | None = None):
        """
        Initialize decode error.

        Args:
            reason: Human readable cause.
            line: The offending raw line.
            line_no: 1-based line number in the log file, if known.
        """
        self.reason = reason
        self.line = line
        self.line_no = line_no
        where = f" at line {line_no}" if line_no is not None else ""
        preview = line if len(line) <= 80 else line[:77] + "..."
        super().__init__(f"{reason}{where}: {preview!r}")


class MalformedLineError(RecordDecodeError):
    """Raised when the tag character of a log line is absent or unknown."""


class CorruptRecordError(RecordDecodeError):
    """Raised when the payload of a log line is not a valid entity object."""


class InvalidEntityError(DocStoreError, ValueError):
    """Raised when an entity cannot be stored (missing `_id`, not serializable...)."""


class InvalidQueryError(DocStoreError, ValueError):
    """Raised when a query, sort or projection has an invalid shape."""


class QueryTypeMismatchError(DocStoreError, TypeError):
    """
    Raised when an ordering comparison is applied to incomparable values.

    Propagated to the caller instead of being treated as a non-match.
    """

    def __init__(self, field: str, op: str, actual: Any, expected: Any):
        self.field = field
        self.op = op
        self.actual = actual
        self.expected = expected
        super().__init__(
            f"Cannot apply {op} to field {field!r}: "
            f"{type(actual).__name__} vs {type(expected).__name__}"
        )
