"""
StoredRecord and RecordTag for representing log lines.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from docstore.models.exceptions import CorruptRecordError, MalformedLineError


class RecordTag(str, Enum):
    """Liveness tag written as the first character of every log line."""

    LIVE = "E"  # Entity exists
    TOMBSTONE = "D"  # Entity deleted


def is_valid_id(value: Any) -> bool:
    """Identifiers are plain ints; bools are rejected even though they subclass int."""
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class StoredRecord:
    """
    Represents a single line of the log: an entity plus its liveness tag.

    Attributes:
        entity: The stored entity, always carrying an integer `_id`.
        tag: Whether the entity is live or tombstoned.
    """

    entity: dict[str, Any]
    tag: RecordTag = RecordTag.LIVE
    _cached_line: str | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Cache the encoded line on initialization unless one was supplied."""
        if self._cached_line is not None:
            return
        # Format: [tag:1][json object]
        payload = json.dumps(self.entity, ensure_ascii=False, separators=(",", ":"))
        self._cached_line = self.tag.value + payload

    @classmethod
    def live(cls, entity: dict[str, Any]) -> "StoredRecord":
        return cls(entity=entity, tag=RecordTag.LIVE)

    @classmethod
    def tombstone(cls, entity: dict[str, Any]) -> "StoredRecord":
        return cls(entity=entity, tag=RecordTag.TOMBSTONE)

    @classmethod
    def _from_encoded(cls, entity: dict[str, Any], tag: RecordTag, line: str) -> "StoredRecord":
        """Build a record around an already encoded line, skipping serialization."""
        return cls(entity=entity, tag=tag, _cached_line=line)

    @property
    def id(self) -> int:
        return self.entity["_id"]

    def is_tombstone(self) -> bool:
        return self.tag == RecordTag.TOMBSTONE

    def as_tombstone(self) -> "StoredRecord":
        """Return this record flipped to a tombstone, payload text unchanged."""
        if self.is_tombstone():
            return self
        line = RecordTag.TOMBSTONE.value + self._cached_line[1:]
        return self._from_encoded(self.entity, RecordTag.TOMBSTONE, line)

    def to_line(self) -> str:
        """Serialize to a single log line (without the trailing newline)."""
        return self._cached_line

    @classmethod
    def from_line(cls, line: str, line_no: int | None = None) -> "StoredRecord":
        """
        Deserialize from a single log line.

        Args:
            line: Raw line without its newline terminator.
            line_no: 1-based line number, used in error reports.

        Raises:
            MalformedLineError: If the tag character is absent or unknown.
            CorruptRecordError: If the payload is not a JSON object with an int `_id`.
        """
        if not line:
            raise MalformedLineError("Missing record tag", line, line_no)

        try:
            tag = RecordTag(line[0])
        except ValueError:
            raise MalformedLineError(f"Unknown record tag {line[0]!r}", line, line_no) from None

        try:
            entity = json.loads(line[1:])
        except json.JSONDecodeError as e:
            raise CorruptRecordError(f"Invalid JSON payload ({e.msg})", line, line_no) from e

        if not isinstance(entity, dict):
            raise CorruptRecordError("Payload is not an object", line, line_no)
        if not is_valid_id(entity.get("_id")):
            raise CorruptRecordError("Payload has no integer _id", line, line_no)

        # Keep the payload verbatim so rewrites reproduce existing lines
        return cls._from_encoded(entity, tag, line)
