"""
Query model: tagged field predicates plus the $and / $or / $text operators.

Raw queries are mappings such as::

    {
        "age": {"$gt": 30},
        "$or": [{"name": {"$eq": "Ann"}}, {"name": {"$in": ["Bob", "Cy"]}}],
        "$text": "tea garden",
    }

`Query.parse` validates the mapping once, up front, so matching never has to
look up operators by string.
"""

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from docstore.models.exceptions import InvalidQueryError

OPERATOR_PREFIX = "$"

AND = "$and"
OR = "$or"
TEXT = "$text"


class Operator(str, Enum):
    """Comparison applied by a field predicate."""

    EQ = "$eq"
    GT = "$gt"
    LT = "$lt"
    IN = "$in"


@dataclass(frozen=True)
class Predicate:
    """
    A single comparison against one entity field.

    Attributes:
        op: The comparison operator.
        operand: The value compared against (a tuple for IN).
    """

    op: Operator
    operand: Any

    @classmethod
    def parse(cls, field_name: str, raw: Any) -> "Predicate":
        if not isinstance(raw, Mapping):
            raise InvalidQueryError(
                f"Predicate for field {field_name!r} must be a mapping like {{'$eq': value}}, "
                f"got {type(raw).__name__}"
            )
        if len(raw) != 1:
            raise InvalidQueryError(
                f"Predicate for field {field_name!r} must have exactly one operator, got {len(raw)}"
            )

        [(name, operand)] = raw.items()
        try:
            op = Operator(name)
        except ValueError:
            raise InvalidQueryError(f"Unknown operator {name!r} for field {field_name!r}") from None

        if op is Operator.IN:
            if isinstance(operand, (str, bytes)) or not isinstance(operand, Collection):
                raise InvalidQueryError(f"$in operand for field {field_name!r} must be a list")
            operand = tuple(operand)

        return cls(op=op, operand=operand)


@dataclass(frozen=True)
class Query:
    """
    A parsed query.

    Attributes:
        fields: Field name -> predicate; all must hold.
        and_: Predicate-only sub-queries; all must hold.
        or_: Predicate-only sub-queries; at least one must fully hold.
            None when the query has no $or.
        text: Space-separated words for full-text search, or None.
    """

    fields: dict[str, Predicate] = field(default_factory=dict)
    and_: tuple["Query", ...] = ()
    or_: tuple["Query", ...] | None = None
    text: str | None = None

    @classmethod
    def parse(cls, raw: "Query | Mapping[str, Any] | None", known_fields: Collection[str] | None = None) -> "Query":
        """
        Build a Query from its mapping form.

        Args:
            raw: Query mapping (or an already parsed Query, or None for match-all).
            known_fields: If given, field names outside this set are rejected.

        Raises:
            InvalidQueryError: If the query is malformed.
        """
        if raw is None:
            return cls()
        if isinstance(raw, Query):
            if known_fields is not None:
                raw.check_fields(known_fields)
            return raw
        if not isinstance(raw, Mapping):
            raise InvalidQueryError(f"Query must be a mapping, got {type(raw).__name__}")

        fields: dict[str, Predicate] = {}
        and_: tuple[Query, ...] = ()
        or_: tuple[Query, ...] | None = None
        text: str | None = None

        for key, value in raw.items():
            if not isinstance(key, str):
                raise InvalidQueryError(f"Query keys must be strings, got {key!r}")
            if key == AND:
                and_ = cls._parse_subqueries(key, value, known_fields)
            elif key == OR:
                or_ = cls._parse_subqueries(key, value, known_fields)
            elif key == TEXT:
                if not isinstance(value, str):
                    raise InvalidQueryError(f"$text must be a string, got {type(value).__name__}")
                text = value
            elif key.startswith(OPERATOR_PREFIX):
                raise InvalidQueryError(f"Unknown query operator {key!r}")
            else:
                fields[key] = Predicate.parse(key, value)

        query = cls(fields=fields, and_=and_, or_=or_, text=text)
        if known_fields is not None:
            query.check_fields(known_fields)
        return query

    @classmethod
    def _parse_subqueries(
        cls, name: str, value: Any, known_fields: Collection[str] | None
    ) -> tuple["Query", ...]:
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Collection):
            raise InvalidQueryError(f"{name} must be a list of queries")

        subqueries = []
        for sub in value:
            if not isinstance(sub, Mapping):
                raise InvalidQueryError(f"{name} entries must be mappings, got {type(sub).__name__}")
            nested = [k for k in sub if isinstance(k, str) and k.startswith(OPERATOR_PREFIX)]
            if nested:
                raise InvalidQueryError(
                    f"{name} sub-queries may only hold field predicates, found {', '.join(nested)}"
                )
            subqueries.append(cls.parse(sub, known_fields))
        return tuple(subqueries)

    def check_fields(self, known_fields: Collection[str]) -> None:
        """Reject field names outside `known_fields`."""
        unknown = sorted(name for name in self.field_names() if name not in known_fields)
        if unknown:
            raise InvalidQueryError(f"Unknown fields in query: {', '.join(unknown)}")

    def field_names(self) -> set[str]:
        names = set(self.fields)
        for sub in self.and_ + (self.or_ or ()):
            names |= sub.field_names()
        return names

    def is_empty(self) -> bool:
        return not self.fields and not self.and_ and self.or_ is None and not self.text
