"""
QueryMatcher - evaluates parsed queries against in-memory entities.
"""

import re
from collections.abc import Iterable
from typing import Any

from docstore.models.exceptions import QueryTypeMismatchError
from docstore.query.predicate import Operator, Predicate, Query

_MISSING = object()


def mixes_bool(a: Any, b: Any) -> bool:
    """True when exactly one side is a boolean."""
    return isinstance(a, bool) != isinstance(b, bool)


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality that never treats booleans as numbers."""
    if mixes_bool(actual, expected):
        return False
    return actual == expected


class QueryMatcher:
    """
    Filters entities through the query pipeline.

    Stages run in a fixed order, each narrowing the candidates:
    $and -> $or -> $text -> plain field predicates.
    """

    def __init__(self, full_text_fields: Iterable[str] = ()) -> None:
        """
        Initialize matcher.

        Args:
            full_text_fields: Fields searched by $text.
        """
        self.full_text_fields = tuple(full_text_fields)

    def filter(self, query: Query, entities: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Return the entities matching `query`, preserving their order."""
        if query.is_empty():
            return entities

        stages = (self._filter_and, self._filter_or, self._filter_text, self._filter_fields)

        for stage in stages:
            entities = stage(query, entities)
        return entities

    def _filter_and(self, query: Query, entities: list[dict[str, Any]]) -> list[dict[str, Any]]:
        for sub in query.and_:
            entities = self._filter_fields(sub, entities)
        return entities

    def _filter_or(self, query: Query, entities: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if query.or_ is None:
            return entities
        return [e for e in entities if any(self.fields_match(sub, e) for sub in query.or_)]

    def _filter_text(self, query: Query, entities: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not query.text:
            return entities

        words = query.text.lower().split()
        if not words:
            return entities
        patterns = [re.compile(rf"\b{re.escape(word)}\b") for word in words]

        return [
            entity
            for entity in entities
            if all(self._any_text_field_matches(pattern, entity) for pattern in patterns)
        ]

    def _any_text_field_matches(self, pattern: re.Pattern, entity: dict[str, Any]) -> bool:
        for name in self.full_text_fields:
            value = entity.get(name)
            if isinstance(value, str) and pattern.search(value.lower()):
                return True
        return False

    def _filter_fields(self, query: Query, entities: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not query.fields:
            return entities
        return [e for e in entities if self.fields_match(query, e)]

    def fields_match(self, query: Query, entity: dict[str, Any]) -> bool:
        """True if every plain field predicate of `query` holds for `entity`."""
        for name, predicate in query.fields.items():
            if not self._predicate_holds(name, predicate, entity.get(name, _MISSING)):
                return False
        return True

    @staticmethod
    def _predicate_holds(name: str, predicate: Predicate, actual: Any) -> bool:
        if actual is _MISSING:
            return False

        expected = predicate.operand
        op = predicate.op

        if op is Operator.EQ:
            return strict_equals(actual, expected)
        if op is Operator.IN:
            return any(strict_equals(actual, candidate) for candidate in expected)

        # Booleans are not ordered against numbers, matching strict_equals
        if mixes_bool(actual, expected):
            raise QueryTypeMismatchError(name, op.value, actual, expected)

        try:
            if op is Operator.GT:
                return bool(actual > expected)
            return bool(actual < expected)
        except TypeError:
            raise QueryTypeMismatchError(name, op.value, actual, expected) from None
