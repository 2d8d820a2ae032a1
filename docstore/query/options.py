"""
FindOptions plus the sort and projection stages applied after filtering.
"""

from collections.abc import Collection, Mapping
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any

from docstore.models.exceptions import InvalidQueryError, QueryTypeMismatchError
from docstore.query.matcher import mixes_bool

ASCENDING = 1
DESCENDING = -1

_MISSING = object()


@dataclass(frozen=True)
class FindOptions:
    """
    Options for Database.find.

    Attributes:
        sort: Field -> 1 (ascending) or -1 (descending); earlier fields decide first.
        projection: Fields to keep in results, or None for whole entities.
        deleted: Reserved; has no effect on results.
    """

    sort: tuple[tuple[str, int], ...] | None = None
    projection: tuple[str, ...] | None = None
    deleted: bool = False

    @classmethod
    def parse(cls, raw: "FindOptions | Mapping[str, Any] | None") -> "FindOptions":
        """
        Build options from their mapping form, e.g.
        ``{"sort": {"age": -1}, "projection": {"name": 1}}``.

        Raises:
            InvalidQueryError: If sort or projection are malformed.
        """
        if raw is None:
            return cls()
        if isinstance(raw, FindOptions):
            return raw
        if not isinstance(raw, Mapping):
            raise InvalidQueryError(f"Options must be a mapping, got {type(raw).__name__}")

        unknown = set(raw) - {"sort", "projection", "deleted"}
        if unknown:
            raise InvalidQueryError(f"Unknown find options: {', '.join(sorted(map(str, unknown)))}")

        return cls(
            sort=cls._parse_sort(raw.get("sort")),
            projection=cls._parse_projection(raw.get("projection")),
            deleted=bool(raw.get("deleted", False)),
        )

    @staticmethod
    def _parse_sort(raw: Any) -> tuple[tuple[str, int], ...] | None:
        if raw is None:
            return None
        if not isinstance(raw, Mapping):
            raise InvalidQueryError(f"sort must be a mapping of field to 1 or -1, got {type(raw).__name__}")

        sort = []
        for name, direction in raw.items():
            if isinstance(direction, bool) or direction not in (ASCENDING, DESCENDING):
                raise InvalidQueryError(f"Sort direction for {name!r} must be 1 or -1, got {direction!r}")
            sort.append((name, int(direction)))
        return tuple(sort)

    @staticmethod
    def _parse_projection(raw: Any) -> tuple[str, ...] | None:
        if raw is None:
            return None
        if isinstance(raw, Mapping):
            raw = list(raw.keys())
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Collection):
            raise InvalidQueryError("projection must be a collection of field names")

        projection = tuple(dict.fromkeys(raw))
        for name in projection:
            if not isinstance(name, str):
                raise InvalidQueryError(f"Projection fields must be strings, got {name!r}")
        return projection

    def field_names(self) -> set[str]:
        names = {name for name, _ in self.sort or ()}
        names.update(self.projection or ())
        return names


def sort_entities(sort: tuple[tuple[str, int], ...] | None, entities: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Sort entities by a chain of (field, direction) pairs.

    The first field decides unless its values tie, then the next one, and
    so on. Equal values tie. Entities lacking a field sort after every entity
    that has it, in either direction, and tie with each other. The sort is stable.

    Raises:
        QueryTypeMismatchError: If two values of a sort field cannot be ordered.
    """
    if not sort:
        return entities

    def compare(a: dict[str, Any], b: dict[str, Any]) -> int:
        for name, direction in sort:
            a_value = a.get(name, _MISSING)
            b_value = b.get(name, _MISSING)
            if a_value is _MISSING or b_value is _MISSING:
                if a_value is b_value:
                    continue
                return 1 if a_value is _MISSING else -1
            if mixes_bool(a_value, b_value):
                raise QueryTypeMismatchError(name, "sort", a_value, b_value)
            if a_value == b_value:
                continue
            try:
                if a_value > b_value:
                    return direction
                if a_value < b_value:
                    return -direction
            except TypeError:
                raise QueryTypeMismatchError(name, "sort", a_value, b_value) from None
        return 0

    return sorted(entities, key=cmp_to_key(compare))


def project_entities(projection: tuple[str, ...] | None, entities: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep only the projected fields of each entity; fields an entity lacks are omitted."""
    if projection is None:
        return entities
    return [{name: entity[name] for name in projection if name in entity} for entity in entities]
