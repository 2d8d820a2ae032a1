"""
Database - Main document store API.
"""

import copy
import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any

from docstore.engine.write_queue import WriteQueue
from docstore.models.exceptions import InvalidEntityError, InvalidQueryError
from docstore.models.log_file import LogFile
from docstore.models.record import StoredRecord, is_valid_id
from docstore.query.matcher import QueryMatcher
from docstore.query.options import FindOptions, project_entities, sort_entities
from docstore.query.predicate import OPERATOR_PREFIX, Query

logger = logging.getLogger(__name__)

ID_FIELD = "_id"


class Database:
    """
    Embedded single-file document store.

    Provides:
    - insert(entity): Append an entity as live
    - find(query, options): Filter, sort and project live entities
    - delete(query): Tombstone every entity matching a query

    Architecture:
    - Every operation loads the whole log (full scan, no indexes)
    - Mutations run one at a time through a WriteQueue and rewrite the log
    - Reads are not serialized and may observe state from before an
      in-flight mutation finishes
    """

    def __init__(
        self,
        file_path: str,
        full_text_fields: Iterable[str] = (),
        fields: Iterable[str] | None = None,
        create: bool = True,
        fsync: bool = True,
    ) -> None:
        """
        Initialize the database.

        Args:
            file_path: Path to the log file.
            full_text_fields: Entity fields searched by $text queries.
            fields: Optional declared field set. When given, queries, sort and
                    projection options and inserted entities may only use these
                    fields (plus `_id`).
            create: Create the log file (and parent directories) if missing, so a
                    new path starts as an empty store. When False, a missing file
                    raises FileNotFoundError on first access.
            fsync: Sync rewritten data to disk before replacing the log.
        """
        # Validate file_path
        if not file_path or not str(file_path).strip():
            raise ValueError("file_path cannot be empty")
        file_path = os.path.abspath(file_path)
        if os.path.isdir(file_path):
            raise ValueError(f"file_path is a directory: {file_path}")

        if isinstance(full_text_fields, str):
            raise ValueError("full_text_fields must be a collection of field names, not a string")
        full_text_fields = tuple(full_text_fields)
        for name in full_text_fields:
            if not isinstance(name, str) or not name or name.startswith(OPERATOR_PREFIX):
                raise ValueError(f"Invalid full-text field name: {name!r}")

        # Validate declared fields
        self._known_fields: frozenset[str] | None = None
        if fields is not None:
            if isinstance(fields, str):
                raise ValueError("fields must be a collection of field names, not a string")
            self._known_fields = frozenset(fields) | {ID_FIELD}
            for name in self._known_fields:
                if not isinstance(name, str) or not name or name.startswith(OPERATOR_PREFIX):
                    raise ValueError(f"Invalid field name: {name!r}")
            unknown = sorted(set(full_text_fields) - self._known_fields)
            if unknown:
                raise ValueError(f"Full-text fields not declared in fields: {', '.join(unknown)}")

        self._log = LogFile(file_path, fsync=fsync)
        self._matcher = QueryMatcher(full_text_fields)
        self._writes = WriteQueue()

        if create and self._log.create():
            logger.info(f"Initialized empty store at {file_path}")

    @property
    def file_path(self) -> str:
        return self._log.file_path

    @property
    def full_text_fields(self) -> tuple[str, ...]:
        return self._matcher.full_text_fields

    async def insert(self, entity: Mapping[str, Any]) -> None:
        """
        Append an entity as live.

        No duplicate check is made: inserting an `_id` that is already live
        leaves several live lines, and the last one wins on read.

        Args:
            entity: Mapping with an integer `_id` and JSON-serializable values.

        Raises:
            InvalidEntityError: If the entity cannot be stored.
            OSError: If the log cannot be read or written.
        """
        record = self._to_record(entity)
        await self._writes.submit(self._log.rewrite, [record], ())

    async def find(
        self,
        query: Query | Mapping[str, Any] | None = None,
        options: FindOptions | Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Return live entities matching `query`, sorted and projected.

        Args:
            query: Query mapping or parsed Query; None or {} matches everything.
            options: FindOptions or mapping with `sort` / `projection`.

        Returns:
            Matching entities (partial ones when projected). Never mutates storage.

        Raises:
            InvalidQueryError: If the query or options are malformed.
            QueryTypeMismatchError: If $gt/$lt or sort compare incomparable values.
            OSError: If the log cannot be read.
        """
        parsed = self._parse_query(query)
        opts = self._parse_options(options)

        entities = await self._log.load()
        matched = self._matcher.filter(parsed, entities)
        return project_entities(opts.projection, sort_entities(opts.sort, matched))

    async def delete(self, query: Query | Mapping[str, Any] | None = None) -> int:
        """
        Tombstone every live entity matching `query`.

        The matched identifiers' existing lines are flipped to deleted. A query
        matching nothing leaves the file untouched.

        Args:
            query: Query mapping or parsed Query; None or {} deletes everything.

        Returns:
            Number of entities deleted.

        Raises:
            InvalidQueryError: If the query is malformed.
            OSError: If the log cannot be read or written.
        """
        parsed = self._parse_query(query)
        return await self._writes.submit(self._delete_matching, parsed)

    async def _delete_matching(self, query: Query) -> int:
        """Load, filter and rewrite; runs inside the write queue."""
        entities = await self._log.load()
        matched = self._matcher.filter(query, entities)
        if not matched:
            return 0

        await self._log.rewrite((), {entity[ID_FIELD] for entity in matched})
        logger.debug(f"Deleted {len(matched)} entities from {self.file_path}")
        return len(matched)

    def _parse_query(self, query: Query | Mapping[str, Any] | None) -> Query:
        return Query.parse(query, self._known_fields)

    def _parse_options(self, options: FindOptions | Mapping[str, Any] | None) -> FindOptions:
        opts = FindOptions.parse(options)
        if self._known_fields is not None:
            unknown = sorted(opts.field_names() - self._known_fields)
            if unknown:
                raise InvalidQueryError(f"Unknown fields in options: {', '.join(unknown)}")
        return opts

    def _to_record(self, entity: Mapping[str, Any]) -> StoredRecord:
        if not isinstance(entity, Mapping):
            raise InvalidEntityError(f"Entity must be a mapping, got {type(entity).__name__}")
        if not is_valid_id(entity.get(ID_FIELD)):
            raise InvalidEntityError(f"Entity must have an integer {ID_FIELD}, got {entity.get(ID_FIELD)!r}")

        for name in entity:
            if not isinstance(name, str) or name.startswith(OPERATOR_PREFIX):
                raise InvalidEntityError(f"Invalid entity field name: {name!r}")
        if self._known_fields is not None:
            unknown = sorted(set(entity) - self._known_fields)
            if unknown:
                raise InvalidEntityError(f"Undeclared entity fields: {', '.join(unknown)}")

        try:
            return StoredRecord.live(copy.deepcopy(dict(entity)))
        except (TypeError, ValueError) as e:
            raise InvalidEntityError(f"Entity is not JSON serializable: {e}") from e

    async def close(self) -> None:
        """Wait for pending mutations, then stop the write queue."""
        await self._writes.close()

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
