"""
Embedded single-file document store.

This package provides a small document database with:
- insert(entity) - Append an entity to the log
- find(query, options) - Full-scan query with $eq/$gt/$lt/$in, $and, $or,
  $text, sorting and projection
- delete(query) - Tombstone-based deletion
"""

from docstore.engine.database import Database
from docstore.engine.write_queue import WriteQueue
from docstore.models.exceptions import (
    CorruptRecordError,
    DocStoreError,
    InvalidEntityError,
    InvalidQueryError,
    MalformedLineError,
    QueryTypeMismatchError,
    RecordDecodeError,
)
from docstore.models.log_file import LogFile
from docstore.models.record import RecordTag, StoredRecord
from docstore.query import FindOptions, Operator, Predicate, Query

__all__ = [
    "CorruptRecordError",
    "Database",
    "DocStoreError",
    "FindOptions",
    "InvalidEntityError",
    "InvalidQueryError",
    "LogFile",
    "MalformedLineError",
    "Operator",
    "Predicate",
    "Query",
    "QueryTypeMismatchError",
    "RecordDecodeError",
    "RecordTag",
    "StoredRecord",
    "WriteQueue",
]
