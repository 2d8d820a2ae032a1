"""
Data models for the document store.
"""

from docstore.models.log_file import LogFile
from docstore.models.record import RecordTag, StoredRecord

__all__ = [
    "LogFile",
    "RecordTag",
    "StoredRecord",
]
