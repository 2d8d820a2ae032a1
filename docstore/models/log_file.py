"""
LogFile - the flat-file record log backing a store.

On-disk format: UTF-8 text, one record per line, lines separated by '\\n'.
Every non-empty line is a tag character ('E' live, 'D' deleted) followed by
the entity as a compact JSON object. Blank lines (including the leading blank
line older writers produced) are ignored on read.

Deletion flips the tag of the existing lines in place during a rewrite; no
separate tombstone line is added.
"""

import asyncio
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from docstore.models.record import StoredRecord

logger = logging.getLogger(__name__)


class LogFile:
    """
    Owns the log file of a store.

    Reads always load the entire file. Writes rewrite the entire file
    through a temp file that atomically replaces the log.
    """

    TEMP_SUFFIX = ".tmp"

    def __init__(self, file_path: str, fsync: bool = True) -> None:
        """
        Initialize LogFile.

        Args:
            file_path: Path to the log file.
            fsync: Whether to fsync rewritten data before replacing the log.
        """
        self.file_path = file_path
        self._fsync = fsync

    @property
    def temp_path(self) -> str:
        return self.file_path + self.TEMP_SUFFIX

    def create(self) -> bool:
        """
        Create an empty log file (and parent directories) if missing.

        Returns:
            True if a new file was created.
        """
        Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.file_path, "x", encoding="utf-8"):
                pass
        except FileExistsError:
            return False
        logger.info(f"Created empty log file {self.file_path}")
        return True

    async def load_all(self) -> list[StoredRecord]:
        """
        Read every record of the log in file order.

        Raises:
            OSError: If the file cannot be read (including when it is missing).
            RecordDecodeError: If any line cannot be decoded.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load_all_sync)

    def _load_all_sync(self) -> list[StoredRecord]:
        """Sync implementation for thread pool execution."""
        with open(self.file_path, "r", encoding="utf-8", newline="") as f:
            data = f.read()

        records = []
        # str.splitlines() would also split on U+2028 inside JSON strings
        for line_no, line in enumerate(data.split("\n"), start=1):
            if not line:
                continue
            records.append(StoredRecord.from_line(line, line_no))

        logger.debug(f"Loaded {len(records)} records from {self.file_path}")
        return records

    async def load(self) -> list[dict[str, Any]]:
        """
        Materialize the live entities of the log.

        The last line bearing an identifier decides its liveness and content.
        Entities are returned in the file order of their deciding line.
        """
        latest: dict[int, StoredRecord] = {}
        for record in await self.load_all():
            # Re-insert so ordering follows the latest occurrence
            latest.pop(record.id, None)
            latest[record.id] = record

        return [dict(record.entity) for record in latest.values() if not record.is_tombstone()]

    async def rewrite(
        self,
        inserts: Iterable[StoredRecord] = (),
        deleted_ids: Iterable[int] = (),
    ) -> None:
        """
        Rewrite the log with deletions applied and new records at the end.

        Existing records keep their position and content; those whose `_id`
        is in `deleted_ids` are flipped to tombstones.

        Callers must serialize rewrites; see WriteQueue.

        Args:
            inserts: Records to add after the existing ones.
            deleted_ids: Identifiers whose existing lines become tombstones.

        Raises:
            OSError: If the log cannot be read or written.
        """
        deleted = set(deleted_ids)
        new_records = list(inserts)

        existing = await self.load_all()
        records = [
            record.as_tombstone() if record.id in deleted else record
            for record in existing
        ]
        records.extend(new_records)

        data = "".join(record.to_line() + "\n" for record in records)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_sync, data)

        logger.debug(
            f"Rewrote {self.file_path}: {len(existing)} existing, "
            f"{len(new_records)} inserted, {len(deleted)} ids deleted"
        )

    def _write_sync(self, data: str) -> None:
        """Write to a temp file, then atomically replace the log with it."""
        temp_path = self.temp_path
        try:
            with open(temp_path, "w", encoding="utf-8", newline="") as f:
                f.write(data)
                f.flush()
                if self._fsync:
                    # Use fdatasync if available (Linux), fallback to fsync (macOS/Windows)
                    _sync_data = getattr(os, "fdatasync", os.fsync)
                    _sync_data(f.fileno())
            os.replace(temp_path, self.file_path)
        except OSError as e:
            logger.error(f"Failed to rewrite {self.file_path}: {e}")
            self._discard_temp()
            raise

    def _discard_temp(self) -> None:
        try:
            os.remove(self.temp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove temp file {self.temp_path}: {e}")
