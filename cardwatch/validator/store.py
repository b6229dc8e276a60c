"""
Violation Store

Persistence for ViolationRecords, keyed uniquely by card id.

The default implementation keeps records in a JSON file
(~/.cardwatch/violations.json). The server and the cardwatch-sweep command
may share one file, so every operation re-reads it under an exclusive
flock on a sidecar lock file. Writes go to a temp file that replaces the
original, so a failed write leaves the previous state on disk.
"""

import fcntl
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from pydantic import ValidationError

from ..common.config import STORE_PATH
from ..common.schemas.violation import ViolationRecord

logger = logging.getLogger("cardwatch.validator.store")


class StoreError(Exception):
    """Store read or write failed."""
    pass


class DuplicateRecordError(StoreError):
    """A record for this card id already exists."""

    def __init__(self, card_id: str):
        super().__init__(f"Violation record already exists for card {card_id}")
        self.card_id = card_id


class RecordNotFoundError(StoreError):
    """No record for this card id."""

    def __init__(self, card_id: str):
        super().__init__(f"No violation record for card {card_id}")
        self.card_id = card_id


class ViolationStore(ABC):
    """
    Abstract store interface.

    Implementations must enforce one record per card id: create() raises
    DuplicateRecordError when a record already exists.
    """

    @abstractmethod
    async def find_by_card_id(self, card_id: str) -> Optional[ViolationRecord]:
        pass

    @abstractmethod
    async def create(self, record: ViolationRecord) -> ViolationRecord:
        pass

    @abstractmethod
    async def increment_warning(self, card_id: str) -> ViolationRecord:
        """Increment and persist warning_count; returns the updated record."""
        pass

    @abstractmethod
    async def delete(self, card_id: str) -> bool:
        """Delete the record; returns False if there was none."""
        pass

    @abstractmethod
    async def list_all_invalid(self) -> List[ViolationRecord]:
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, int]:
        """Counts for health and stats endpoints"""
        pass


class JsonViolationStore(ViolationStore):
    """JSON-file backed store, safe to share between processes"""

    def __init__(self, store_path: Optional[Path] = None):
        """
        Initialize store.

        Args:
            store_path: Path to store file (default: ~/.cardwatch/violations.json)
        """
        self._store_path = Path(store_path) if store_path else STORE_PATH
        self._lock_path = self._store_path.with_suffix(self._store_path.suffix + ".lock")
        self._records: Dict[str, ViolationRecord] = {}
        self._load()

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """Hold an exclusive flock on the sidecar lock file"""
        try:
            self._lock_path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(self._lock_path, "a+")
        except OSError as e:
            raise StoreError(f"Failed to open store lock {self._lock_path}: {e}") from e

        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            yield
        finally:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
            finally:
                fh.close()

    def _read(self) -> Dict[str, ViolationRecord]:
        """
        Read records from disk.

        A missing file is an empty store. An unparseable file is logged
        and treated as empty; an unreadable one raises StoreError.
        """
        if not self._store_path.exists():
            return {}

        try:
            with open(self._store_path) as f:
                data = json.load(f)
            records = [ViolationRecord.model_validate(item) for item in data]
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning("Failed to load violation store %s: %s", self._store_path, e)
            return {}
        except OSError as e:
            raise StoreError(f"Failed to read violation store: {e}") from e

        return {record.card_id: record for record in records}

    def _load(self) -> None:
        """Refresh the in-memory view from disk"""
        try:
            with self._file_lock():
                self._records = self._read()
        except StoreError as e:
            logger.warning("Starting with an empty violation store: %s", e)
            self._records = {}

    def _save(self, records: Dict[str, ViolationRecord]) -> None:
        """Write records to disk atomically"""
        data = [record.model_dump(mode="json") for record in records.values()]

        try:
            self._store_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._store_path.parent, prefix=".violations-", suffix=".json"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self._store_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StoreError(f"Failed to write violation store: {e}") from e

    def _commit(self, records: Dict[str, ViolationRecord]) -> None:
        # Caller holds the file lock; memory only changes once the write succeeded
        self._save(records)
        self._records = records

    async def find_by_card_id(self, card_id: str) -> Optional[ViolationRecord]:
        with self._file_lock():
            self._records = self._read()
        record = self._records.get(card_id)
        return record.model_copy() if record else None

    async def create(self, record: ViolationRecord) -> ViolationRecord:
        with self._file_lock():
            records = self._read()
            if record.card_id in records:
                self._records = records
                raise DuplicateRecordError(record.card_id)

            records[record.card_id] = record
            self._commit(records)

        logger.info("Created violation record for card %s", record.card_id)
        return record.model_copy()

    async def increment_warning(self, card_id: str) -> ViolationRecord:
        with self._file_lock():
            records = self._read()
            current = records.get(card_id)
            if current is None:
                self._records = records
                raise RecordNotFoundError(card_id)

            updated = current.model_copy(update={
                "warning_count": current.warning_count + 1,
                "updated_at": datetime.now(timezone.utc),
            })
            records[card_id] = updated
            self._commit(records)

        return updated.model_copy()

    async def delete(self, card_id: str) -> bool:
        with self._file_lock():
            records = self._read()
            if card_id not in records:
                self._records = records
                return False

            del records[card_id]
            self._commit(records)

        logger.info("Deleted violation record for card %s", card_id)
        return True

    async def list_all_invalid(self) -> List[ViolationRecord]:
        with self._file_lock():
            self._records = self._read()
        return [record.model_copy() for record in self._records.values() if not record.is_valid]

    def get_stats(self) -> Dict[str, int]:
        """Get store statistics"""
        with self._file_lock():
            self._records = self._read()
        warnings = [record.warning_count for record in self._records.values()]
        return {
            "tracked": len(warnings),
            "max_warning_count": max(warnings, default=0),
        }
