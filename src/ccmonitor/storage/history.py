"""Durable JSON history of session metadata."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from ..errors import PersistenceError
from ..sessions import SessionStatus
from .models import HistoryRecord

logger = logging.getLogger(__name__)

Writer = Callable[[Path, str], None]


def replace_file(path: Path, payload: str) -> None:
    """Swap ``path`` for a file holding ``payload``.

    The payload is staged in a sibling file and renamed over the target, so
    readers see either the previous image or the new one in full.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    staging: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".partial",
            delete=False,
        ) as staged:
            staging = Path(staged.name)
            staged.write(payload)
            staged.flush()
            os.fsync(staged.fileno())
        os.replace(staging, path)
    except BaseException:
        if staging is not None:
            staging.unlink(missing_ok=True)
        raise


class HistoryStore:
    """Keep session history in memory and mirror it to a JSON file.

    Every mutation is followed by a full snapshot write. Writes go through a
    single lock, so a caller that mutates while another write is in flight
    waits for it and then writes a snapshot that includes both changes. The
    file is replaced atomically, never written in place.
    """

    def __init__(
        self,
        path: Path,
        *,
        clock: Callable[[], datetime] | None = None,
        writer: Writer | None = None,
    ) -> None:
        self._path = Path(path)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._writer = writer or replace_file
        self._records: dict[str, HistoryRecord] = {}
        self._write_lock = asyncio.Lock()
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._records)

    async def load(self) -> None:
        """Read the history image, creating an empty one if none exists yet."""

        if not self._path.exists():
            self._records = {}
            self._loaded = True
            await self._persist()
            return

        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            document = json.loads(raw)
            if not isinstance(document, list):
                raise ValueError("history image must be a JSON array")
            records = [HistoryRecord.from_dict(item) for item in document]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.error(
                "Failed to load history; starting empty",
                extra={"path": str(self._path), "error": str(exc)},
            )
            records = []

        self._records = {record.id: record for record in records}
        self._loaded = True
        logger.info("Loaded history", extra={"path": str(self._path), "count": len(self._records)})

    def get_history(self) -> list[HistoryRecord]:
        return [record.copy() for record in self._records.values()]

    def get(self, session_id: str) -> HistoryRecord | None:
        record = self._records.get(session_id)
        return record.copy() if record is not None else None

    async def save_session(self, record: HistoryRecord) -> None:
        """Insert a record, or replace the record with the same id in place."""

        self._records[record.id] = record.copy()
        await self._persist()

    async def update_status(
        self,
        session_id: str,
        status: SessionStatus,
        output_size: int | None = None,
    ) -> bool:
        record = self._records.get(session_id)
        if record is None or record.ended_at is not None:
            return False
        record.status = SessionStatus(status)
        if output_size is not None:
            record.output_size = output_size
        await self._persist()
        return True

    async def end_session(self, session_id: str, output_size: int | None = None) -> bool:
        """Mark a record completed with an end time; repeated calls change nothing."""

        record = self._records.get(session_id)
        if record is None or record.ended_at is not None:
            return False
        record.status = SessionStatus.COMPLETED
        record.ended_at = self._clock()
        if output_size is not None:
            record.output_size = output_size
        await self._persist()
        return True

    async def remove_session(self, session_id: str) -> bool:
        if self._records.pop(session_id, None) is None:
            return False
        await self._persist()
        return True

    async def clear_history(self) -> None:
        self._records = {}
        await self._persist()
        logger.info("History cleared", extra={"path": str(self._path)})

    async def _persist(self) -> bool:
        async with self._write_lock:
            payload = json.dumps([record.to_dict() for record in self._records.values()], indent=2)
            try:
                await asyncio.to_thread(self._write_snapshot, payload)
            except PersistenceError as exc:
                logger.error(
                    "Failed to save history",
                    extra={"path": str(self._path), "error": str(exc)},
                )
                return False
            return True

    def _write_snapshot(self, payload: str) -> None:
        try:
            self._writer(self._path, payload)
        except OSError as exc:
            raise PersistenceError(f"Could not write history to {self._path}: {exc}") from exc


__all__ = ["HistoryStore", "replace_file"]
