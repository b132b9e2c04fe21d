"""
Job & Channel Logs — Durable id → conversation-reference records.

Both logs live in the shared storage backend under a fixed key, so they
are visible from every conversation and survive restarts when the
backend is durable:

  JobLog     "niles/job_log"      outstanding async jobs, one per finished flow
  ChannelLog "niles/channel_log"  conversations that follow broadcast notifications

Every read-modify-write cycle holds the backend's per-key lock, and ids
are random (`job_<hex>` / `chn_<hex>`) and regenerated on collision, so
concurrent creations from different conversations never share an id.
"""
from __future__ import annotations

import uuid
import structlog
from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from database.store_base import BaseStorage
from models.schemas import ChannelRecord, ConversationReference, JobRecord, LogRecord

logger = structlog.get_logger()

R = TypeVar("R", bound=LogRecord)


class RecordLog(Generic[R]):
    """Base for a log of records keyed by unique id."""

    record_model: type[R] = LogRecord
    storage_key: str = ""
    id_prefix: str = "rec"
    title: str = "Record number"
    empty_message: str = "The log is empty."

    def __init__(self, storage: BaseStorage):
        if storage is None:
            raise ValueError(f"{type(self).__name__} requires a storage backend")
        self._storage = storage

    # ── Persistence ───────────────────────────────────────────

    async def get(self) -> dict[str, R]:
        """Current mapping of record id → record."""
        item = await self._storage.read(self.storage_key)
        if item is None:
            return {}
        return {
            record_id: self.record_model.model_validate(raw)
            for record_id, raw in item.data.get("records", {}).items()
        }

    async def _save(self, records: dict[str, R]) -> None:
        await self._storage.write(self.storage_key, {
            "records": {rid: r.model_dump(mode="json") for rid, r in records.items()},
        })

    def _new_id(self, existing: dict[str, R]) -> str:
        while True:
            record_id = f"{self.id_prefix}_{uuid.uuid4().hex}"
            if record_id not in existing:
                return record_id

    # ── Mutations ─────────────────────────────────────────────

    async def create(self, reference: ConversationReference) -> R:
        async with self._storage.lock(self.storage_key):
            records = await self.get()
            record = self.record_model(id=self._new_id(records), conversation=reference)
            records[record.id] = record
            await self._save(records)

        logger.info("log_record_created", log=self.storage_key,
                    record_id=record.id, conversation_id=reference.conversation.id)
        return record

    async def upsert(self, reference: ConversationReference) -> tuple[R, bool]:
        """Create a record for the conversation, or refresh the existing one. Returns (record, created)."""
        async with self._storage.lock(self.storage_key):
            records = await self.get()
            for record in records.values():
                if record.conversation.conversation.id == reference.conversation.id:
                    record.conversation = reference
                    await self._save(records)
                    return record, False

            record = self.record_model(id=self._new_id(records), conversation=reference)
            records[record.id] = record
            await self._save(records)

        logger.info("log_record_created", log=self.storage_key,
                    record_id=record.id, conversation_id=reference.conversation.id)
        return record, True

    async def mark_completed(self, record_id: str) -> Optional[R]:
        """Flip the completion flag. Returns None for an unknown id."""
        async with self._storage.lock(self.storage_key):
            records = await self.get()
            record = records.get(record_id)
            if record is None:
                return None
            if not record.completed:
                record.completed = True
                record.completed_at = datetime.now(timezone.utc)
                await self._save(records)

        logger.info("log_record_completed", log=self.storage_key, record_id=record_id)
        return record

    # ── Listing ───────────────────────────────────────────────

    async def list(self) -> list[R]:
        records = await self.get()
        return sorted(records.values(), key=lambda r: (r.created_at, r.id))

    async def render(self) -> str:
        records = await self.list()
        if not records:
            return self.empty_message

        lines = [
            f"| {self.title} | Conversation ID | Completed |",
            "| :--- | :---: | :---: |",
        ]
        for r in records:
            lines.append(f"| {r.id} | {r.conversation.conversation_key} | {r.completed} |")
        return "\n".join(lines)


class JobLog(RecordLog[JobRecord]):
    record_model = JobRecord
    storage_key = "niles/job_log"
    id_prefix = "job"
    title = "Job number"
    empty_message = "The job log is empty."


class ChannelLog(RecordLog[ChannelRecord]):
    record_model = ChannelRecord
    storage_key = "niles/channel_log"
    id_prefix = "chn"
    title = "Channel number"
    empty_message = "The channel log is empty."

    async def record_deliveries(self, record_ids: list[str]) -> None:
        """Stamp delivery bookkeeping on the given channels in one write."""
        if not record_ids:
            return
        now = datetime.now(timezone.utc)
        async with self._storage.lock(self.storage_key):
            records = await self.get()
            for record_id in record_ids:
                record = records.get(record_id)
                if record is None:
                    continue
                record.last_notified_at = now
                record.notification_count += 1
            await self._save(records)
