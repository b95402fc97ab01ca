"""
Fire-and-forget recording of model usage and API access.

Recorders never raise and never make the caller wait: Mongo writes are
scheduled on the running event loop and their failures are only logged.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from core.logger import logger
from db.mongo import get_db, get_settings

USAGE_COLLECTION = "usage_logs"
ACCESS_COLLECTION = "access_logs"


class UsageRecorder(ABC):
    @abstractmethod
    def record(
        self,
        user_id: str,
        task: str,
        model_used: str,
        timestamp: Optional[datetime] = None,
    ) -> None: ...

    @abstractmethod
    def record_access(self, doc: Dict[str, Any]) -> None: ...


class LoggingUsageRecorder(UsageRecorder):
    def record(self, user_id, task, model_used, timestamp=None) -> None:
        ts = timestamp or datetime.now(timezone.utc)
        logger.info(
            "Hugging Face API usage: user={} task={} model={} ts={}",
            user_id,
            task,
            model_used,
            ts.isoformat(),
        )

    def record_access(self, doc: Dict[str, Any]) -> None:
        logger.debug(
            "{} {} -> {} ({} ms)",
            doc.get("method"),
            doc.get("route"),
            doc.get("status_code"),
            doc.get("timing_ms"),
        )


class MongoUsageRecorder(UsageRecorder):
    def __init__(self, get_database=get_db):
        self._get_db = get_database
        self._pending: Set[asyncio.Task] = set()

    def record(self, user_id, task, model_used, timestamp=None) -> None:
        doc = {
            "user_id": user_id,
            "task": task,
            "model_used": model_used,
            "service": "huggingface",
            "ts": timestamp or datetime.now(timezone.utc),
        }
        self._submit(USAGE_COLLECTION, doc)

    def record_access(self, doc: Dict[str, Any]) -> None:
        doc.setdefault("ts", datetime.now(timezone.utc))
        self._submit(ACCESS_COLLECTION, doc)

    def _submit(self, collection: str, doc: Dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping {} record", collection)
            return

        task = loop.create_task(self._insert(collection, doc))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _insert(self, collection: str, doc: Dict[str, Any]) -> None:
        try:
            db = await self._get_db()
            await db[collection].insert_one(doc)
        except Exception as e:
            logger.warning("Error recording {} entry: {!r}", collection, e)

    async def drain(self) -> None:
        """Wait for the writes still in flight (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def get_usage_recorder() -> UsageRecorder:
    if get_settings().usage_backend == "log":
        return LoggingUsageRecorder()
    return MongoUsageRecorder()
