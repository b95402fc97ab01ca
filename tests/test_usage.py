"""
tests/test_usage.py

Usage and access recording: scheduled on the running loop, never raising.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

import db.usage as usage_module
from db.mongo import Settings
from db.usage import (
    ACCESS_COLLECTION,
    USAGE_COLLECTION,
    LoggingUsageRecorder,
    MongoUsageRecorder,
    get_usage_recorder,
)


def fake_database():
    collections = {
        USAGE_COLLECTION: MagicMock(insert_one=AsyncMock()),
        ACCESS_COLLECTION: MagicMock(insert_one=AsyncMock()),
    }
    return collections, AsyncMock(return_value=collections)


class TestMongoUsageRecorder:
    @pytest.mark.asyncio
    async def test_usage_record_is_inserted(self):
        collections, get_database = fake_database()
        recorder = MongoUsageRecorder(get_database=get_database)
        ts = datetime(2024, 5, 1, tzinfo=timezone.utc)

        recorder.record("user-1", "text-generation", "gpt2", ts)
        await recorder.drain()

        collections[USAGE_COLLECTION].insert_one.assert_awaited_once_with(
            {
                "user_id": "user-1",
                "task": "text-generation",
                "model_used": "gpt2",
                "service": "huggingface",
                "ts": ts,
            }
        )

    @pytest.mark.asyncio
    async def test_access_record_gets_a_timestamp(self):
        collections, get_database = fake_database()
        recorder = MongoUsageRecorder(get_database=get_database)

        recorder.record_access({"route": "/healthz", "method": "GET", "status_code": 200})
        await recorder.drain()

        doc = collections[ACCESS_COLLECTION].insert_one.await_args.args[0]
        assert doc["route"] == "/healthz"
        assert isinstance(doc["ts"], datetime)

    @pytest.mark.asyncio
    async def test_insert_failure_is_swallowed(self):
        collections, get_database = fake_database()
        collections[USAGE_COLLECTION].insert_one.side_effect = RuntimeError("mongo down")
        recorder = MongoUsageRecorder(get_database=get_database)

        recorder.record("user-1", "sentiment-analysis", "acme/sentiment")
        await recorder.drain()

        collections[USAGE_COLLECTION].insert_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_record_does_not_wait_for_the_write(self):
        _, get_database = fake_database()
        recorder = MongoUsageRecorder(get_database=get_database)

        recorder.record("user-1", "conversation", "acme/chat")

        get_database.assert_not_awaited()
        await recorder.drain()
        get_database.assert_awaited_once()

    def test_without_running_loop_the_record_is_dropped(self):
        _, get_database = fake_database()
        recorder = MongoUsageRecorder(get_database=get_database)

        recorder.record("user-1", "conversation", "acme/chat")

        get_database.assert_not_called()


def test_logging_recorder_never_raises():
    recorder = LoggingUsageRecorder()
    recorder.record("user-1", "text-generation", "gpt2")
    recorder.record_access({"route": "/healthz", "method": "GET", "status_code": 200, "timing_ms": 1.2})


@pytest.mark.parametrize(
    "backend,expected",
    [("log", LoggingUsageRecorder), ("mongo", MongoUsageRecorder)],
)
def test_backend_selection(monkeypatch, backend, expected):
    monkeypatch.setattr(usage_module, "get_settings", lambda: Settings(usage_backend=backend))
    assert isinstance(get_usage_recorder(), expected)
