"""Tests for the expired upload sweeper."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from learnhub.core.exceptions import StorageError
from learnhub.services.sweeper import ExpirySweeper, sweep_expired_uploads


@pytest.mark.asyncio
async def test_sweep_removes_stale_pending_session(upload_store, mock_storage, session_factory):
    """A pending session created 25 hours ago is removed along with its object."""
    now = datetime.now(timezone.utc)
    upload_store.create(session_factory(created_at=now - timedelta(hours=25)))

    removed = await sweep_expired_uploads(upload_store, mock_storage, timedelta(hours=24), now=now)

    assert removed == 1
    assert upload_store.get("upload-1") is None
    mock_storage.remove.assert_awaited_once_with(
        "documents", ["courses/notes_1700000000000_0123456789abcdef.pdf"]
    )


@pytest.mark.asyncio
async def test_sweep_keeps_recent_and_completed_sessions(upload_store, mock_storage, session_factory):
    now = datetime.now(timezone.utc)
    upload_store.create(session_factory(upload_id="recent", created_at=now - timedelta(hours=23)))
    upload_store.create(session_factory(upload_id="done", created_at=now - timedelta(hours=48)))
    upload_store.mark_completed("done", {"secure_url": "https://x"}, now - timedelta(hours=47))

    removed = await sweep_expired_uploads(upload_store, mock_storage, timedelta(hours=24), now=now)

    assert removed == 0
    assert upload_store.get("recent") is not None
    assert upload_store.get("done") is not None
    mock_storage.remove.assert_not_called()


@pytest.mark.asyncio
async def test_sweep_deletes_entry_even_if_object_removal_fails(
    upload_store, mock_storage, session_factory
):
    now = datetime.now(timezone.utc)
    upload_store.create(session_factory(upload_id="a", created_at=now - timedelta(hours=30)))
    upload_store.create(session_factory(upload_id="b", created_at=now - timedelta(hours=26)))
    mock_storage.remove.side_effect = StorageError("Storage remove failed", error="500")

    removed = await sweep_expired_uploads(upload_store, mock_storage, timedelta(hours=24), now=now)

    assert removed == 2
    assert upload_store.get("a") is None
    assert upload_store.get("b") is None
    assert mock_storage.remove.await_count == 2


@pytest.mark.asyncio
async def test_expiry_sweeper_run_once(upload_store, mock_storage, session_factory):
    upload_store.create(
        session_factory(created_at=datetime.now(timezone.utc) - timedelta(hours=25))
    )
    sweeper = ExpirySweeper(
        store_factory=lambda: upload_store,
        storage_factory=lambda: mock_storage,
        interval_seconds=3600,
        max_age=timedelta(hours=24),
    )

    assert await sweeper.run_once() == 1
    assert upload_store.get("upload-1") is None


@pytest.mark.asyncio
async def test_expiry_sweeper_loop_survives_errors(upload_store, mock_storage):
    calls = []

    def failing_store():
        calls.append(1)
        raise RuntimeError("store unavailable")

    sweeper = ExpirySweeper(
        store_factory=failing_store,
        storage_factory=lambda: mock_storage,
        interval_seconds=0,
        max_age=timedelta(hours=24),
    )

    sweeper.start()
    await asyncio.sleep(0.05)
    await sweeper.stop()

    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_expiry_sweeper_stop_without_start(mock_storage, upload_store):
    sweeper = ExpirySweeper(
        store_factory=lambda: upload_store,
        storage_factory=lambda: mock_storage,
        interval_seconds=3600,
        max_age=timedelta(hours=24),
    )

    await sweeper.stop()
