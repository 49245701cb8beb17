"""Tests for snapshot merging and the cloud sync stubs."""

from datetime import datetime, timedelta, timezone

import pytest

from tutor.core.exceptions import SnapshotValidationError
from tutor.services.sync_service import LastWriteWinsMerge, SyncService


@pytest.fixture
def sync():
    return SyncService()


def test_newer_remote_wins(sync):
    local = {"exportedAt": "2026-01-01T00:00:00Z", "tag": "local"}
    remote = {"exportedAt": "2026-01-02T00:00:00Z", "tag": "remote"}
    assert sync.merge_snapshots(local, remote)["tag"] == "remote"


def test_newer_local_wins(sync):
    local = {"exportedAt": "2026-01-03T00:00:00+00:00", "tag": "local"}
    remote = {"exportedAt": "2026-01-02T00:00:00Z", "tag": "remote"}
    assert sync.merge_snapshots(local, remote)["tag"] == "local"


def test_tie_keeps_local(sync):
    local = {"exportedAt": "2026-01-01T00:00:00Z", "tag": "local"}
    remote = {"exportedAt": "2026-01-01T00:00:00+00:00", "tag": "remote"}
    assert sync.merge_snapshots(local, remote)["tag"] == "local"


def test_offsets_are_compared_as_instants(sync):
    # 01:00+02:00 is 23:00 UTC the day before
    local = {"exportedAt": "2026-01-02T01:00:00+02:00", "tag": "local"}
    remote = {"exportedAt": "2026-01-01T23:30:00Z", "tag": "remote"}
    assert sync.merge_snapshots(local, remote)["tag"] == "remote"


def test_missing_timestamp_is_rejected(sync):
    with pytest.raises(SnapshotValidationError) as exc_info:
        sync.merge_snapshots({"tag": "local"}, {"exportedAt": "2026-01-01T00:00:00Z"})
    assert exc_info.value.errors == ["local: Export timestamp is required"]


def test_custom_strategy_is_used():
    class AlwaysRemote:
        def merge(self, local, remote):
            return remote

    sync = SyncService(strategy=AlwaysRemote())
    assert sync.merge_snapshots({"a": 1}, {"b": 2}) == {"b": 2}


def test_default_strategy_is_last_write_wins(sync):
    assert isinstance(sync.strategy, LastWriteWinsMerge)


async def test_cloud_sync_is_not_available(sync, caplog):
    import logging

    caplog.set_level(logging.INFO)

    assert await sync.sync_to_cloud("u1", {"version": "1.1.0"}) is False
    assert await sync.sync_from_cloud("u1") is None
    assert "not implemented" in caplog.text


def test_needs_sync():
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert SyncService.needs_sync(now, now + timedelta(seconds=1))
    assert not SyncService.needs_sync(now, now)
    assert not SyncService.needs_sync(now, now - timedelta(minutes=5))
