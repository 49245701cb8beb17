"""Snapshot merging and the (not yet available) cloud sync hooks."""

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from tutor.core.exceptions import SnapshotValidationError
from tutor.core.validators import parse_exported_at

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    return moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment


class MergeStrategy(Protocol):
    def merge(self, local: dict[str, Any], remote: dict[str, Any]) -> dict[str, Any]: ...


class LastWriteWinsMerge:
    """Keep whichever whole snapshot was exported later; ties keep the local one."""

    def merge(self, local: dict[str, Any], remote: dict[str, Any]) -> dict[str, Any]:
        local_time = parse_exported_at(local.get("exportedAt"))
        remote_time = parse_exported_at(remote.get("exportedAt"))

        errors = []
        if local_time is None:
            errors.append("local: Export timestamp is required")
        if remote_time is None:
            errors.append("remote: Export timestamp is required")
        if errors:
            raise SnapshotValidationError(errors)

        return remote if _as_utc(remote_time) > _as_utc(local_time) else local


class SyncService:
    """Cloud sync entry points. Only the merge step is functional."""

    def __init__(self, strategy: MergeStrategy | None = None) -> None:
        self.strategy = strategy or LastWriteWinsMerge()

    async def sync_to_cloud(self, user_id: str, document: dict[str, Any]) -> bool:
        logger.info(f"Cloud sync not implemented; nothing uploaded for user {user_id}")
        return False

    async def sync_from_cloud(self, user_id: str) -> dict[str, Any] | None:
        logger.info(f"Cloud sync not implemented; nothing downloaded for user {user_id}")
        return None

    @staticmethod
    def needs_sync(last_sync: datetime, change_time: datetime) -> bool:
        return _as_utc(change_time) > _as_utc(last_sync)

    def merge_snapshots(self, local: dict[str, Any], remote: dict[str, Any]) -> dict[str, Any]:
        return self.strategy.merge(local, remote)


sync_service = SyncService()
