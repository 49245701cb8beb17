"""Backup, export, import and sync endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.config import settings
from tutor.models.envelope import success_response
from tutor.models.snapshot import BackupStatus, MergeRequest, ObfuscateRequest, ObfuscatedBackup
from tutor.services.backup_service import backup_service
from tutor.services.redis_client import BackupSlot, get_backup_slot
from tutor.services.sync_service import sync_service

router = APIRouter()

Slot = Annotated[BackupSlot, Depends(get_backup_slot)]


async def _import(document: Any, user_id: str, db, locks) -> dict:
    async with locks.hold(user_id):
        summary = await backup_service.import_user(document, user_id, db)
        await db.commit()
    return success_response(summary.model_dump())


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

@router.get("/export")
async def export_user(user_id: CurrentUserId, db: DbSession) -> dict:
    """Snapshot of the current user's records."""
    snapshot = await backup_service.export_user(user_id, db)
    return success_response(snapshot.to_document())


@router.get("/export/all")
async def export_all(user_id: CurrentUserId, db: DbSession) -> dict:
    """Snapshot of every user. Only available in dev mode."""
    if not settings.dev_mode:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Full export is only available in dev mode",
        )
    snapshot = await backup_service.export_all(db)
    return success_response(snapshot.to_document())


@router.post("/export/obfuscated")
async def export_obfuscated(
    body: ObfuscateRequest,
    user_id: CurrentUserId,
    db: DbSession,
) -> dict:
    """Export the current user with light (not secure) obfuscation applied."""
    snapshot = await backup_service.export_user(user_id, db)
    payload = backup_service.obfuscate_snapshot(snapshot.to_document(), body.passphrase)
    return success_response({"payload": payload})


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

@router.post("/import")
async def import_snapshot(
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
    document: Any = Body(...),
) -> dict:
    """Restore the current user's records from a snapshot document."""
    return await _import(document, user_id, db, locks)


@router.post("/import/file")
async def import_file(
    request: Request,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Restore from the raw bytes of a downloaded backup file."""
    document = backup_service.parse_backup(await request.body())
    return await _import(document, user_id, db, locks)


@router.post("/import/obfuscated")
async def import_obfuscated(
    body: ObfuscatedBackup,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    document = backup_service.deobfuscate_snapshot(body.payload, body.passphrase)
    return await _import(document, user_id, db, locks)


@router.post("/merge")
async def merge_snapshots(body: MergeRequest, user_id: CurrentUserId) -> dict:
    """Pick the newer of two snapshots by export time."""
    return success_response(sync_service.merge_snapshots(body.local, body.remote))


# ---------------------------------------------------------------------------
# Backup slot and files
# ---------------------------------------------------------------------------

@router.post("/slot", status_code=status.HTTP_201_CREATED)
async def save_to_slot(
    user_id: CurrentUserId,
    db: DbSession,
    slot: Slot,
) -> dict:
    """Store the current user's snapshot in the backup slot and as a file."""
    document = await backup_service.create_backup(db, slot=slot, user_id=user_id)
    return success_response({"exportedAt": document["exportedAt"]})


@router.get("/slot")
async def load_from_slot(user_id: CurrentUserId, slot: Slot) -> dict:
    document = await slot.load_latest(user_id)
    return success_response(document)


@router.post("/slot/restore")
async def restore_from_slot(
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
    slot: Slot,
) -> dict:
    document = await slot.load_latest(user_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No backup stored for this user",
        )
    return await _import(document, user_id, db, locks)


@router.get("/status")
async def backup_status(user_id: CurrentUserId, slot: Slot) -> dict:
    result = BackupStatus(
        last_backup_at=await slot.last_backup_time(user_id),
        backup_files=[p.name for p in backup_service.list_backup_files(user_id)],
    )
    return success_response(result.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Cloud sync
# ---------------------------------------------------------------------------

@router.post("/sync/push")
async def sync_push(user_id: CurrentUserId, db: DbSession) -> dict:
    snapshot = await backup_service.export_user(user_id, db)
    synced = await sync_service.sync_to_cloud(user_id, snapshot.to_document())
    return success_response({"synced": synced})


@router.post("/sync/pull")
async def sync_pull(user_id: CurrentUserId) -> dict:
    document = await sync_service.sync_from_cloud(user_id)
    return success_response(document)
