"""
Prowlarr integration API endpoints for CrossSeed UI.

This module provides REST API endpoints for:
- Saving, reading and removing the Prowlarr connection (API key encrypted)
- Testing a Prowlarr connection
- Listing Prowlarr indexers with the local enabled flag
- Testing a single indexer through Prowlarr
- Running a manual sync and reading the schedule, sync history and
  background scheduler state

All endpoints require an authenticated session.
"""

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from crossseed_ui.api.deps import get_scheduler, get_sync_service
from crossseed_ui.core.auth import SessionPrincipal, require_session
from crossseed_ui.core.exceptions import NotFoundError
from crossseed_ui.core.rate_limit import limiter
from crossseed_ui.core.security import EncryptionError, decrypt_field, mask_secret
from crossseed_ui.database import get_db
from crossseed_ui.schemas.prowlarr import ProwlarrSettingsRequest, ProwlarrTestRequest, SyncRequest
from crossseed_ui.services.prowlarr_sync import ProwlarrSyncService
from crossseed_ui.services.scheduler import JobScheduler

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/prowlarr",
    tags=["prowlarr"],
)


@router.get("")
@limiter.limit("60/minute")
async def get_prowlarr_settings(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
) -> JSONResponse:
    """Return the saved integration with the API key masked."""
    cfg = service.get_settings(db)
    if cfg is None:
        return JSONResponse(content={"configured": False})

    try:
        api_key_masked = mask_secret(decrypt_field(cfg.encrypted_api_key))
    except EncryptionError:
        api_key_masked = ""

    return JSONResponse(
        content={
            "configured": True,
            "url": cfg.url,
            "api_key_masked": api_key_masked,
            "sync_enabled": bool(cfg.sync_enabled),
            "sync_interval": cfg.sync_interval,
            "last_sync": cfg.last_sync.isoformat() if cfg.last_sync else None,
            "last_sync_status": cfg.last_sync_status,
        }
    )


@router.put("")
@limiter.limit("10/minute")
async def save_prowlarr_settings(
    request: Request,
    payload: ProwlarrSettingsRequest,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
) -> JSONResponse:
    cfg = service.save_settings(
        db,
        url=payload.url,
        api_key=payload.api_key,
        sync_enabled=payload.sync_enabled,
        sync_interval=payload.sync_interval,
    )
    return JSONResponse(
        content={
            "success": True,
            "url": cfg.url,
            "sync_enabled": bool(cfg.sync_enabled),
            "sync_interval": cfg.sync_interval,
        }
    )


@router.delete("")
@limiter.limit("10/minute")
async def delete_prowlarr_settings(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
) -> JSONResponse:
    service.delete_settings(db)
    return JSONResponse(content={"success": True})


@router.post("/test")
@limiter.limit("10/minute")
async def test_prowlarr_connection(
    request: Request,
    payload: ProwlarrTestRequest,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
) -> JSONResponse:
    """Test a URL/key pair; omit the key to reuse the saved one."""
    result = await service.test_connection(db, payload.url, payload.api_key)
    return JSONResponse(content=result)


@router.get("/indexers")
@limiter.limit("30/minute")
async def list_prowlarr_indexers(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
) -> JSONResponse:
    indexers = await service.list_indexers(db)
    return JSONResponse(content={"indexers": indexers})


@router.post("/indexers/{indexer_id}/test")
@limiter.limit("20/minute")
async def test_prowlarr_indexer(
    request: Request,
    indexer_id: int,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
) -> JSONResponse:
    if indexer_id <= 0:
        raise NotFoundError(f"Indexer not found: {indexer_id}")
    result = await service.test_indexer(db, indexer_id)
    return JSONResponse(content=result)


@router.post("/sync")
@limiter.limit("10/minute")
async def sync_prowlarr_indexers(
    request: Request,
    payload: SyncRequest,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
) -> JSONResponse:
    """
    Put exactly the selected indexers into the daemon's torznab list.

    Manual torznab entries are kept. A failed sync is recorded in the
    history before the error is returned.
    """
    result = await service.run_manual(db, payload.indexer_ids)
    logger.info(
        "prowlarr_manual_sync_requested",
        username=principal.username,
        synced=result.synced,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, **result.to_dict()},
    )


@router.get("/schedule")
@limiter.limit("60/minute")
async def get_prowlarr_schedule(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    service: ProwlarrSyncService = Depends(get_sync_service),
    scheduler: JobScheduler | None = Depends(get_scheduler),
) -> JSONResponse:
    """Sync settings, recent history and the state of the background scheduler."""
    info = service.schedule_info(db)
    if scheduler is not None:
        info["scheduler"] = scheduler.get_status()
    else:
        info["scheduler"] = {"running": False, "jobs": []}
    return JSONResponse(content=info)
