"""
Daemon configuration API endpoints for CrossSeed UI.

This module provides REST API endpoints for the cross-seed configuration
file:
- Read the full configuration
- Full replace (PUT) and partial merge (PATCH), both reporting which keys
  changed and whether the daemon must restart
- Raw export as a download
- List, create, delete and restore backups

The routes are plain ``def`` functions; FastAPI runs them in its threadpool
so file I/O and the per-file lock never block the event loop.
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from crossseed_ui.api.deps import get_config_store
from crossseed_ui.core.auth import SessionPrincipal, require_session
from crossseed_ui.core.exceptions import ConfigNotFoundError, ConfigParseError
from crossseed_ui.core.rate_limit import limiter
from crossseed_ui.schemas.config import (
    BackupCreateRequest,
    ConfigResponse,
    ConfigWriteResponse,
    RestoreRequest,
)
from crossseed_ui.services.config_file import ConfigFileStore
from crossseed_ui.services.config_store import ConfigDraft

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/config",
    tags=["config"],
)


def _write_response(before: dict[str, Any], after: dict[str, Any]) -> JSONResponse:
    draft = ConfigDraft(before)
    changed = draft.replace(after)
    body = ConfigWriteResponse(
        config=after,
        changed_fields=sorted(changed),
        requires_restart=draft.requires_restart,
    )
    return JSONResponse(content=body.model_dump())


@router.get("")
@limiter.limit("60/minute")
def get_config(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    """
    Return the current configuration.

    404 with ``exists: false`` when the file is missing; 500 with
    ``exists: true`` when it is present but unreadable.
    """
    try:
        config = store.read()
    except ConfigNotFoundError as e:
        logger.warning("config_file_missing", path=str(store.path))
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": e.message, "exists": False},
        )
    except ConfigParseError as e:
        logger.error("config_file_unparseable", path=str(store.path), error=e.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": e.message, "exists": True},
        )

    return JSONResponse(content=ConfigResponse(config=config.to_file_dict()).model_dump())


@router.put("")
@limiter.limit("20/minute")
def replace_config(
    request: Request,
    payload: dict[str, Any] = Body(...),
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    """Replace the whole file. The body is validated against the full schema."""
    before, after = store.write(payload)
    logger.info("config_replaced", username=principal.username, keys=len(after))
    return _write_response(before, after)


@router.patch("")
@limiter.limit("30/minute")
def update_config(
    request: Request,
    payload: dict[str, Any] = Body(...),
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    """Merge the given keys into the file as it is on disk right now."""
    before, after = store.apply_partial(payload)
    logger.info("config_patched", username=principal.username, keys=sorted(payload))
    return _write_response(before, after)


@router.get("/export")
@limiter.limit("20/minute")
def export_config(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> Response:
    text = store.read_text()
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    suffix = store.path.suffix or ".js"
    return Response(
        content=text,
        media_type="application/javascript" if suffix in (".js", ".cjs") else "application/json",
        headers={"Content-Disposition": f'attachment; filename="config-{stamp}{suffix}"'},
    )


@router.get("/backups")
@limiter.limit("60/minute")
def list_backups(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    backups = store.list_backups()
    return JSONResponse(content={"backups": [b.model_dump() for b in backups]})


@router.post("/backups")
@limiter.limit("10/minute")
def create_backup(
    request: Request,
    payload: BackupCreateRequest | None = None,
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    reason = payload.reason if payload else "manual"
    backup = store.create_backup(reason=reason)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"success": True, "backup": backup.model_dump()},
    )


@router.delete("/backups")
@limiter.limit("20/minute")
def delete_backup(
    request: Request,
    filename: str = Query(..., min_length=1, max_length=255),
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    store.delete_backup(filename)
    return JSONResponse(content={"success": True})


@router.post("/restore")
@limiter.limit("10/minute")
def restore_backup(
    request: Request,
    payload: RestoreRequest,
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    """
    Restore a backup over the config file.

    A ``pre-restore`` backup of the current file is taken first. ``config``
    is null if the restored file does not parse.
    """
    pre_restore, restored = store.restore(payload.filename)
    logger.info("config_restore_requested", username=principal.username, filename=payload.filename)
    return JSONResponse(
        content={
            "success": True,
            "pre_restore_backup": pre_restore.model_dump() if pre_restore else None,
            "config": restored.to_file_dict() if restored else None,
        }
    )
