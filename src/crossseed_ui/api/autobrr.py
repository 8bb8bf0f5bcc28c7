"""
autobrr integration API endpoints for CrossSeed UI.

This module provides REST API endpoints for:
- Saving, reading and removing the autobrr connection (API key encrypted)
- Testing an autobrr connection
- The webhook action that makes autobrr announce releases to the daemon

All endpoints require an authenticated session.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from crossseed_ui.api.deps import get_config_store, get_connection_tester
from crossseed_ui.core.auth import SessionPrincipal, require_session
from crossseed_ui.core.rate_limit import limiter
from crossseed_ui.core.security import EncryptionError, decrypt_field, mask_secret
from crossseed_ui.database import get_db
from crossseed_ui.schemas.autobrr import AutobrrSettingsRequest, AutobrrTestRequest
from crossseed_ui.services import autobrr
from crossseed_ui.services.config_file import ConfigFileStore
from crossseed_ui.services.connection_test import ConnectionTester

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/autobrr",
    tags=["autobrr"],
)


@router.get("")
@limiter.limit("60/minute")
async def get_autobrr_settings(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
) -> JSONResponse:
    cfg = autobrr.get_settings(db)
    if cfg is None or not cfg.url:
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
        }
    )


@router.put("")
@limiter.limit("10/minute")
async def save_autobrr_settings(
    request: Request,
    payload: AutobrrSettingsRequest,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
) -> JSONResponse:
    cfg = autobrr.save_settings(db, payload.url, payload.api_key)
    return JSONResponse(content={"success": True, "url": cfg.url})


@router.delete("")
@limiter.limit("10/minute")
async def delete_autobrr_settings(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
) -> JSONResponse:
    autobrr.delete_settings(db)
    return JSONResponse(content={"success": True})


@router.post("/test")
@limiter.limit("10/minute")
async def test_autobrr_connection(
    request: Request,
    payload: AutobrrTestRequest,
    principal: SessionPrincipal = Depends(require_session),
    db: Session = Depends(get_db),
    tester: ConnectionTester = Depends(get_connection_tester),
) -> JSONResponse:
    """Test a URL/key pair; omit the key to reuse the saved one."""
    api_key = payload.api_key or autobrr.stored_api_key(db)
    result = await tester.test("autobrr", payload.url, api_key)
    return JSONResponse(content=result)


@router.get("/webhook")
@limiter.limit("30/minute")
def get_autobrr_webhook(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    store: ConfigFileStore = Depends(get_config_store),
) -> JSONResponse:
    """
    Webhook URL, header and action JSON for an autobrr filter.

    Built from the daemon's ``host``, ``port`` and ``apiKey``; 404 when the
    config file is missing.
    """
    config = autobrr.webhook_config(store.read_raw())
    logger.debug("autobrr_webhook_rendered", webhook_url=config["webhook_url"])
    return JSONResponse(content=config)
