"""
cross-seed daemon status endpoints.

The status route probes the daemon on demand (the scheduler also probes it
in the background). The daemon exposes no restart endpoint, so the restart
route always tells the operator to restart it by hand.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from crossseed_ui.api.deps import get_daemon_monitor
from crossseed_ui.core.auth import SessionPrincipal, require_session
from crossseed_ui.core.rate_limit import limiter
from crossseed_ui.services.daemon import DaemonMonitor

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/daemon",
    tags=["daemon"],
)


@router.get("/status")
@limiter.limit("60/minute")
async def get_daemon_status(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    monitor: DaemonMonitor = Depends(get_daemon_monitor),
) -> JSONResponse:
    daemon_status = await monitor.refresh()
    return JSONResponse(
        content={
            **daemon_status.to_dict(),
            "configured": monitor.configured,
            "url": monitor.url,
        }
    )


@router.post("/restart")
@limiter.limit("5/minute")
async def restart_daemon(
    request: Request,
    principal: SessionPrincipal = Depends(require_session),
    monitor: DaemonMonitor = Depends(get_daemon_monitor),
) -> JSONResponse:
    if not monitor.configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CROSSSEED_URL not configured",
        )

    logger.info("daemon_restart_requested", username=principal.username)
    return JSONResponse(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        content={
            "detail": "Restart is not supported by the daemon API. Restart the cross-seed container or service manually.",
            "manual": True,
        },
    )
