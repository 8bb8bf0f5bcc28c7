"""Connection test endpoint: checks a torrent client, indexer or app URL before it is saved."""

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from crossseed_ui.api.deps import get_connection_tester
from crossseed_ui.core.auth import SessionPrincipal, require_session
from crossseed_ui.core.rate_limit import limiter
from crossseed_ui.schemas.connection import ConnectionTestRequest
from crossseed_ui.services.connection_test import ConnectionTester

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/connections",
    tags=["connections"],
)


@router.post("/test")
@limiter.limit("20/minute")
async def test_connection(
    request: Request,
    payload: ConnectionTestRequest,
    principal: SessionPrincipal = Depends(require_session),
    tester: ConnectionTester = Depends(get_connection_tester),
) -> JSONResponse:
    """Failures come back as ``success: false`` with a 200, not as errors."""
    result = await tester.test(payload.type, payload.url, payload.api_key)
    return JSONResponse(content=result)
