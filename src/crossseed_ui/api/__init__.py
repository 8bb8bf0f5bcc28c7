"""
API routers for CrossSeed UI.

This module exports all API routers for registration with FastAPI.
"""

from crossseed_ui.api.auth import router as auth_router
from crossseed_ui.api.autobrr import router as autobrr_router
from crossseed_ui.api.config import router as config_router
from crossseed_ui.api.connections import router as connections_router
from crossseed_ui.api.daemon import router as daemon_router
from crossseed_ui.api.prowlarr import router as prowlarr_router

__all__ = [
    "auth_router",
    "autobrr_router",
    "config_router",
    "connections_router",
    "daemon_router",
    "prowlarr_router",
]
