"""
Database models for CrossSeed UI.

All models use the Base declarative base from database.py.
"""

from crossseed_ui.models.autobrr import AutobrrConfig
from crossseed_ui.models.backup import ConfigBackup
from crossseed_ui.models.prowlarr import ProwlarrConfig, ProwlarrIndexer, ProwlarrSyncHistory
from crossseed_ui.models.user import User

__all__ = [
    "User",
    "ConfigBackup",
    "AutobrrConfig",
    "ProwlarrConfig",
    "ProwlarrIndexer",
    "ProwlarrSyncHistory",
]
