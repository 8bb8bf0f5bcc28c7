"""
autobrr integration.

Stores the autobrr connection (URL plus encrypted API key) and builds the
webhook action that makes autobrr announce new releases to the daemon's
``/api/announce`` endpoint. The announce target is derived from the
daemon's own ``host``, ``port`` and ``apiKey`` settings.
"""

import json
from typing import Any

import structlog
from sqlalchemy.orm import Session

from crossseed_ui.core.exceptions import AutobrrNotConfiguredError
from crossseed_ui.core.security import EncryptionError, decrypt_field, encrypt_field
from crossseed_ui.models.autobrr import SINGLETON_ID, AutobrrConfig

logger = structlog.get_logger()

DEFAULT_DAEMON_HOST = "localhost"
DEFAULT_DAEMON_PORT = 2468

# autobrr template variables, rendered per release
WEBHOOK_DATA_TEMPLATE = {
    "name": "{{ .TorrentName }}",
    "guid": "{{ .TorrentUrl }}",
    "link": "{{ .TorrentUrl }}",
    "tracker": "{{ .IndexerName }}",
}


def get_settings(db: Session) -> AutobrrConfig | None:
    return db.get(AutobrrConfig, SINGLETON_ID)


def save_settings(db: Session, url: str, api_key: str) -> AutobrrConfig:
    """Create or update the autobrr settings row."""
    cfg = get_settings(db)
    if cfg is None:
        cfg = AutobrrConfig(id=SINGLETON_ID)
        db.add(cfg)

    cfg.url = url.rstrip("/")
    cfg.encrypted_api_key = encrypt_field(api_key)
    db.commit()
    db.refresh(cfg)

    logger.info("autobrr_settings_saved", url=cfg.url)
    return cfg


def delete_settings(db: Session) -> None:
    db.query(AutobrrConfig).delete()
    db.commit()
    logger.info("autobrr_settings_deleted")


def stored_api_key(db: Session) -> str:
    """
    Return the saved, decrypted API key.

    Raises:
        AutobrrNotConfiguredError: If nothing usable is stored
    """
    cfg = get_settings(db)
    if cfg is None or not cfg.encrypted_api_key:
        raise AutobrrNotConfiguredError("autobrr not configured")
    try:
        return decrypt_field(cfg.encrypted_api_key)
    except EncryptionError as e:
        logger.error("autobrr_api_key_decrypt_failed", error=str(e))
        raise AutobrrNotConfiguredError("Stored autobrr API key cannot be decrypted; save it again") from e


def daemon_base_url(config: dict[str, Any]) -> str:
    host = config.get("host") or DEFAULT_DAEMON_HOST
    port = config.get("port") or DEFAULT_DAEMON_PORT
    return f"http://{host}:{port}"


def build_action(crossseed_url: str, crossseed_api_key: str) -> dict[str, Any]:
    """
    A complete autobrr webhook action that can be pasted into a filter.

    Keys follow autobrr's own action format.
    """
    return {
        "name": "cross-seed announce",
        "type": "WEBHOOK",
        "enabled": True,
        "webhook_host": f"{crossseed_url}/api/announce",
        "webhook_type": "JSON",
        "webhook_method": "POST",
        "webhook_data": json.dumps(WEBHOOK_DATA_TEMPLATE, separators=(",", ":")),
        "webhook_headers": [{"key": "X-Api-Key", "value": crossseed_api_key}],
    }


def webhook_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Everything needed to point autobrr at the daemon, from its raw config.

    Returns:
        dict: crossseed_url, webhook_url, api_key, action_json, webhook_data
    """
    crossseed_url = daemon_base_url(config)
    api_key = config.get("apiKey") or ""
    action = build_action(crossseed_url, api_key)
    return {
        "crossseed_url": crossseed_url,
        "webhook_url": action["webhook_host"],
        "api_key": api_key,
        "action_json": json.dumps(action, indent=2),
        "webhook_data": json.dumps(WEBHOOK_DATA_TEMPLATE, indent=2),
    }
