"""
Prowlarr -> daemon indexer synchronization.

A sync regenerates the Prowlarr-owned part of the daemon's ``torznab`` list
from the operator's indexer selection:

1. fetch enabled torrent indexers from Prowlarr
2. split the current ``torznab`` list into Prowlarr URLs (matching
   ``<prowlarr>/<id>/api``) and manual entries; drop the former
3. append a fresh Torznab URL for every selected indexer, after the
   manual entries
4. write the list back through the config file's locked merge path
5. upsert the indexer cache, set last sync status, append history

Any failure along the way is recorded as an ``error`` history row and
``last_sync`` still advances, so a broken Prowlarr is retried once per
interval instead of on every scheduler tick. Nothing is written to the
config file unless every step before the write succeeded.
"""

import asyncio
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

import structlog
from sqlalchemy.orm import Session

from crossseed_ui.config import settings
from crossseed_ui.core.exceptions import CrossSeedUIError, ProwlarrNotConfiguredError
from crossseed_ui.core.security import EncryptionError, decrypt_field, encrypt_field
from crossseed_ui.models.prowlarr import (
    SINGLETON_ID,
    ProwlarrConfig,
    ProwlarrIndexer,
    ProwlarrSyncHistory,
)
from crossseed_ui.schemas.config import entry_url
from crossseed_ui.services.config_file import ConfigFileStore
from crossseed_ui.services.interval import is_due, next_run_time, parse_interval, utcnow
from crossseed_ui.services.prowlarr import ProwlarrClient, prowlarr_indexer_id, prowlarr_url_pattern

logger = structlog.get_logger()

SyncType = Literal["manual", "scheduled"]

HISTORY_LIMIT = 10


@dataclass
class SyncResult:
    """Outcome of one sync attempt."""

    sync_type: SyncType
    status: Literal["success", "error"]
    synced_at: datetime
    added: int = 0
    updated: int = 0
    removed: int = 0
    torznab_urls: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def synced(self) -> int:
        return len(self.torznab_urls)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["synced_at"] = self.synced_at.isoformat()
        data["synced"] = self.synced
        return data


def build_torznab_url(base_url: str, indexer_id: int, api_key: str) -> str:
    return f"{base_url.rstrip('/')}/{indexer_id}/api?apikey={api_key}"


def merge_indexer_urls(
    existing: list[Any], base_url: str, generated: list[str]
) -> tuple[list[Any], dict[str, int]]:
    """
    Replace the Prowlarr-generated entries in a torznab list.

    Manual entries (strings or structured objects) keep their order and
    content; generated URLs follow them in the given order.

    Returns:
        tuple: (new list, {"added", "updated", "removed"} counts by indexer id)
    """
    pattern = prowlarr_url_pattern(base_url)
    manual: list[Any] = []
    previous_ids: set[int] = set()

    for entry in existing:
        url = entry_url(entry)
        if url is not None and pattern.match(url):
            indexer_id = prowlarr_indexer_id(base_url, url)
            if indexer_id is not None:
                previous_ids.add(indexer_id)
        else:
            manual.append(entry)

    new_ids = {i for i in (prowlarr_indexer_id(base_url, url) for url in generated) if i is not None}
    counts = {
        "added": len(new_ids - previous_ids),
        "updated": len(new_ids & previous_ids),
        "removed": len(previous_ids - new_ids),
    }
    return manual + list(generated), counts


class ProwlarrSyncService:
    """
    Prowlarr integration: settings, indexer cache, and the sync engine.

    Args:
        session_factory: Creates database sessions
        config_store_factory: Returns the daemon config file store
        client_factory: Builds a ProwlarrClient from (url, api_key)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config_store_factory: Callable[[], ConfigFileStore],
        client_factory: Callable[[str, str], ProwlarrClient] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config_store_factory = config_store_factory
        self._client_factory = client_factory or self._default_client

    @staticmethod
    def _default_client(url: str, api_key: str) -> ProwlarrClient:
        return ProwlarrClient(url, api_key, timeout=settings.prowlarr_request_timeout)

    # -- settings ------------------------------------------------------------

    @staticmethod
    def get_settings(db: Session) -> ProwlarrConfig | None:
        return db.get(ProwlarrConfig, SINGLETON_ID)

    def require_settings(self, db: Session) -> tuple[ProwlarrConfig, str]:
        """
        Return the saved settings and the decrypted API key.

        Raises:
            ProwlarrNotConfiguredError: If no URL/API key has been saved
        """
        cfg = self.get_settings(db)
        if cfg is None or not cfg.url or not cfg.encrypted_api_key:
            raise ProwlarrNotConfiguredError("Prowlarr not configured")
        try:
            return cfg, decrypt_field(cfg.encrypted_api_key)
        except EncryptionError as e:
            logger.error("prowlarr_api_key_decrypt_failed", error=str(e))
            raise ProwlarrNotConfiguredError(
                "Stored Prowlarr API key cannot be decrypted; save it again"
            ) from e

    def save_settings(
        self,
        db: Session,
        url: str,
        api_key: str | None,
        sync_enabled: bool = False,
        sync_interval: str = "1 hour",
    ) -> ProwlarrConfig:
        """
        Create or update the Prowlarr settings row.

        ``api_key`` may be omitted when updating to keep the stored key.

        Raises:
            ProwlarrNotConfiguredError: If creating without an API key
        """
        cfg = self.get_settings(db)
        if cfg is None:
            if not api_key:
                raise ProwlarrNotConfiguredError("An API key is required to configure Prowlarr")
            cfg = ProwlarrConfig(id=SINGLETON_ID)
            db.add(cfg)

        cfg.url = url.rstrip("/")
        if api_key:
            cfg.encrypted_api_key = encrypt_field(api_key)
        cfg.sync_enabled = sync_enabled
        cfg.sync_interval = sync_interval
        db.commit()
        db.refresh(cfg)

        parse_interval(sync_interval)  # warns on an unparseable interval
        logger.info(
            "prowlarr_settings_saved",
            url=cfg.url,
            sync_enabled=sync_enabled,
            sync_interval=sync_interval,
        )
        return cfg

    @staticmethod
    def delete_settings(db: Session) -> None:
        """Remove the integration and its indexer cache. History is kept."""
        db.query(ProwlarrConfig).delete()
        db.query(ProwlarrIndexer).delete()
        db.commit()
        logger.info("prowlarr_settings_deleted")

    async def test_connection(self, db: Session, url: str, api_key: str | None = None) -> dict[str, Any]:
        """
        Check a Prowlarr URL/key pair before or after saving it.

        Without ``api_key`` the stored key is used.

        Raises:
            ProwlarrNotConfiguredError: If no key is given and none is stored
        """
        if not api_key:
            _, api_key = self.require_settings(db)
        async with self._client_factory(url, api_key) as client:
            return await client.test_connection()

    # -- indexers --------------------------------------------------------------

    async def list_indexers(self, db: Session) -> list[dict[str, Any]]:
        """Prowlarr's indexers merged with the local enabled flag and last status."""
        cfg, api_key = self.require_settings(db)
        async with self._client_factory(cfg.url, api_key) as client:
            indexers = await client.get_indexers()

        cached = {row.prowlarr_id: row for row in db.query(ProwlarrIndexer).all()}
        return [
            {
                **indexer,
                "enabled_for_crossseed": bool(cached[indexer["id"]].enabled_for_crossseed)
                if indexer["id"] in cached
                else False,
                "last_status": cached[indexer["id"]].last_status if indexer["id"] in cached else None,
            }
            for indexer in indexers
        ]

    async def test_indexer(self, db: Session, indexer_id: int) -> dict[str, Any]:
        """Test one indexer through Prowlarr and cache the result."""
        cfg, api_key = self.require_settings(db)
        async with self._client_factory(cfg.url, api_key) as client:
            result = await client.test_indexer(indexer_id)

        row = db.query(ProwlarrIndexer).filter(ProwlarrIndexer.prowlarr_id == indexer_id).first()
        if row:
            row.last_status = "ok" if result["success"] else "failed"
            row.last_tested = utcnow()
            db.commit()
        return result

    # -- schedule --------------------------------------------------------------

    def schedule_info(self, db: Session) -> dict[str, Any]:
        cfg = self.get_settings(db)
        history = (
            db.query(ProwlarrSyncHistory)
            .order_by(ProwlarrSyncHistory.synced_at.desc(), ProwlarrSyncHistory.id.desc())
            .limit(HISTORY_LIMIT)
            .all()
        )
        info: dict[str, Any] = {
            "enabled": False,
            "interval": None,
            "next_sync": None,
            "last_sync": None,
            "last_sync_status": None,
            "history": [row.to_dict() for row in history],
        }
        if cfg is None:
            return info

        info["interval"] = cfg.sync_interval
        info["last_sync"] = cfg.last_sync.isoformat() if cfg.last_sync else None
        info["last_sync_status"] = cfg.last_sync_status
        if cfg.sync_enabled:
            info["enabled"] = True
            info["next_sync"] = next_run_time(cfg.last_sync, parse_interval(cfg.sync_interval)).isoformat()
        return info

    # -- sync ------------------------------------------------------------------

    async def run_scheduled(self) -> SyncResult | None:
        """
        Scheduler tick: sync if enabled and due.

        Returns:
            SyncResult | None: None when nothing was due
        """
        db = self._session_factory()
        try:
            cfg = self.get_settings(db)
            if cfg is None or not cfg.url or not cfg.encrypted_api_key:
                logger.debug("prowlarr_sync_skipped_not_configured")
                return None
            if not cfg.sync_enabled:
                logger.debug("prowlarr_sync_skipped_disabled")
                return None

            interval = parse_interval(cfg.sync_interval)
            now = utcnow()
            if not is_due(cfg.last_sync, interval, now):
                logger.debug(
                    "prowlarr_sync_not_due",
                    next_sync=next_run_time(cfg.last_sync, interval).isoformat(),
                )
                return None

            logger.info("prowlarr_scheduled_sync_started")
            return await self._run(db, cfg, "scheduled", selected_ids=None, raise_errors=False)
        finally:
            db.close()

    async def run_manual(self, db: Session, indexer_ids: list[int]) -> SyncResult:
        """
        Sync exactly ``indexer_ids`` and remember them as the selection.

        Raises:
            ProwlarrNotConfiguredError: If Prowlarr is not configured
            CrossSeedUIError: Whatever failed; the failure is recorded first
        """
        cfg, _ = self.require_settings(db)
        selected = list(dict.fromkeys(indexer_ids))
        logger.info("prowlarr_manual_sync_started", indexer_count=len(selected))
        return await self._run(db, cfg, "manual", selected_ids=selected, raise_errors=True)

    async def _run(
        self,
        db: Session,
        cfg: ProwlarrConfig,
        sync_type: SyncType,
        selected_ids: list[int] | None,
        raise_errors: bool,
    ) -> SyncResult:
        attempt_at = utcnow()
        base_url = cfg.url

        try:
            api_key = decrypt_field(cfg.encrypted_api_key)
            async with self._client_factory(base_url, api_key) as client:
                indexers = await client.get_indexers()

            if selected_ids is None:
                selected_ids = [
                    row.prowlarr_id
                    for row in db.query(ProwlarrIndexer)
                    .filter(ProwlarrIndexer.enabled_for_crossseed.is_(True))
                    .order_by(ProwlarrIndexer.prowlarr_id)
                    .all()
                ]
                if not selected_ids:
                    logger.info("prowlarr_sync_no_indexers_enabled")
                    return self._record_success(db, cfg, sync_type, indexers, [], [], {}, attempt_at)

            urls = [build_torznab_url(base_url, i, api_key) for i in selected_ids]
            counts: dict[str, int] = {}

            def replace_prowlarr_entries(current: dict[str, Any]) -> dict[str, Any]:
                merged, merge_counts = merge_indexer_urls(current.get("torznab") or [], base_url, urls)
                counts.update(merge_counts)
                return {"torznab": merged}

            store = self._config_store_factory()
            await asyncio.to_thread(store.modify, replace_prowlarr_entries)

            return self._record_success(db, cfg, sync_type, indexers, selected_ids, urls, counts, attempt_at)

        except Exception as e:
            message = e.message if isinstance(e, CrossSeedUIError) else str(e) or type(e).__name__
            logger.error("prowlarr_sync_failed", sync_type=sync_type, error=message)
            self._record_failure(db, cfg, sync_type, attempt_at, message)
            if raise_errors:
                raise
            return SyncResult(sync_type=sync_type, status="error", synced_at=attempt_at, error=message)

    def _record_success(
        self,
        db: Session,
        cfg: ProwlarrConfig,
        sync_type: SyncType,
        indexers: list[dict[str, Any]],
        selected_ids: list[int],
        urls: list[str],
        counts: dict[str, int],
        attempt_at: datetime,
    ) -> SyncResult:
        selected = set(selected_ids)
        cached = {row.prowlarr_id: row for row in db.query(ProwlarrIndexer).all()}
        for indexer in indexers:
            row = cached.get(indexer["id"])
            if row is None:
                row = ProwlarrIndexer(prowlarr_id=indexer["id"])
                db.add(row)
            row.name = indexer["name"]
            row.enabled_for_crossseed = indexer["id"] in selected

        finished_at = utcnow()
        cfg.last_sync = finished_at
        cfg.last_sync_status = "success"
        result = SyncResult(
            sync_type=sync_type,
            status="success",
            synced_at=finished_at,
            added=counts.get("added", 0),
            updated=counts.get("updated", 0),
            removed=counts.get("removed", 0),
            torznab_urls=urls,
        )
        db.add(
            ProwlarrSyncHistory(
                sync_type=sync_type,
                status="success",
                indexers_added=result.added,
                indexers_updated=result.updated,
                indexers_removed=result.removed,
                synced_at=finished_at,
            )
        )
        db.commit()

        logger.info(
            "prowlarr_sync_completed",
            sync_type=sync_type,
            synced=result.synced,
            added=result.added,
            updated=result.updated,
            removed=result.removed,
        )
        return result

    @staticmethod
    def _record_failure(
        db: Session,
        cfg: ProwlarrConfig,
        sync_type: SyncType,
        attempt_at: datetime,
        message: str,
    ) -> None:
        try:
            db.rollback()
            cfg = db.get(ProwlarrConfig, cfg.id) or cfg
            cfg.last_sync = attempt_at
            cfg.last_sync_status = "error"
            db.add(
                ProwlarrSyncHistory(
                    sync_type=sync_type,
                    status="error",
                    error_message=message,
                    synced_at=attempt_at,
                )
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error("prowlarr_sync_failure_not_recorded", sync_type=sync_type, error=str(e))
