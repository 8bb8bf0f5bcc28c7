"""
Reading, writing and backing up the cross-seed configuration file.

The file on disk is authoritative. Every partial update re-reads it, merges
the requested keys on top and writes the result back while holding a lock
for that path, so two overlapping updates cannot drop each other's keys.
Writes go to a temporary sibling first and are moved into place with
``os.replace``.

File format: a JSON object, optionally wrapped as ``module.exports = {...};``
so the daemon can ``require()`` it. ``.js`` files are written with the
wrapper, anything else as plain JSON. Keys the schema does not know are
preserved.

Backups are siblings named ``<config filename>.backup.<epoch millis>``.
"""

import json
import os
import re
import shutil
import tempfile
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from crossseed_ui.core.exceptions import (
    BackupNotFoundError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    InvalidBackupNameError,
)
from crossseed_ui.schemas.config import BackupInfo, ConfigUpdate, CrossSeedConfig

logger = structlog.get_logger()

_EXPORTS_PREFIX = re.compile(r"^\s*module\.exports\s*=\s*", re.DOTALL)
_EXPORTS_SUFFIX = re.compile(r";?\s*$")

# One lock per absolute config path, shared by every store instance.
_path_locks: dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = os.path.abspath(path)
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.Lock()
        return lock


class BackupLog(Protocol):
    """Where backup reasons are remembered (see services.backup_log)."""

    def record(self, filename: str, reason: str) -> None: ...

    def reasons(self) -> dict[str, str]: ...

    def forget(self, filename: str) -> None: ...


def parse_config_text(text: str) -> dict[str, Any]:
    """
    Parse configuration file contents into a dict.

    Raises:
        ConfigParseError: If the text is not a JSON object (optionally
            wrapped in ``module.exports = ...;``)
    """
    body = text
    if _EXPORTS_PREFIX.match(body):
        body = _EXPORTS_PREFIX.sub("", body, count=1)
        body = _EXPORTS_SUFFIX.sub("", body, count=1)

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ConfigParseError(
            f"Configuration file is not valid: {e.msg} (line {e.lineno}, column {e.colno})"
        ) from e

    if not isinstance(data, dict):
        raise ConfigParseError("Configuration file must contain an object")

    return data


def serialize_config(data: dict[str, Any], as_module: bool) -> str:
    """Render a config dict in the on-disk format."""
    body = json.dumps(data, indent=2, ensure_ascii=False)
    if as_module:
        return f"module.exports = {body};\n"
    return body + "\n"


def validation_errors(exc: ValidationError) -> list[dict[str, Any]]:
    """Field-level detail without echoing submitted values."""
    return [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


class ConfigFileStore:
    """
    Persistence adapter for one configuration file.

    Args:
        path: Location of the configuration file
        backup_log: Optional store for backup reasons
    """

    def __init__(self, path: str | Path, backup_log: BackupLog | None = None) -> None:
        self.path = Path(path)
        self.backup_log = backup_log
        self._lock = _lock_for(self.path)
        self._backup_pattern = re.compile(rf"{re.escape(self.path.name)}\.backup\.([0-9]+)")

    @property
    def backup_dir(self) -> Path:
        return self.path.parent

    def exists(self) -> bool:
        return self.path.is_file()

    # -- reading -----------------------------------------------------------

    def read_text(self) -> str:
        """
        Return the raw file contents.

        Raises:
            ConfigNotFoundError: If the file does not exist
        """
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ConfigNotFoundError(f"Config file not found: {self.path}") from e

    def read_raw(self) -> dict[str, Any]:
        """Parse the file into a plain dict with its on-disk keys."""
        return parse_config_text(self.read_text())

    def read(self) -> CrossSeedConfig:
        """
        Read and validate the configuration.

        Raises:
            ConfigNotFoundError: If the file does not exist
            ConfigParseError: If the file is not valid configuration
        """
        raw = self.read_raw()
        try:
            return CrossSeedConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigParseError(
                f"Configuration file does not match the expected schema: {e.error_count()} error(s)"
            ) from e

    # -- writing -----------------------------------------------------------

    def write(
        self,
        config: CrossSeedConfig | dict[str, Any],
        *,
        backup: bool = True,
        reason: str = "automatic",
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Replace the whole file with ``config``.

        The previous contents are copied to a backup first unless
        ``backup`` is False. A file that exists but does not parse is
        overwritten; its "before" snapshot is empty.

        Returns:
            tuple: (contents before, contents written), with on-disk key names

        Raises:
            ConfigValidationError: If ``config`` is a dict that fails validation
        """
        data = self._to_file_dict(config)
        with self._lock:
            before = self._snapshot_unlocked()
            self._write_unlocked(data, backup=backup, reason=reason)
        return before, data

    def _snapshot_unlocked(self) -> dict[str, Any]:
        try:
            return self.read_raw()
        except ConfigNotFoundError:
            return {}
        except ConfigParseError as e:
            logger.warning("config_file_replacing_unparseable", path=str(self.path), error=e.message)
            return {}

    def modify(
        self,
        fn: Callable[[dict[str, Any]], dict[str, Any]],
        *,
        backup: bool = True,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Read-merge-write under the path lock.

        ``fn`` receives a copy of the freshly read file and returns the keys
        to change; they are merged on top of the file and the result is
        validated before anything is written.

        Returns:
            tuple: (contents before, contents after)

        Raises:
            ConfigNotFoundError, ConfigParseError: From the fresh read
            ConfigValidationError: If the merged result is invalid
        """
        with self._lock:
            before = self.read_raw()
            updates = fn(dict(before))
            after = {**before, **updates}
            try:
                CrossSeedConfig.model_validate(after)
            except ValidationError as e:
                raise ConfigValidationError("Invalid configuration", validation_errors(e)) from e

            self._write_unlocked(after, backup=backup, reason="automatic")

        logger.info("config_file_updated", path=str(self.path), keys=sorted(updates))
        return before, after

    def apply_partial(
        self,
        update: ConfigUpdate | dict[str, Any],
        *,
        backup: bool = True,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Merge a partial update into the current file contents.

        Only the keys present in ``update`` change; everything else keeps
        the value it has on disk at the moment of the write.

        Raises:
            ConfigValidationError: If the update contains unknown keys or
                invalid values
        """
        if isinstance(update, dict):
            try:
                update = ConfigUpdate.model_validate(update)
            except ValidationError as e:
                raise ConfigValidationError("Invalid configuration", validation_errors(e)) from e

        changes = update.to_update_dict()
        return self.modify(lambda _current: changes, backup=backup)

    def _to_file_dict(self, config: CrossSeedConfig | dict[str, Any]) -> dict[str, Any]:
        if isinstance(config, CrossSeedConfig):
            return config.to_file_dict()
        try:
            CrossSeedConfig.model_validate(config)
        except ValidationError as e:
            raise ConfigValidationError("Invalid configuration", validation_errors(e)) from e
        return dict(config)

    def _write_unlocked(self, data: dict[str, Any], *, backup: bool, reason: str) -> None:
        if backup and self.exists():
            self._create_backup_unlocked(reason)

        text = serialize_config(data, as_module=self.path.suffix in (".js", ".cjs"))
        self._atomic_write(text)
        logger.debug("config_file_written", path=str(self.path), bytes=len(text))

    def _atomic_write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            if self.exists():
                shutil.copymode(self.path, tmp_name)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # -- backups -----------------------------------------------------------

    def validate_backup_name(self, filename: str) -> int:
        """
        Check ``filename`` against ``<config name>.backup.<digits>``.

        Pure string check; never touches the filesystem.

        Returns:
            int: The epoch-millisecond timestamp encoded in the name

        Raises:
            InvalidBackupNameError: If the name does not match
        """
        match = self._backup_pattern.fullmatch(filename or "")
        if not match:
            logger.warning("invalid_backup_filename_rejected", filename=filename)
            raise InvalidBackupNameError("Invalid backup filename")
        return int(match.group(1))

    def list_backups(self) -> list[BackupInfo]:
        """Backups in the config directory, newest first."""
        if not self.backup_dir.is_dir():
            return []

        reasons = self.backup_log.reasons() if self.backup_log else {}
        backups: list[tuple[int, BackupInfo]] = []
        for entry in self.backup_dir.iterdir():
            match = self._backup_pattern.fullmatch(entry.name)
            if not match or not entry.is_file():
                continue
            millis = int(match.group(1))
            backups.append(
                (
                    millis,
                    BackupInfo(
                        filename=entry.name,
                        created_at=_millis_to_iso(millis),
                        size=entry.stat().st_size,
                        reason=reasons.get(entry.name, "automatic"),
                    ),
                )
            )

        backups.sort(key=lambda item: item[0], reverse=True)
        return [info for _, info in backups]

    def create_backup(self, reason: str = "manual") -> BackupInfo:
        """
        Copy the current file to a new timestamped backup.

        Raises:
            ConfigNotFoundError: If there is no config file to back up
        """
        with self._lock:
            if not self.exists():
                raise ConfigNotFoundError(f"Config file not found: {self.path}")
            return self._create_backup_unlocked(reason)

    def delete_backup(self, filename: str) -> None:
        """
        Remove a backup file.

        Raises:
            InvalidBackupNameError: If the name fails validation
            BackupNotFoundError: If no such backup exists
        """
        self.validate_backup_name(filename)
        target = self.backup_dir / filename
        try:
            target.unlink()
        except FileNotFoundError as e:
            raise BackupNotFoundError(f"Backup not found: {filename}") from e

        if self.backup_log:
            self.backup_log.forget(filename)
        logger.info("config_backup_deleted", filename=filename)

    def restore(self, filename: str) -> tuple[BackupInfo | None, CrossSeedConfig | None]:
        """
        Replace the config file with a backup.

        The current file is first copied to a ``pre-restore`` backup, so a
        restore can always be undone. The backup is restored as-is; if it
        does not parse, the restore still happens and the returned config
        is None.

        Returns:
            tuple: (pre-restore backup or None if there was no config file,
                restored config or None)

        Raises:
            InvalidBackupNameError: If the name fails validation
            BackupNotFoundError: If no such backup exists
        """
        self.validate_backup_name(filename)
        source = self.backup_dir / filename
        if not source.is_file():
            raise BackupNotFoundError(f"Backup not found: {filename}")

        with self._lock:
            pre_restore = None
            if self.exists():
                pre_restore = self._create_backup_unlocked("pre-restore")
            self._atomic_write(source.read_text(encoding="utf-8"))

        logger.info(
            "config_restored",
            filename=filename,
            pre_restore_backup=pre_restore.filename if pre_restore else None,
        )

        try:
            restored = self.read()
        except ConfigParseError as e:
            logger.warning("restored_config_not_parseable", filename=filename, error=e.message)
            restored = None

        return pre_restore, restored

    def _create_backup_unlocked(self, reason: str) -> BackupInfo:
        millis = int(time.time() * 1000)
        target = self.backup_dir / f"{self.path.name}.backup.{millis}"
        while target.exists():
            millis += 1
            target = self.backup_dir / f"{self.path.name}.backup.{millis}"

        shutil.copy2(self.path, target)
        if self.backup_log:
            self.backup_log.record(target.name, reason)

        logger.info("config_backup_created", filename=target.name, reason=reason)
        return BackupInfo(
            filename=target.name,
            created_at=_millis_to_iso(millis),
            size=target.stat().st_size,
            reason=reason,
        )


def _millis_to_iso(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=UTC).isoformat().replace("+00:00", "Z")
