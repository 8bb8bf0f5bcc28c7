"""
Pydantic schemas for the cross-seed daemon configuration file.

Python attribute names are snake_case; the file and the HTTP API use the
daemon's camelCase keys (``torrentClients``, ``fuzzySizeThreshold``), so
every model serializes ``by_alias``.

Keys the schema does not know about are kept (``extra="allow"``) and written
back unchanged. Updates coming from the API go through ``ConfigUpdate``,
which forbids unknown keys instead.
"""

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
)
from pydantic.alias_generators import to_camel


class StructuredConnection(BaseModel):
    """
    Object form of a connection entry.

    Carries the same information as a connection string plus any passthrough
    fields the daemon understands (``name``, ``readonly``, ...).
    """

    model_config = ConfigDict(extra="allow")

    url: str | None = None
    apikey: str | None = None
    username: str | None = None
    password: str | None = None

    @model_serializer(mode="wrap")
    def _serialize_present_keys(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        # Only keys that were in the input, so unset credentials do not
        # appear as nulls in the written file.
        data = handler(self)
        present = set(self.model_fields_set) | set(self.model_extra or {})
        return {k: v for k, v in data.items() if k in present}


# A connection entry is either a bare URL string or a structured object.
ConnectionEntry = str | StructuredConnection


def entry_url(entry: Any) -> str | None:
    """Return the URL of a connection entry in any of its forms."""
    if isinstance(entry, str):
        return entry
    if isinstance(entry, StructuredConnection):
        return entry.url
    if isinstance(entry, dict):
        url = entry.get("url")
        return url if isinstance(url, str) else None
    return None


LinkType = Literal["symlink", "hardlink", "reflink"]
MatchMode = Literal["strict", "flexible", "partial"]
Action = Literal["save", "inject"]


class CrossSeedConfig(BaseModel):
    """Full daemon configuration."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    # Sensitive / connections
    api_key: str | None = None
    torznab: list[ConnectionEntry] = Field(default_factory=list)
    sonarr: list[ConnectionEntry] = Field(default_factory=list)
    radarr: list[ConnectionEntry] = Field(default_factory=list)
    torrent_clients: list[ConnectionEntry] = Field(default_factory=list)
    notification_webhook_urls: list[str] = Field(default_factory=list)

    # Network
    host: str = "0.0.0.0"
    port: int = Field(default=2468, ge=1024, le=65535)

    # Client
    use_client_torrents: bool = True

    # Timing
    delay: int = Field(default=30, ge=30, description="Seconds between searches")
    rss_cadence: str | None = "30 minutes"
    search_cadence: str | None = "1 day"
    snatch_timeout: str | None = "30 seconds"
    search_timeout: str | None = "2 minutes"
    exclude_older: str = "2 weeks"
    exclude_recent_search: str = "3 days"
    search_limit: int | None = 400

    # Paths
    data_dirs: list[str] = Field(default_factory=list)
    link_dirs: list[str] = Field(default_factory=list)
    link_category: str = "cross-seed-link"
    link_type: LinkType = "hardlink"
    flat_linking: bool = False
    max_data_depth: int = Field(default=2, ge=1, le=10)
    torrent_dir: str | None = None
    output_dir: str | None = None

    # Matching
    match_mode: MatchMode = "flexible"
    fuzzy_size_threshold: float = Field(default=0.02, ge=0.01, le=0.1)
    include_single_episodes: bool = False
    include_non_videos: bool = False
    season_from_episodes: float | None = 1

    # Behavior
    action: Action = "inject"
    skip_recheck: bool = True
    auto_resume_max_download: int = Field(default=52428800, ge=0, le=52428800)
    ignore_non_relevant_files_to_resume: bool = False
    duplicate_categories: bool = False

    # Filtering
    block_list: list[str] = Field(default_factory=list)

    def to_file_dict(self) -> dict[str, Any]:
        """Serialize with daemon key names, extras included."""
        return self.model_dump(mode="json", by_alias=True)


class ConfigUpdate(CrossSeedConfig):
    """
    Partial update: any subset of the known configuration keys.

    Unknown keys are rejected. ``to_update_dict`` returns only the keys the
    caller actually sent.
    """

    model_config = ConfigDict(extra="forbid")

    def to_update_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# File keys the daemon only reads at start-up.
RESTART_REQUIRED_OPTIONS: frozenset[str] = frozenset(
    {
        "torznab",
        "sonarr",
        "radarr",
        "torrentClients",
        "host",
        "port",
        "dataDirs",
        "linkDirs",
        "torrentDir",
    }
)


class ConfigResponse(BaseModel):
    """GET /api/config body."""

    config: dict[str, Any]
    exists: bool = True


class ConfigWriteResponse(BaseModel):
    """PUT/PATCH /api/config body."""

    success: bool = True
    config: dict[str, Any]
    changed_fields: list[str] = Field(default_factory=list)
    requires_restart: bool = False


class BackupCreateRequest(BaseModel):
    reason: str = Field(default="manual", max_length=120)


class RestoreRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)


class BackupInfo(BaseModel):
    """A backup file as listed to the operator."""

    filename: str
    created_at: str
    size: int
    reason: str = "automatic"
