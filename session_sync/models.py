"""
Session Sync data model.

Field names on the wire follow the browser extension format
(``url``, ``localStorage``, ``httpOnly``...), Python attributes use
snake_case. Models accept either form on input.
"""
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for models serialized with their wire aliases."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible wire form (aliases, no ``None`` fields)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CookieEntry(WireModel):
    """Exactly the attributes needed to recreate a cookie."""

    name: str
    value: str
    domain: str
    path: str = "/"
    secure: bool = False
    http_only: bool = Field(default=False, alias="httpOnly")
    same_site: Optional[str] = Field(default=None, alias="sameSite")
    expiration_date: Optional[float] = Field(default=None, alias="expirationDate")
    host_only: Optional[bool] = Field(default=None, alias="hostOnly")

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of a cookie in the browser jar."""
        return (self.domain, self.name, self.path)


class KVEntry(WireModel):
    key: str
    value: str


class Snapshot(WireModel):
    """Point-in-time capture of one origin's cookies and storage."""

    origin_url: str = Field(alias="url")
    title: str = ""
    cookies: list[CookieEntry] = Field(default_factory=list)
    local_entries: list[KVEntry] = Field(
        default_factory=list, alias="localStorage"
    )
    session_entries: list[KVEntry] = Field(
        default_factory=list, alias="sessionStorage"
    )

    @property
    def origin(self) -> str:
        return origin_of(self.origin_url)


class EncryptedEnvelope(BaseModel):
    """Authenticated-encrypted container for one Snapshot.

    All fields are base64 text.
    """

    ciphertext: str
    iv: str
    salt: str


class OriginRecord(BaseModel):
    """One synced origin as reported by the remote ``list`` operation."""

    origin: str
    updated_at: Optional[str] = None


class RestoreOutcome(BaseModel):
    """Per-item accounting of the cookie-set phase of a pull."""

    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def partial(self) -> bool:
        return self.failed > 0


class SyncStatus(str, Enum):
    OK = "ok"
    PARTIAL_RESTORE = "partial_restore"
    CONFIG_MISSING = "config_missing"
    REMOTE_ERROR = "remote_error"
    NO_DATA = "no_data"
    DECRYPT_FAILED = "decrypt_failed"
    ERROR = "error"


class SyncResult(BaseModel):
    """Single success/failure value returned by every orchestrator call."""

    success: bool
    status: SyncStatus
    message: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "SyncResult":
        return cls(success=True, status=SyncStatus.OK, data=data, message=message)

    @classmethod
    def failure(cls, status: SyncStatus, message: str) -> "SyncResult":
        return cls(success=False, status=status, message=message)


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for a page URL.

    Raises:
        ValueError: If the URL has no scheme or host.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Cannot resolve origin of URL: {url!r}")
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    default_port = {"http": 80, "https": 443}.get(parts.scheme)
    if parts.port and parts.port != default_port:
        return f"{parts.scheme}://{host}:{parts.port}"
    return f"{parts.scheme}://{host}"
