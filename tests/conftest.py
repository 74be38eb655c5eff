"""Shared fixtures and in-memory collaborators for Session Sync tests."""
from typing import Any, Optional
from urllib.parse import urlsplit

import pytest

from session_sync.browser import AbstractBrowserPage, PageStorage
from session_sync.exceptions import RemoteError
from session_sync.models import CookieEntry, EncryptedEnvelope, KVEntry, OriginRecord, Snapshot
from session_sync.remote import AbstractRemoteStore

SECRET = "ABCDEF-GHJKMN-PQRSTU-VWXYZ2"
OTHER_SECRET = "ZYXWVU-TSRQPN-MKJHGF-EDCBA9"


class MemoryRemoteStore(AbstractRemoteStore):
    """Remote store keeping rows in a dict keyed by (account_id, origin)."""

    def __init__(self):
        self.rows: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.fail_with: Optional[str] = None

    def _maybe_fail(self):
        if self.fail_with:
            raise RemoteError(self.fail_with)

    async def upsert(self, account_id, origin, envelope, write_token):
        self.calls.append(("upsert", account_id, origin, write_token))
        self._maybe_fail()
        self.rows[(account_id, origin)] = {
            "envelope": envelope,
            "write_token": write_token,
            "updated_at": f"2026-01-0{len(self.rows) + 1}T00:00:00+00:00",
        }

    async def read(self, account_id, origin) -> Optional[EncryptedEnvelope]:
        self.calls.append(("read", account_id, origin))
        self._maybe_fail()
        row = self.rows.get((account_id, origin))
        return row["envelope"] if row else None

    async def delete(self, account_id, origin, write_token):
        self.calls.append(("delete", account_id, origin, write_token))
        self._maybe_fail()
        self.rows.pop((account_id, origin), None)

    async def list_origins(self, account_id) -> list[OriginRecord]:
        self.calls.append(("list", account_id))
        self._maybe_fail()
        return [
            OriginRecord(origin=origin, updated_at=row["updated_at"])
            for (acc, origin), row in self.rows.items()
            if acc == account_id
        ]


class MemoryBrowserPage(AbstractBrowserPage):
    """Browser tab with an in-memory cookie jar and page storage.

    ``reject`` names cookies the browser refuses (set returns None);
    ``explode`` names cookies whose set call raises.
    """

    def __init__(self, url: str, title: str = "", cookies=(), storage=None):
        self._url = url
        self._title = title
        self.jar: dict[tuple[str, str, str], CookieEntry] = {}
        for cookie in cookies:
            self.jar[cookie.key] = cookie
        self.storage = storage or PageStorage()
        self.reject: set[str] = set()
        self.explode: set[str] = set()
        self.fail_removal: set[str] = set()
        self.set_calls: list[dict[str, Any]] = []
        self.reloaded = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def title(self) -> str:
        return self._title

    @property
    def host(self) -> str:
        return urlsplit(self._url).hostname

    async def get_cookies(self, *, url=None, domain=None):
        if url is not None:
            host = urlsplit(url).hostname
            return [
                c for c in self.jar.values() if c.domain.lstrip(".") == host
            ]
        return [
            c for c in self.jar.values()
            if domain == c.domain.lstrip(".") or domain.endswith(c.domain)
        ]

    async def remove_cookie(self, url, name):
        if name in self.fail_removal:
            raise RuntimeError(f"cannot remove {name}")
        parts = urlsplit(url)
        for key, cookie in list(self.jar.items()):
            if (
                cookie.name == name
                and cookie.domain.lstrip(".") == parts.hostname
                and cookie.path == parts.path
            ):
                del self.jar[key]
        return {"name": name, "url": url}

    async def set_cookie(self, details):
        self.set_calls.append(details)
        name = details["name"]
        if name in self.explode:
            raise RuntimeError(f"browser refused {name}")
        if name in self.reject:
            return None
        host = urlsplit(details["url"]).hostname
        cookie = CookieEntry(
            name=name,
            value=details["value"],
            domain=details.get("domain", host),
            path=details["path"],
            secure=details["secure"],
            http_only=details["httpOnly"],
            same_site=details["sameSite"],
            expiration_date=details.get("expirationDate"),
            host_only="domain" not in details or None,
        )
        self.jar[cookie.key] = cookie
        return cookie

    async def read_storage(self) -> PageStorage:
        return self.storage.model_copy(deep=True)

    async def write_storage(self, storage: PageStorage) -> None:
        self.storage = storage.model_copy(deep=True)

    async def reload(self) -> None:
        self.reloaded += 1


@pytest.fixture
def remote():
    return MemoryRemoteStore()


@pytest.fixture
def sid_cookie():
    return CookieEntry(
        name="sid",
        value="v1",
        domain="x.test",
        path="/",
        secure=True,
        http_only=True,
        same_site="lax",
    )


@pytest.fixture
def snapshot(sid_cookie):
    """The canonical push/pull scenario snapshot."""
    return Snapshot(
        origin_url="https://x.test",
        title="t",
        cookies=[sid_cookie],
        local_entries=[KVEntry(key="a", value="1")],
        session_entries=[],
    )


@pytest.fixture
def page():
    return MemoryBrowserPage(
        "https://x.test/app",
        title="t",
        cookies=[
            CookieEntry(name="stale", value="old", domain="x.test", path="/"),
        ],
        storage=PageStorage(
            local_entries=[KVEntry(key="old", value="x")],
            session_entries=[KVEntry(key="tab", value="1")],
        ),
    )


class StaticConfig:
    """Config source returning a fixed SyncConfig (or None)."""

    def __init__(self, config=None):
        self.config = config
        self.loads = 0

    def load(self):
        self.loads += 1
        return self.config
