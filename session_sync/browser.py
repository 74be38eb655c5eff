"""
Browser collaborator contract.

How cookies and page storage are actually read from a tab is outside
Session Sync; an ``AbstractBrowserPage`` implementation wraps whatever
extension, CDP or automation API provides them.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from .models import CookieEntry, KVEntry


class PageStorage(BaseModel):
    """localStorage and sessionStorage contents of one page."""

    local_entries: list[KVEntry] = Field(default_factory=list)
    session_entries: list[KVEntry] = Field(default_factory=list)


class AbstractBrowserPage(ABC):
    """One browser tab: its cookie jar and its page storage."""

    @property
    @abstractmethod
    def url(self) -> str:
        pass

    @property
    def title(self) -> str:
        return ""

    @abstractmethod
    async def get_cookies(
        self, *, url: Optional[str] = None, domain: Optional[str] = None
    ) -> list[Union[CookieEntry, dict[str, Any]]]:
        """Query the cookie jar either by URL or by domain."""

    @abstractmethod
    async def remove_cookie(self, url: str, name: str) -> Any:
        pass

    @abstractmethod
    async def set_cookie(self, details: dict[str, Any]) -> Any:
        """Set a cookie; a falsy return value means the browser refused it."""

    @abstractmethod
    async def read_storage(self) -> PageStorage:
        pass

    @abstractmethod
    async def write_storage(self, storage: PageStorage) -> None:
        """Replace localStorage and sessionStorage wholesale (clear, then write)."""

    async def reload(self) -> None:
        """Reload the page after a restore. No-op by default."""
        return None


def cookie_url(domain: str, path: str, secure: bool) -> str:
    """Build the URL the cookie API uses to address a cookie."""
    host = domain[1:] if domain.startswith(".") else domain
    scheme = "https" if secure else "http"
    return f"{scheme}://{host}{path}"


def cookie_set_details(cookie: CookieEntry) -> dict[str, Any]:
    """Build the set-call details that recreate ``cookie``.

    Host-only cookies must not carry an explicit domain, otherwise the
    browser turns them into domain cookies.
    """
    details: dict[str, Any] = {
        "url": cookie_url(cookie.domain, cookie.path, cookie.secure),
        "name": cookie.name,
        "value": cookie.value,
        "path": cookie.path,
        "secure": cookie.secure,
        "httpOnly": cookie.http_only,
        "sameSite": cookie.same_site or "unspecified",
    }
    if not cookie.host_only:
        details["domain"] = cookie.domain
    if cookie.expiration_date:
        details["expirationDate"] = cookie.expiration_date
    return details
