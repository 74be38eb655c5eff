"""
Snapshot Collector: canonical capture of one origin's state.

Browser cookie stores return different supersets depending on the query
shape (parent-domain cookies only surface in the domain query), so both
queries are merged and deduplicated by ``(domain, name, path)``.
No cryptography and no network I/O happen here.
"""
import logging
from collections.abc import Iterable
from typing import Any, Union
from urllib.parse import urlsplit

from .browser import AbstractBrowserPage
from .models import CookieEntry, KVEntry, Snapshot

logger = logging.getLogger("session_sync.collector")

CookieLike = Union[CookieEntry, dict[str, Any]]


def as_cookie(cookie: CookieLike) -> CookieEntry:
    """Coerce a browser cookie record into a CookieEntry.

    Extra attributes reported by the browser (storeId, session...) are dropped.
    """
    if isinstance(cookie, CookieEntry):
        return cookie
    return CookieEntry.model_validate(cookie)


def merge_cookies(
    by_url: Iterable[CookieLike], by_domain: Iterable[CookieLike]
) -> list[CookieEntry]:
    """Union two cookie query results; first occurrence of a key wins.

    Args:
        by_url: Cookies returned by the URL query.
        by_domain: Cookies returned by the domain query.

    Returns:
        Deduplicated cookies.
    """
    seen: set[tuple[str, str, str]] = set()
    merged: list[CookieEntry] = []
    for raw in (*by_url, *by_domain):
        cookie = as_cookie(raw)
        key = cookie.key
        if key in seen:
            continue
        seen.add(key)
        merged.append(cookie)
    return merged


def build_snapshot(
    url: str,
    title: str,
    cookies: Iterable[CookieLike],
    local_entries: Iterable[Union[KVEntry, dict[str, str]]] = (),
    session_entries: Iterable[Union[KVEntry, dict[str, str]]] = (),
) -> Snapshot:
    return Snapshot(
        origin_url=url,
        title=title or "",
        cookies=[as_cookie(c) for c in cookies],
        local_entries=[KVEntry.model_validate(e) for e in local_entries],
        session_entries=[KVEntry.model_validate(e) for e in session_entries],
    )


def collect(
    url: str,
    title: str,
    by_url: Iterable[CookieLike],
    by_domain: Iterable[CookieLike],
    local_entries: Iterable[Union[KVEntry, dict[str, str]]] = (),
    session_entries: Iterable[Union[KVEntry, dict[str, str]]] = (),
) -> Snapshot:
    """Merge both cookie query results and build a Snapshot."""
    return build_snapshot(
        url,
        title,
        merge_cookies(by_url, by_domain),
        local_entries,
        session_entries,
    )


async def collect_cookies(page: AbstractBrowserPage) -> list[CookieEntry]:
    """Query the page's cookie jar by URL and by domain and merge the results."""
    hostname = urlsplit(page.url).hostname or ""
    by_url = await page.get_cookies(url=page.url)
    by_domain = await page.get_cookies(domain=hostname)
    return merge_cookies(by_url, by_domain)


async def capture_snapshot(page: AbstractBrowserPage) -> Snapshot:
    """Capture the live cookies and storage of ``page``."""
    cookies = await collect_cookies(page)
    storage = await page.read_storage()
    snapshot = build_snapshot(
        page.url,
        page.title,
        cookies,
        storage.local_entries,
        storage.session_entries,
    )
    logger.debug(
        "Captured %s: %d cookie(s), %d local, %d session entries",
        snapshot.origin, len(snapshot.cookies),
        len(snapshot.local_entries), len(snapshot.session_entries),
    )
    return snapshot
