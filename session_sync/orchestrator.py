"""
SyncOrchestrator: push, pull, delete and list around the remote store.

Provides the public API of Session Sync:
- ``push(snapshot)`` / ``push_page(page)``: encrypt and upsert a snapshot
- ``pull(page)``: fetch, decrypt and restore into a page
- ``delete_origin(origin)``: remove a stored snapshot
- ``list_origins()``: enumerate synced origins (account id only)

Every call returns a ``SyncResult``; no exception escapes. Configuration is
re-read at the start of each call and derived capabilities are never cached.
Concurrent calls for the same origin are the caller's to serialize; the
remote store's last write wins.
"""
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional, Protocol

from .browser import AbstractBrowserPage
from .collector import capture_snapshot
from .exceptions import ConfigMissing, DecryptFailed, NoData, RemoteError
from .models import Snapshot, SyncResult, SyncStatus, origin_of
from .reconciler import RestoreReconciler
from .remote import AbstractRemoteStore, get_remote_store
from .vault.config import BackendConfig, SyncConfig, default_backend
from .vault.crypto import Capabilities, derive_account_id, derive_capabilities, encrypt
from .vault.secret import normalize_secret, validate_secret

logger = logging.getLogger("session_sync.orchestrator")

RemoteFactory = Callable[[Optional[BackendConfig]], Awaitable[AbstractRemoteStore]]


class ConfigSource(Protocol):
    def load(self) -> Optional[SyncConfig]:
        ...


def _failure(err: Exception) -> SyncResult:
    """Fold an exception into a caller-visible failure result."""
    if isinstance(err, ConfigMissing):
        return SyncResult.failure(SyncStatus.CONFIG_MISSING, str(err))
    if isinstance(err, NoData):
        return SyncResult.failure(SyncStatus.NO_DATA, str(err))
    if isinstance(err, DecryptFailed):
        return SyncResult.failure(SyncStatus.DECRYPT_FAILED, str(err))
    if isinstance(err, RemoteError):
        return SyncResult.failure(SyncStatus.REMOTE_ERROR, str(err))
    return SyncResult.failure(SyncStatus.ERROR, str(err) or type(err).__name__)


class SyncOrchestrator:
    """Sequences derivation, encryption and restore around the remote store.

    Args:
        config: Configuration source, read at the start of every call.
        remote: Fixed remote store. When omitted, the shared store for the
            configured endpoint is used.
        remote_factory: Factory used when ``remote`` is omitted.
    """

    def __init__(
        self,
        config: ConfigSource,
        remote: Optional[AbstractRemoteStore] = None,
        remote_factory: RemoteFactory = get_remote_store,
    ):
        self._config = config
        self._remote = remote
        self._remote_factory = remote_factory

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_config(self) -> Optional[SyncConfig]:
        try:
            return self._config.load()
        except (OSError, ValueError) as err:
            logger.error("Unable to read sync configuration: %s", err)
            raise ConfigMissing("Sync configuration is unreadable") from err

    def _resolve(self, secret: Optional[str]) -> tuple[str, Optional[SyncConfig]]:
        """Return the canonical sync key and the current configuration.

        Raises:
            ConfigMissing: If no sync key is available or it is malformed.
        """
        config = self._load_config()
        if not secret:
            secret = config.secret if config else None
        if not secret:
            raise ConfigMissing()
        secret = normalize_secret(secret)
        if not validate_secret(secret):
            raise ConfigMissing("Invalid sync key format")
        return secret, config

    async def _remote_for(self, config: Optional[SyncConfig]) -> AbstractRemoteStore:
        if self._remote is not None:
            return self._remote
        backend = config.endpoint() if config else default_backend()
        return await self._remote_factory(backend)

    async def _guarded(self, operation: str, coro: Awaitable[SyncResult]) -> SyncResult:
        try:
            return await coro
        except (ConfigMissing, NoData, DecryptFailed, RemoteError) as err:
            logger.info("%s failed: %s", operation, type(err).__name__)
            return _failure(err)
        except Exception as err:
            logger.exception("Unexpected error during %s", operation)
            return _failure(err)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def push(self, snapshot: Snapshot, secret: Optional[str] = None) -> SyncResult:
        """Encrypt ``snapshot`` and overwrite the stored copy for its origin."""
        return await self._guarded("push", self._push(snapshot, secret))

    async def _push(self, snapshot: Snapshot, secret: Optional[str]) -> SyncResult:
        secret, config = self._resolve(secret)
        caps = derive_capabilities(secret)
        origin = snapshot.origin
        envelope = encrypt(snapshot, secret)
        remote = await self._remote_for(config)
        await remote.upsert(caps.account_id, origin, envelope, caps.write_token)
        logger.info(
            "Pushed %s: %d cookie(s)", origin, len(snapshot.cookies)
        )
        return SyncResult.ok(data={"origin": origin})

    async def push_page(
        self, page: AbstractBrowserPage, secret: Optional[str] = None
    ) -> SyncResult:
        """Capture the live state of ``page`` and push it."""
        async def _run() -> SyncResult:
            snapshot = await capture_snapshot(page)
            return await self._push(snapshot, secret)
        return await self._guarded("push", _run())

    async def pull(
        self,
        page: AbstractBrowserPage,
        secret: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> SyncResult:
        """Restore the stored snapshot for ``origin`` (default: the page's origin).

        A partial cookie restore is a qualified success with status
        ``partial_restore`` and a ``k of n`` summary.
        """
        return await self._guarded("pull", self._pull(page, secret, origin))

    async def _pull(
        self, page: AbstractBrowserPage, secret: Optional[str], origin: Optional[str]
    ) -> SyncResult:
        secret, config = self._resolve(secret)
        caps: Capabilities = derive_capabilities(secret)
        origin = origin or origin_of(page.url)
        remote = await self._remote_for(config)
        outcome = await RestoreReconciler(remote, page).run(caps, secret, origin)
        data: dict[str, Any] = {
            "origin": origin,
            "restored": outcome.succeeded,
            "failed": outcome.failed,
        }
        if outcome.partial:
            return SyncResult(
                success=True,
                status=SyncStatus.PARTIAL_RESTORE,
                message=(
                    f"Session restored: {outcome.succeeded} of "
                    f"{outcome.total} cookies restored"
                ),
                data=data,
            )
        return SyncResult.ok(data=data, message="Session restored")

    async def delete_origin(self, origin: str, secret: Optional[str] = None) -> SyncResult:
        """Delete the stored snapshot for ``origin``."""
        async def _run() -> SyncResult:
            key, config = self._resolve(secret)
            caps = derive_capabilities(key)
            remote = await self._remote_for(config)
            await remote.delete(caps.account_id, origin, caps.write_token)
            logger.info("Deleted synced data for %s", origin)
            return SyncResult.ok(data={"origin": origin})
        return await self._guarded("delete", _run())

    async def list_origins(self, secret: Optional[str] = None) -> SyncResult:
        """List synced origins; needs the account id only."""
        async def _run() -> SyncResult:
            key, config = self._resolve(secret)
            account_id = derive_account_id(key)
            remote = await self._remote_for(config)
            records = await remote.list_origins(account_id)
            return SyncResult.ok(data=records)
        return await self._guarded("list", _run())
