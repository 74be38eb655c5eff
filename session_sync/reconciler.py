"""
Restore Reconciler: replace live browser state with a stored Snapshot.

One pass, no retries:
    fetch → decrypt → clear cookies → restore cookies → restore storage → reload

Removals and sets are independent and best-effort: one failing item never
aborts the others. The operation is not transactional; a crash mid-restore
can leave mixed state, the stored snapshot itself is never touched.

Security Note:
    Never log cookie or storage values. Only log origins and counts.
"""
import asyncio
import logging

from pydantic import ValidationError

from .browser import AbstractBrowserPage, PageStorage, cookie_set_details, cookie_url
from .collector import collect_cookies
from .exceptions import DecryptFailed, NoData
from .models import EncryptedEnvelope, RestoreOutcome, Snapshot
from .remote import AbstractRemoteStore
from .vault.crypto import Capabilities, decrypt

logger = logging.getLogger("session_sync.reconciler")


class RestoreReconciler:
    """Restores one origin's stored snapshot into a browser page."""

    def __init__(self, remote: AbstractRemoteStore, page: AbstractBrowserPage):
        self._remote = remote
        self._page = page

    async def fetch(self, capabilities: Capabilities, origin: str) -> EncryptedEnvelope:
        """Read the stored envelope.

        Raises:
            NoData: If nothing is stored for ``origin``.
        """
        envelope = await self._remote.read(capabilities.account_id, origin)
        if envelope is None:
            raise NoData(origin)
        return envelope

    def open_envelope(self, envelope: EncryptedEnvelope, secret: str) -> Snapshot:
        """Decrypt and decode the envelope into a Snapshot.

        A payload that authenticates but is not a Snapshot is reported
        the same way as a failed authentication.

        Raises:
            DecryptFailed: On any failure.
        """
        document = decrypt(envelope, secret)
        try:
            return Snapshot.model_validate(document)
        except ValidationError:
            raise DecryptFailed() from None

    async def clear_cookies(self) -> int:
        """Remove every cookie currently visible to the page.

        Returns:
            Number of removals that failed.
        """
        existing = await collect_cookies(self._page)
        results = await asyncio.gather(
            *(
                self._page.remove_cookie(
                    cookie_url(c.domain, c.path, c.secure), c.name
                )
                for c in existing
            ),
            return_exceptions=True,
        )
        failed = sum(1 for r in results if isinstance(r, BaseException))
        if failed:
            logger.warning(
                "%d of %d cookie removal(s) failed", failed, len(existing)
            )
        return failed

    async def restore_cookies(self, snapshot: Snapshot) -> RestoreOutcome:
        """Set every snapshot cookie, tracking each outcome independently."""
        results = await asyncio.gather(
            *(self._page.set_cookie(cookie_set_details(c)) for c in snapshot.cookies),
            return_exceptions=True,
        )
        succeeded = 0
        for cookie, result in zip(snapshot.cookies, results):
            if isinstance(result, BaseException) or not result:
                logger.debug(
                    "Cookie %s (domain=%s path=%s) was not restored: %s",
                    cookie.name, cookie.domain, cookie.path,
                    result if isinstance(result, BaseException) else "rejected",
                )
                continue
            succeeded += 1
        return RestoreOutcome(
            succeeded=succeeded, failed=len(snapshot.cookies) - succeeded
        )

    async def restore_storage(self, snapshot: Snapshot) -> None:
        await self._page.write_storage(
            PageStorage(
                local_entries=snapshot.local_entries,
                session_entries=snapshot.session_entries,
            )
        )

    async def run(
        self, capabilities: Capabilities, secret: str, origin: str
    ) -> RestoreOutcome:
        """Execute one full restore.

        Raises:
            NoData: Nothing stored for ``origin``.
            DecryptFailed: Stored envelope could not be decrypted.
        """
        envelope = await self.fetch(capabilities, origin)
        snapshot = self.open_envelope(envelope, secret)
        await self.clear_cookies()
        outcome = await self.restore_cookies(snapshot)
        await self.restore_storage(snapshot)
        await self._page.reload()
        logger.info(
            "Restored %s: %d of %d cookie(s)",
            origin, outcome.succeeded, outcome.total,
        )
        return outcome
