"""
Remote Store: the untrusted intermediary holding encrypted snapshots.

The store is consumed through four operations only:
- ``upsert(account_id, origin, envelope, write_token)``: full overwrite
- ``read(account_id, origin)``: envelope or None
- ``delete(account_id, origin, write_token)``: no-op if absent
- ``list_origins(account_id)``: origins with their last update time

``RpcRemoteStore`` talks to a PostgREST-style RPC endpoint over aiohttp.
Rows are decoded into typed models at this boundary; malformed responses
become ``RemoteError``.

Security Note:
    Only the account id, write token and ciphertext ever leave the client.
    Never log the write token or the envelope.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .exceptions import RemoteError
from .models import EncryptedEnvelope, OriginRecord
from .vault.config import BackendConfig

logger = logging.getLogger("session_sync.remote")

# RPC function names
_RPC_UPSERT = "upsert_sync_data"
_RPC_READ = "read_sync_data"
_RPC_DELETE = "delete_sync_data"
_RPC_LIST = "list_user_origins"


class AbstractRemoteStore(ABC):
    """Contract of the remote snapshot store."""

    @abstractmethod
    async def upsert(
        self,
        account_id: str,
        origin: str,
        envelope: EncryptedEnvelope,
        write_token: str,
    ) -> None:
        pass

    @abstractmethod
    async def read(self, account_id: str, origin: str) -> Optional[EncryptedEnvelope]:
        pass

    @abstractmethod
    async def delete(self, account_id: str, origin: str, write_token: str) -> None:
        pass

    @abstractmethod
    async def list_origins(self, account_id: str) -> list[OriginRecord]:
        pass

    async def close(self) -> None:
        return None


class EnvelopeRow(BaseModel):
    """Row shape returned by ``read_sync_data``."""

    encrypted_payload: str = Field(min_length=1)
    iv: str = Field(min_length=1)
    salt: str = Field(min_length=1)

    def envelope(self) -> EncryptedEnvelope:
        return EncryptedEnvelope(
            ciphertext=self.encrypted_payload, iv=self.iv, salt=self.salt
        )


_ORIGIN_LIST = TypeAdapter(list[OriginRecord])


class RpcRemoteStore(AbstractRemoteStore):
    """Remote store reached through RPC calls on a PostgREST endpoint."""

    def __init__(self, url: str, anon_key: str = "", timeout: Optional[float] = None):
        self.url = url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    def __repr__(self) -> str:
        return f"<RpcRemoteStore url={self.url!r}>"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._anon_key:
            headers["apikey"] = self._anon_key
            headers["Authorization"] = f"Bearer {self._anon_key}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers(), timeout=self._timeout,
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _rpc(self, name: str, params: dict[str, Any]) -> Any:
        """Call one RPC function and return its decoded JSON body.

        Raises:
            RemoteError: On transport failure or a non-2xx response.
        """
        endpoint = f"{self.url}/rest/v1/rpc/{name}"
        try:
            async with self._get_session().post(endpoint, json=params) as response:
                if response.status >= 400:
                    raise RemoteError(await self._error_message(response))
                if response.status == 204:
                    return None
                text = await response.text()
                if not text:
                    return None
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            logger.warning("RPC %s failed: %s", name, err)
            raise RemoteError(str(err) or type(err).__name__) from err
        except ValueError as err:
            raise RemoteError(f"Malformed response from {name}") from err

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {response.status}: {response.reason}"

    async def upsert(
        self,
        account_id: str,
        origin: str,
        envelope: EncryptedEnvelope,
        write_token: str,
    ) -> None:
        await self._rpc(
            _RPC_UPSERT,
            {
                "p_user_hash": account_id,
                "p_origin": origin,
                "p_encrypted_payload": envelope.ciphertext,
                "p_iv": envelope.iv,
                "p_salt": envelope.salt,
                "p_write_token": write_token,
            },
        )

    async def read(self, account_id: str, origin: str) -> Optional[EncryptedEnvelope]:
        data = await self._rpc(
            _RPC_READ, {"p_user_hash": account_id, "p_origin": origin},
        )
        if isinstance(data, list):
            if len(data) > 1:
                raise RemoteError(f"Expected at most one row for {origin}")
            data = data[0] if data else None
        if data is None:
            return None
        try:
            return EnvelopeRow.model_validate(data).envelope()
        except ValidationError as err:
            raise RemoteError(f"Malformed sync row for {origin}") from err

    async def delete(self, account_id: str, origin: str, write_token: str) -> None:
        await self._rpc(
            _RPC_DELETE,
            {
                "p_user_hash": account_id,
                "p_origin": origin,
                "p_write_token": write_token,
            },
        )

    async def list_origins(self, account_id: str) -> list[OriginRecord]:
        data = await self._rpc(_RPC_LIST, {"p_user_hash": account_id})
        try:
            return _ORIGIN_LIST.validate_python(data or [])
        except ValidationError as err:
            raise RemoteError("Malformed origin list") from err


# ---------------------------------------------------------------------------
# Client cache
# ---------------------------------------------------------------------------

_store: Optional[RpcRemoteStore] = None
_store_key: Optional[tuple[str, str]] = None


async def get_remote_store(backend: Optional[BackendConfig]) -> RpcRemoteStore:
    """Return the shared store for ``backend``, rebuilding it when the endpoint changes.

    Raises:
        RemoteError: If no endpoint is configured.
    """
    global _store, _store_key
    if backend is None:
        raise RemoteError(
            "No remote endpoint configured. Set SESSION_SYNC_URL or a backend override"
        )
    key = (backend.url, backend.anon_key)
    if _store is None or key != _store_key:
        if _store is not None:
            await _store.close()
        _store = RpcRemoteStore(backend.url, backend.anon_key)
        _store_key = key
        logger.debug("Remote store created for %s", backend.url)
    return _store


async def close_remote_store() -> None:
    """Release the shared store."""
    global _store, _store_key
    if _store is not None:
        await _store.close()
    _store = None
    _store_key = None
