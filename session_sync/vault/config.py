"""
Vault Configuration: Sync key persistence and remote endpoint settings.

Environment variables:
    SESSION_SYNC_KEY = <sync key>                  (EnvConfigStore only)
    SESSION_SYNC_URL = <remote service base url>   (default endpoint)
    SESSION_SYNC_ANON_KEY = <remote service api key>

Only the sync key is persisted; derived materials are recomputed for
every operation.

Security Note:
    Never log the sync key. Only log the config path and whether a
    backend override is present.
"""
import os
import logging
from pathlib import Path
from typing import Optional, Union

import orjson
from pydantic import BaseModel, Field, field_validator

from .secret import generate_secret, normalize_secret, validate_secret

logger = logging.getLogger("session_sync.vault")

_FILE_MODE = 0o600


def default_backend() -> Optional["BackendConfig"]:
    """Return the endpoint configured through the environment, if any."""
    url = os.environ.get("SESSION_SYNC_URL")
    if not url:
        return None
    return BackendConfig(
        url=url,
        anon_key=os.environ.get("SESSION_SYNC_ANON_KEY", ""),
    )


class BackendConfig(BaseModel):
    """Remote service endpoint."""

    url: str = Field(min_length=1)
    anon_key: str = ""

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Backend url must be http(s): {v}")
        return v.rstrip("/")


class SyncConfig(BaseModel):
    """Validated local sync configuration."""

    secret: str
    backend: Optional[BackendConfig] = None

    @field_validator("secret")
    @classmethod
    def validate_secret_format(cls, v: str) -> str:
        """Canonicalize and check the sync key shape."""
        v = normalize_secret(v)
        if not validate_secret(v):
            raise ValueError("Invalid sync key format")
        return v

    def endpoint(self) -> Optional[BackendConfig]:
        """Override endpoint if set, otherwise the environment default."""
        return self.backend or default_backend()

    @classmethod
    def from_env(cls) -> Optional["SyncConfig"]:
        """Create SyncConfig from environment, or None without SESSION_SYNC_KEY."""
        secret = os.environ.get("SESSION_SYNC_KEY")
        if not secret:
            return None
        return cls(secret=secret)


class EnvConfigStore:
    """Read-only configuration store backed by environment variables."""

    def load(self) -> Optional[SyncConfig]:
        return SyncConfig.from_env()


class FileConfigStore:
    """JSON file holding the sync key and an optional backend override."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load(self) -> Optional[SyncConfig]:
        """Read the configuration; None when nothing has been saved."""
        if not self.path.exists():
            return None
        data = orjson.loads(self.path.read_bytes())
        return SyncConfig.model_validate(data)

    def save(self, config: SyncConfig) -> None:
        """Write the configuration; the file is never readable by other users."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = orjson.dumps(
            config.model_dump(exclude_none=True), option=orjson.OPT_INDENT_2
        )
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
        # O_CREAT's mode only applies to new files
        os.fchmod(fd, _FILE_MODE)
        with os.fdopen(fd, "wb") as fp:
            fp.write(data)
        logger.debug(
            "Sync config saved to %s (backend override: %s)",
            self.path, config.backend is not None,
        )

    def reset(self) -> None:
        """Destroy the stored sync key."""
        if self.path.exists():
            self.path.unlink()
            logger.info("Sync config removed from %s", self.path)

    def is_configured(self) -> bool:
        return self.load() is not None

    def _current_backend(self) -> Optional[BackendConfig]:
        existing = self.load()
        return existing.backend if existing else None

    def create_secret(self) -> str:
        """Generate a new sync key and persist it, keeping any backend override.

        Returns:
            The new sync key.
        """
        secret = generate_secret()
        self.save(SyncConfig(secret=secret, backend=self._current_backend()))
        return secret

    def import_secret(self, candidate: str) -> str:
        """Persist a user-supplied sync key after normalizing it.

        Raises:
            ValueError: If the candidate is not a valid sync key.
        """
        secret = normalize_secret(candidate)
        if not validate_secret(secret):
            raise ValueError("Invalid sync key format")
        self.save(SyncConfig(secret=secret, backend=self._current_backend()))
        return secret

    def set_backend(self, backend: Optional[BackendConfig]) -> None:
        """Set or clear the backend override for the stored sync key.

        Raises:
            RuntimeError: If no sync key has been saved yet.
        """
        existing = self.load()
        if existing is None:
            raise RuntimeError("Cannot set a backend before a sync key exists")
        self.save(SyncConfig(secret=existing.secret, backend=backend))
