"""Session Sync Vault: Sync key, capability derivation and envelope encryption.

Security Note (Threat Model):
    The remote store only ever sees the account id, the write token and
    ciphertext. Anyone holding the sync key has full read, write and
    decrypt capability for the account; a compromised client is out of
    scope.
"""

from .secret import generate_secret, validate_secret, normalize_secret
from .crypto import (
    Capabilities,
    derive_capabilities,
    derive_key,
    derive_account_id,
    derive_write_token,
    encrypt,
    decrypt,
)
from .config import SyncConfig, BackendConfig, FileConfigStore, EnvConfigStore

__all__ = [
    "generate_secret",
    "validate_secret",
    "normalize_secret",
    "Capabilities",
    "derive_capabilities",
    "derive_key",
    "derive_account_id",
    "derive_write_token",
    "encrypt",
    "decrypt",
    "SyncConfig",
    "BackendConfig",
    "FileConfigStore",
    "EnvConfigStore",
]
