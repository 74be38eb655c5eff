"""
Vault Crypto Core: Capability derivation, envelope encryption and serialization.

One sync key yields three independent materials:
- Encryption key: PBKDF2-HMAC-SHA256(key, salt, 600k) → AES-256-GCM
- Account id: SHA-256(key), public, addresses read/list operations
- Write token: SHA-256("session-sync:write:" + key), private, authorizes mutation

Envelope format: {ciphertext, iv, salt}, base64 text, fresh 16-byte salt and
12-byte nonce per encryption call.

Security Note:
    Never log the sync key, derived keys, tokens, plaintext or ciphertext.
    Every decryption failure is reported as the same ``DecryptFailed``.
"""
import os
import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any

import orjson
from pydantic import BaseModel
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import DecryptFailed
from ..models import EncryptedEnvelope

logger = logging.getLogger("session_sync.vault")

PBKDF2_ITERATIONS = 600_000  # cost floor against offline guessing
SALT_SIZE = 16
NONCE_SIZE = 12  # 96-bit nonce
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16

NAMESPACE = "session-sync"
WRITE_CONTEXT = f"{NAMESPACE}:write:"


# ---------------------------------------------------------------------------
# Capability derivation
# ---------------------------------------------------------------------------

def _require_secret(secret: str) -> bytes:
    if not secret:
        raise ValueError("Sync key cannot be empty")
    return secret.encode("utf-8")


def derive_key(secret: str, salt: bytes) -> bytes:
    """Derive a 32-byte AES-GCM key from the sync key using PBKDF2-SHA256.

    Args:
        secret: Sync key.
        salt: Per-envelope random salt.

    Returns:
        32-byte derived key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(_require_secret(secret))


def derive_account_id(secret: str) -> str:
    """Public account identifier: hex SHA-256 of the sync key."""
    return hashlib.sha256(_require_secret(secret)).hexdigest()


def derive_write_token(secret: str) -> str:
    """Private write capability: hex SHA-256 of the domain-separated sync key.

    Knowing the account id does not reveal the write token.
    """
    _require_secret(secret)
    preimage = (WRITE_CONTEXT + secret).encode("utf-8")
    return hashlib.sha256(preimage).hexdigest()


@dataclass(frozen=True)
class Capabilities:
    """Capability triple derived from one sync key.

    The encryption key is salt-bound, so it is produced per envelope
    through ``encryption_key(salt)``. Never persisted.
    """

    account_id: str
    write_token: str = field(repr=False)
    _secret: str = field(repr=False, compare=False)

    def encryption_key(self, salt: bytes) -> bytes:
        return derive_key(self._secret, salt)


def derive_capabilities(secret: str) -> Capabilities:
    """Compute the capability triple for ``secret``."""
    return Capabilities(
        account_id=derive_account_id(secret),
        write_token=derive_write_token(secret),
        _secret=secret,
    )


# ---------------------------------------------------------------------------
# Document serialization
# ---------------------------------------------------------------------------

def serialize_document(document: Any) -> bytes:
    """Serialize a document to canonical bytes.

    Pydantic models are dumped in their wire form first. Keys are sorted
    so equal documents always produce equal bytes.

    Args:
        document: JSON-compatible value or pydantic model.

    Returns:
        orjson-encoded bytes.
    """
    if isinstance(document, BaseModel):
        document = document.model_dump(mode="json", by_alias=True, exclude_none=True)
    return orjson.dumps(document, option=orjson.OPT_SORT_KEYS)


def deserialize_document(data: bytes) -> Any:
    """Decode bytes produced by ``serialize_document``."""
    return orjson.loads(data)


# ---------------------------------------------------------------------------
# Envelope encryption
# ---------------------------------------------------------------------------

def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.b64decode(text, validate=True)


def encrypt(document: Any, secret: str) -> EncryptedEnvelope:
    """Encrypt a document under a key derived from ``secret``.

    Args:
        document: JSON-compatible value or pydantic model.
        secret: Sync key.

    Returns:
        EncryptedEnvelope with base64 ciphertext (GCM tag appended), iv and salt.
    """
    plaintext = serialize_document(document)
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    key = derive_key(secret, salt)
    ct = AESGCM(key).encrypt(nonce, plaintext, None)
    return EncryptedEnvelope(
        ciphertext=_b64encode(ct),
        iv=_b64encode(nonce),
        salt=_b64encode(salt),
    )


def decrypt(envelope: EncryptedEnvelope, secret: str) -> Any:
    """Authenticate and decrypt an envelope.

    Args:
        envelope: Envelope produced by ``encrypt``.
        secret: Sync key.

    Returns:
        The original document (JSON-compatible value).

    Raises:
        DecryptFailed: On any authentication or decoding failure.
    """
    try:
        salt = _b64decode(envelope.salt)
        nonce = _b64decode(envelope.iv)
        ct = _b64decode(envelope.ciphertext)
        if len(nonce) != NONCE_SIZE or len(ct) < TAG_SIZE:
            raise DecryptFailed()
        key = derive_key(secret, salt)
        plaintext = AESGCM(key).decrypt(nonce, ct, None)
        return deserialize_document(plaintext)
    except (InvalidTag, binascii.Error, orjson.JSONDecodeError, ValueError):
        logger.debug("Envelope failed to authenticate or decode")
        raise DecryptFailed() from None
