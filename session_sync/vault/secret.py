"""
Sync Key Codec: generation and validation of the human-facing secret.

Format: ``XXXXXX-XXXXXX-XXXXXX-XXXXXX``, 24 symbols drawn from an alphabet
without the look-alike characters ``0 O 1 I L``.

Security Note:
    The sync key is root key material. Never log it.
"""
import re
import secrets

ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
GROUPS = 4
GROUP_SIZE = 6
SECRET_LENGTH = GROUPS * GROUP_SIZE

_SYMBOL = "[A-HJKMNP-Z2-9]"
SECRET_PATTERN = re.compile(
    "^" + "-".join([f"{_SYMBOL}{{{GROUP_SIZE}}}"] * GROUPS) + "$"
)
_SEPARATORS = re.compile(r"[\s\-_]+")


def generate_secret() -> str:
    """Generate a new random sync key.

    Each symbol is drawn uniformly with ``secrets.choice``.

    Returns:
        Sync key in ``XXXXXX-XXXXXX-XXXXXX-XXXXXX`` format.
    """
    raw = "".join(secrets.choice(ALPHABET) for _ in range(SECRET_LENGTH))
    return "-".join(
        raw[i:i + GROUP_SIZE] for i in range(0, SECRET_LENGTH, GROUP_SIZE)
    )


def validate_secret(candidate: str) -> bool:
    """Case-insensitive check of the exact sync key shape.

    Args:
        candidate: String to check.

    Returns:
        True if ``candidate`` is four dash-separated groups of six
        alphabet symbols.
    """
    if not isinstance(candidate, str):
        return False
    return SECRET_PATTERN.fullmatch(candidate.upper()) is not None


def normalize_secret(candidate: str) -> str:
    """Canonicalize a user-typed sync key.

    Upper-cases, drops whitespace and separators, and regroups the symbols
    when exactly 24 remain. Anything else is returned upper-cased and
    stripped so that ``validate_secret`` rejects it.
    """
    cleaned = candidate.strip().upper()
    raw = _SEPARATORS.sub("", cleaned)
    if len(raw) != SECRET_LENGTH:
        return cleaned
    return "-".join(
        raw[i:i + GROUP_SIZE] for i in range(0, SECRET_LENGTH, GROUP_SIZE)
    )
