"""
Cryptographic utilities for otpkit.

MAC           : HMAC over SHA-1 / SHA-256 / SHA-512 (``cryptography``)
Key material  : ``secrets`` CSPRNG
Comparison    : constant-time (``hmac.compare_digest``)
"""

import hmac
import logging
import secrets
from typing import Type

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as hmac_primitive

from otpkit.errors import AlgorithmUnavailable, InvalidConfiguration, InvalidKey
from otpkit.utils import encode_base32

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

KEY_SIZE = 20           # 160-bit key, the RFC 4226 recommendation for SHA-1


# ── HMAC ──────────────────────────────────────────────────────────────────────

def hmac_digest(
    key: bytes, message: bytes, hash_cls: Type[hashes.HashAlgorithm]
) -> bytes:
    """
    Compute ``HMAC(hash_cls, key, message)``.

    Args:
        key:      Secret key; must be non-empty bytes.
        message:  Data to authenticate.
        hash_cls: A ``cryptography.hazmat.primitives.hashes`` class.

    Returns:
        Raw digest bytes.

    Raises:
        InvalidKey:           If the key is empty or not bytes.
        AlgorithmUnavailable: If the backend does not support ``hash_cls``.
    """
    if not isinstance(key, (bytes, bytearray)):
        raise InvalidKey(f"Key must be bytes, got {type(key).__name__}")
    if not key:
        raise InvalidKey("Key must not be empty")

    try:
        mac = hmac_primitive.HMAC(bytes(key), hash_cls())
    except UnsupportedAlgorithm as exc:
        raise AlgorithmUnavailable(
            f"Could not find algorithm HMAC-{hash_cls.name.upper()}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise InvalidKey("Invalid key") from exc

    mac.update(message)
    return mac.finalize()


# ── Key generation ────────────────────────────────────────────────────────────

def generate_key(length: int = KEY_SIZE) -> bytes:
    """Return ``length`` cryptographically random bytes."""
    if length < 1:
        raise InvalidConfiguration(f"Key length must be 1 or more, got {length}.")
    logger.debug("Generating %d-byte key", length)
    return secrets.token_bytes(length)


def generate_base32_key(length: int = KEY_SIZE) -> str:
    """Return a fresh random key as unpadded Base-32 text."""
    return encode_base32(generate_key(length))


def constant_time_compare(a: str, b: str) -> bool:
    """Return True if *a* == *b* in constant time (timing-safe).

    Lone surrogates in user input encode instead of raising, so they compare
    unequal rather than escaping as ``UnicodeEncodeError``.
    """
    return hmac.compare_digest(
        a.encode("utf-8", "surrogatepass"), b.encode("utf-8", "surrogatepass")
    )
