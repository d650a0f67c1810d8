"""
HMAC code generation with RFC 4226 dynamic truncation.

The same generator serves HOTP (explicit counter) and TOTP (time window used
as the counter).
"""

import struct
from enum import Enum
from typing import Protocol

from cryptography.hazmat.primitives import hashes

from otpkit.crypto import hmac_digest
from otpkit.errors import InvalidConfiguration
from otpkit.utils import validate_counter, validate_digits


class HashAlgorithm(str, Enum):
    """Supported HMAC algorithms."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"


_ALG_MAP = {
    HashAlgorithm.SHA1: hashes.SHA1,
    HashAlgorithm.SHA256: hashes.SHA256,
    HashAlgorithm.SHA512: hashes.SHA512,
}


class CodeGenerator(Protocol):
    """Anything that turns a key and a counter into a code."""

    def generate(self, key: bytes, counter: int) -> str:
        ...


def truncate(digest: bytes, digits: int) -> str:
    """
    Dynamic truncation (RFC 4226 §5.3).

    The low nibble of the last byte picks a 4-byte window; its top bit is
    cleared and the remaining 31-bit value is reduced to ``digits`` decimals.
    """
    offset = digest[-1] & 0x0F
    code = (
        (digest[offset] & 0x7F) << 24
        | (digest[offset + 1] & 0xFF) << 16
        | (digest[offset + 2] & 0xFF) << 8
        | (digest[offset + 3] & 0xFF)
    )
    otp = code % (10**digits)
    return str(otp).zfill(digits)


class HmacGenerator:
    """
    Standard HOTP/TOTP generator.

    Only SHA-1 with 6 digits is understood by common authenticator apps; the
    other combinations work but are not interoperable.
    """

    STANDARD: "HmacGenerator"

    def __init__(
        self,
        algorithm: HashAlgorithm = HashAlgorithm.SHA1,
        digits: int = 6,
    ) -> None:
        """
        Args:
            algorithm: HMAC hash function.
            digits:    Code length, 1 to 10.

        Raises:
            InvalidConfiguration: On an unknown algorithm or bad digit count.
        """
        try:
            algorithm = HashAlgorithm(algorithm)
        except ValueError as exc:
            raise InvalidConfiguration(
                f"Unsupported algorithm {algorithm!r}. Supported: SHA1, SHA256, SHA512."
            ) from exc
        validate_digits(digits)
        self._algorithm = algorithm
        self._digits = digits

    @property
    def algorithm(self) -> HashAlgorithm:
        return self._algorithm

    @property
    def digits(self) -> int:
        return self._digits

    def generate(self, key: bytes, counter: int) -> str:
        """
        Generate the code for ``counter``.

        Args:
            key:     Raw secret bytes.
            counter: Unsigned 64-bit counter or TOTP window index.

        Returns:
            Zero-padded code of exactly :attr:`digits` characters.

        Raises:
            InvalidKey:           If the key is rejected.
            AlgorithmUnavailable: If the hash is not supported by the backend.
            InvalidConfiguration: If ``counter`` does not fit in 64 bits.
        """
        validate_counter(counter)
        msg = struct.pack(">Q", counter)
        digest = hmac_digest(key, msg, _ALG_MAP[self._algorithm])
        return truncate(digest, self._digits)

    def __repr__(self) -> str:
        return f"HmacGenerator({self._algorithm.value}, digits={self._digits})"


HmacGenerator.STANDARD = HmacGenerator(HashAlgorithm.SHA1, 6)
