"""
Utility helpers for otpkit: the Base-32 key codec, range validators and
display formatting.
"""

import base64
import re

from otpkit.errors import InvalidConfiguration, InvalidEncoding

MIN_DIGITS = 1
MAX_DIGITS = 10
MAX_COUNTER = 2**64 - 1


# ── Base32 ────────────────────────────────────────────────────────────────────

# Data symbols followed by trailing padding only.  ASCII ranges are spelled out
# because re.IGNORECASE would also accept letters like "ſ" or the Kelvin sign.
_BASE32_RE = re.compile(r"[A-Za-z2-7]*=*")

# Data symbols mod 8 that cannot end on a byte boundary.
_INVALID_RESIDUES = (1, 3, 6)


def encode_base32(raw: bytes, padding: bool = False) -> str:
    """
    Encode raw bytes as RFC 4648 Base-32 text.

    Args:
        raw:     Bytes to encode.
        padding: Append ``=`` up to a multiple of 8 characters.

    Returns:
        Uppercase Base-32 string.
    """
    text = base64.b32encode(raw).decode("ascii")
    return text if padding else text.rstrip("=")


def decode_base32(text: str) -> bytes:
    """
    Decode Base-32 text to raw bytes.

    Case-insensitive.  Any number of trailing ``=`` is accepted, but padding
    may not be followed by data.

    Args:
        text: Base-32 string, padded or not.

    Returns:
        Raw bytes.

    Raises:
        InvalidEncoding: On a non-alphabet character, misplaced padding, or a
            data length that cannot correspond to whole bytes.
    """
    if not isinstance(text, str) or not _BASE32_RE.fullmatch(text):
        raise InvalidEncoding("Invalid Base32 string")

    data = text.rstrip("=").upper()
    residue = len(data) % 8
    if residue in _INVALID_RESIDUES:
        raise InvalidEncoding(
            f"Invalid Base32 length: {len(data)} symbols leave a partial byte"
        )

    padded = data + "=" * ((8 - residue) % 8)
    try:
        return base64.b32decode(padded)
    except ValueError as exc:
        raise InvalidEncoding(f"Invalid Base32 string: {exc}") from exc


def normalize_secret(secret: str) -> str:
    """
    Normalise a human-typed secret: strip whitespace and dashes, uppercase.

    The result still has to pass :func:`decode_base32`.
    """
    return secret.strip().upper().replace(" ", "").replace("-", "")


# ── Display ───────────────────────────────────────────────────────────────────

def format_otp(code: str, group: int = 3) -> str:
    """
    Format an OTP code with spaces for readability.

    Example::

        >>> format_otp("123456")
        "123 456"
    """
    return " ".join(code[i : i + group] for i in range(0, len(code), group))


# ── Validation ────────────────────────────────────────────────────────────────

def _require_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}.")
    return value


def validate_digits(digits: int) -> None:
    _require_int("Digits", digits)
    if not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise InvalidConfiguration(
            f"Digits must be between {MIN_DIGITS} and {MAX_DIGITS}, got {digits}."
        )


def validate_period(period: int) -> None:
    _require_int("Period", period)
    if period < 1:
        raise InvalidConfiguration(f"Period must be 1 or more, got {period}.")


def validate_discrepancy(discrepancy: int) -> None:
    _require_int("Discrepancy", discrepancy)
    if discrepancy < 0:
        raise InvalidConfiguration(
            f"Discrepancy must be 0 or more, got {discrepancy}."
        )


def validate_counter(counter: int) -> None:
    """Counters are unsigned 64-bit values."""
    _require_int("Counter", counter)
    if not 0 <= counter <= MAX_COUNTER:
        raise InvalidConfiguration(
            f"Counter must fit in an unsigned 64-bit integer, got {counter}."
        )
