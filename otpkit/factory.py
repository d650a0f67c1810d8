"""
Builder for :class:`~otpkit.hotp.CounterOtp` and :class:`~otpkit.totp.TimeOtp`.

Every setter validates its value immediately, so a bad configuration fails
where it is written rather than when the first code is generated.
"""

from typing import Optional, Union

from otpkit.errors import InvalidConfiguration
from otpkit.generator import CodeGenerator, HashAlgorithm, HmacGenerator
from otpkit.hotp import CounterOtp
from otpkit.timesource import SystemTimeSource, TimeSource
from otpkit.totp import DEFAULT_PERIOD, TimeOtp
from otpkit.utils import (
    decode_base32,
    validate_counter,
    validate_discrepancy,
    validate_period,
)

Key = Union[bytes, str]


def _key_bytes(key: Key) -> bytes:
    """Raw bytes pass through; text is decoded as Base-32."""
    if key is None:
        raise InvalidConfiguration("Key is None.")
    if isinstance(key, str):
        return decode_base32(key)
    return bytes(key) if isinstance(key, bytearray) else key


class OtpFactory:
    """
    Fluent configuration for OTP instances::

        totp = OtpFactory().hash_algorithm(HashAlgorithm.SHA256).digits(8).totp(key)
    """

    def __init__(self) -> None:
        self._algorithm = HashAlgorithm.SHA1
        self._digits = 6
        self._generator: CodeGenerator = HmacGenerator.STANDARD
        self._time_source: TimeSource = SystemTimeSource()
        self._period = DEFAULT_PERIOD
        self._discrepancy: Optional[int] = None   # None: same as period
        self._counter = 0

    # ── Setters ──────────────────────────────────────────────────────────

    def generator(self, generator: CodeGenerator) -> "OtpFactory":
        if generator is None:
            raise InvalidConfiguration("Generator is None.")
        self._generator = generator
        return self

    def hash_algorithm(self, algorithm: HashAlgorithm) -> "OtpFactory":
        self._generator = HmacGenerator(algorithm, self._digits)
        self._algorithm = self._generator.algorithm
        return self

    def digits(self, digits: int) -> "OtpFactory":
        self._generator = HmacGenerator(self._algorithm, digits)
        self._digits = digits
        return self

    def time_source(self, time_source: TimeSource) -> "OtpFactory":
        if time_source is None:
            raise InvalidConfiguration("Time source is None.")
        self._time_source = time_source
        return self

    def period(self, period: int) -> "OtpFactory":
        validate_period(period)
        self._period = period
        return self

    def discrepancy(self, discrepancy: int) -> "OtpFactory":
        validate_discrepancy(discrepancy)
        self._discrepancy = discrepancy
        return self

    def counter(self, counter: int) -> "OtpFactory":
        validate_counter(counter)
        self._counter = counter
        return self

    # ── Products ─────────────────────────────────────────────────────────

    def otp(self, key: Key) -> CounterOtp:
        """Counter-based OTP for ``key`` (raw bytes or Base-32 text)."""
        return CounterOtp(_key_bytes(key), self._generator, self._counter)

    def totp(self, key: Key) -> TimeOtp:
        """Time-based OTP for ``key`` (raw bytes or Base-32 text)."""
        return TimeOtp(
            _key_bytes(key),
            self._generator,
            self._time_source,
            self._period,
            self._discrepancy,
        )


def standard_otp(key: Key) -> CounterOtp:
    """HOTP with SHA-1, 6 digits, counter 0."""
    return OtpFactory().otp(key)


def standard_totp(key: Key) -> TimeOtp:
    """TOTP with SHA-1, 6 digits, 30 s period and ±30 s tolerance."""
    return OtpFactory().totp(key)
