"""
TOTP (Time-based One-Time Password) implementation following RFC 6238.

With the default configuration (SHA-1, 6 digits, 30 s) codes are identical
to Google Authenticator.
"""

from typing import Optional

from otpkit.crypto import constant_time_compare
from otpkit.generator import CodeGenerator, HmacGenerator
from otpkit.timesource import SystemTimeSource, TimeSource
from otpkit.utils import MAX_COUNTER, validate_discrepancy, validate_period

DEFAULT_PERIOD = 30


class TimeOtp:
    """Time-window one-time password with a symmetric clock-skew tolerance."""

    def __init__(
        self,
        key: bytes,
        generator: CodeGenerator = HmacGenerator.STANDARD,
        time_source: Optional[TimeSource] = None,
        period: int = DEFAULT_PERIOD,
        discrepancy: Optional[int] = None,
    ) -> None:
        """
        Args:
            key:         Raw secret bytes.
            generator:   Code generator, SHA-1 / 6 digits by default.
            time_source: Clock; the local system clock if None.
            period:      Seconds per code, 1 or more.
            discrepancy: Tolerated clock skew in seconds.  Defaults to
                         ``period``.  With 0 the window range is
                         floor(now / period) to ceil(now / period): the
                         current window, plus the next one unless ``now``
                         falls exactly on a window start.

        Raises:
            InvalidConfiguration: On a bad period or discrepancy.
        """
        validate_period(period)
        if discrepancy is None:
            discrepancy = period
        validate_discrepancy(discrepancy)

        self._generator = generator
        self._key = bytes(key) if isinstance(key, bytearray) else key
        self._time_source = time_source if time_source is not None else SystemTimeSource()
        self._period = period
        self._discrepancy = discrepancy

    @property
    def period(self) -> int:
        return self._period

    @property
    def discrepancy(self) -> int:
        return self._discrepancy

    @property
    def time_source(self) -> TimeSource:
        return self._time_source

    def _generate(self, window: int) -> str:
        # Windows before the epoch wrap around like the 64-bit counter they
        # are serialised as.
        return self._generator.generate(self._key, window & MAX_COUNTER)

    def window(self) -> int:
        """Index of the current time window."""
        return self._time_source.time() // self._period

    def remaining_seconds(self) -> int:
        """Return seconds until the current window expires."""
        return self._period - (self._time_source.time() % self._period)

    def code(self) -> str:
        """Code for the current time window."""
        return self._generate(self.window())

    def verify(self, candidate: Optional[str]) -> bool:
        """
        Check ``candidate`` against every window within ``discrepancy``
        seconds of now.

        All windows in range are generated and compared even after a match,
        so the time taken does not reveal which window matched.

        Returns:
            True if any window matched; False for ``None`` or no match.
        """
        if candidate is None:
            return False

        now = self._time_source.time()
        first = (now - self._discrepancy) // self._period
        last = -(-(now + self._discrepancy) // self._period)

        success = False
        for window in range(first, last + 1):
            success |= constant_time_compare(candidate, self._generate(window))
        return success

    def __repr__(self) -> str:
        return (
            f"TimeOtp({self._generator!r}, {self._time_source!r}, "
            f"period={self._period}, discrepancy={self._discrepancy})"
        )
