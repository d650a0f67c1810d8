"""
HOTP (HMAC-based One-Time Password) implementation following RFC 4226.
"""

import logging
from typing import Optional

from otpkit.crypto import constant_time_compare
from otpkit.errors import InvalidConfiguration
from otpkit.generator import CodeGenerator, HmacGenerator
from otpkit.utils import MAX_COUNTER, validate_counter

logger = logging.getLogger(__name__)


class CounterOtp:
    """
    Counter-based one-time password.

    The counter only moves through :meth:`increment`, :meth:`sync` or
    :meth:`resync`; :meth:`verify` never touches it.  Instances are not
    thread-safe: share one across threads only behind a lock.
    """

    def __init__(
        self,
        key: bytes,
        generator: CodeGenerator = HmacGenerator.STANDARD,
        counter: int = 0,
    ) -> None:
        """
        Args:
            key:       Raw secret bytes.
            generator: Code generator, SHA-1 / 6 digits by default.
            counter:   Initial counter value.
        """
        validate_counter(counter)
        self._generator = generator
        self._key = bytes(key) if isinstance(key, bytearray) else key
        self._counter = counter

    @property
    def counter(self) -> int:
        return self._counter

    def increment(self) -> None:
        """Advance the counter, wrapping from 2**64-1 back to 0."""
        self._counter = (self._counter + 1) & MAX_COUNTER

    def sync(self, counter: int) -> None:
        """Set the counter unconditionally, e.g. to catch up with a token."""
        validate_counter(counter)
        self._counter = counter

    def code(self) -> str:
        """Code for the current counter."""
        return self._generator.generate(self._key, self._counter)

    def verify(self, candidate: Optional[str]) -> bool:
        """
        Check ``candidate`` against the code for the current counter.

        Returns False for ``None`` or a mismatch.  Generation failures are
        raised, not reported as False.
        """
        if candidate is None:
            return False
        return constant_time_compare(candidate, self.code())

    def resync(self, candidate: Optional[str], look_ahead: int = 10) -> bool:
        """
        Look for ``candidate`` in the next ``look_ahead`` counters.

        Every counter from the current one to ``counter + look_ahead`` is
        evaluated, matched or not.  On a match at counter ``c`` the counter
        becomes ``c + 1``.  Counters past 2**64-1 wrap to 0.

        Args:
            candidate:  Code entered by the user.
            look_ahead: How many counters past the current one to try.

        Returns:
            True if a match was found and the counter moved.
        """
        if look_ahead < 0:
            raise InvalidConfiguration(
                f"Look-ahead must be 0 or more, got {look_ahead}."
            )
        if candidate is None:
            return False

        matched = None
        for step in range(look_ahead + 1):
            counter = (self._counter + step) & MAX_COUNTER
            expected = self._generator.generate(self._key, counter)
            if constant_time_compare(candidate, expected) and matched is None:
                matched = counter

        if matched is None:
            return False
        logger.debug(
            "HOTP counter resynchronised from %d to %d",
            self._counter, (matched + 1) & MAX_COUNTER,
        )
        self._counter = (matched + 1) & MAX_COUNTER
        return True

    def __repr__(self) -> str:
        return f"CounterOtp({self._generator!r}, counter={self._counter})"
