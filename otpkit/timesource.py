"""
Time sources for TOTP.

A time source is any object with a ``time()`` method returning whole seconds
since the Unix epoch.  The network-synchronised variant lives in
:mod:`otpkit.ntp`.
"""

import time
from typing import Protocol


class TimeSource(Protocol):
    def time(self) -> int:
        ...


class FixedTimeSource:
    """
    Always returns the same instant.

    Useful for tracing back the code that was valid at a specific moment.
    **Never use it for live authentication**: the clock does not advance, so
    a leaked code stays valid forever.
    """

    def __init__(self, seconds_since_epoch: int) -> None:
        self._seconds = int(seconds_since_epoch)

    def time(self) -> int:
        return self._seconds

    def __repr__(self) -> str:
        return f"FixedTimeSource({self._seconds})"


class SystemTimeSource:
    """Local wall clock, truncated to whole seconds."""

    def time(self) -> int:
        return int(time.time())

    def __repr__(self) -> str:
        return "SystemTimeSource()"
