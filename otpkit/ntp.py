"""
Network-synchronised time source (SNTP client, RFC 4330 / RFC 5905 packet).

Packet layout (48 bytes, network byte order)::

    0      LI (2 bits) | VN (3 bits) | Mode (3 bits)
    1      Stratum
    2      Poll interval (signed log2 seconds)
    3      Precision (signed log2 seconds)
    4-7    Root delay       (signed 16.16 fixed point)
    8-11   Root dispersion  (unsigned 16.16 fixed point)
    12-15  Reference identifier
    16-23  Reference timestamp  (32.32 fixed point, seconds since 1900)
    24-31  Origin timestamp
    32-39  Receive timestamp
    40-47  Transmit timestamp
"""

import logging
import random
import socket
import struct
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from otpkit.errors import ClosedSource, InvalidConfiguration, TimeSyncError

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

NTP_PORT = 123
DEFAULT_TIMEOUT = 3.0          # seconds
PACKET_SIZE = 48
NTP_EPOCH_OFFSET = 2208988800  # seconds between 1900-01-01 and 1970-01-01

MODE_CLIENT = 3
MODE_SERVER = 4

_PACKET = struct.Struct("!BBbbiI4sQQQQ")
_FRACTION = 2**32
_FIXED16 = 2**16


def _to_timestamp(seconds: float) -> int:
    """Seconds since 1900 to 32.32 fixed point.

    A non-zero timestamp gets a random low byte (below the clock's precision)
    so that two requests sent within the same tick still differ.
    """
    value = int(seconds * _FRACTION) & 0xFFFFFFFFFFFFFFFF
    if value:
        value = (value & ~0xFF) | random.getrandbits(8)
    return value


def _from_timestamp(value: int) -> float:
    return value / _FRACTION


def ntp_now() -> float:
    """Local clock as seconds since the NTP era (1900)."""
    return time.time() + NTP_EPOCH_OFFSET


# ── Packet ────────────────────────────────────────────────────────────────────

@dataclass
class NtpPacket:
    """One NTP message; timestamps are float seconds since 1900."""

    leap: int = 0
    version: int = 3
    mode: int = 0
    stratum: int = 0
    poll: int = 0
    precision: int = 0
    root_delay: float = 0.0
    root_dispersion: float = 0.0
    ref_id: bytes = b"\x00\x00\x00\x00"
    ref_time: float = 0.0
    orig_time: float = 0.0
    recv_time: float = 0.0
    tx_time: float = 0.0

    def to_bytes(self) -> bytes:
        return _PACKET.pack(
            (self.leap & 0x3) << 6 | (self.version & 0x7) << 3 | (self.mode & 0x7),
            self.stratum,
            self.poll,
            self.precision,
            int(self.root_delay * _FIXED16),
            int(self.root_dispersion * _FIXED16),
            self.ref_id,
            _to_timestamp(self.ref_time),
            _to_timestamp(self.orig_time),
            _to_timestamp(self.recv_time),
            _to_timestamp(self.tx_time),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "NtpPacket":
        """
        Parse the first 48 bytes of ``data``.

        Raises:
            ValueError: If ``data`` is shorter than a full packet.
        """
        if len(data) < PACKET_SIZE:
            raise ValueError(
                f"NTP packet must be {PACKET_SIZE} bytes, got {len(data)}"
            )
        (
            flags, stratum, poll, precision, root_delay, root_dispersion,
            ref_id, ref_time, orig_time, recv_time, tx_time,
        ) = _PACKET.unpack_from(data)
        return cls(
            leap=flags >> 6 & 0x3,
            version=flags >> 3 & 0x7,
            mode=flags & 0x7,
            stratum=stratum,
            poll=poll,
            precision=precision,
            root_delay=root_delay / _FIXED16,
            root_dispersion=root_dispersion / _FIXED16,
            ref_id=ref_id,
            ref_time=_from_timestamp(ref_time),
            orig_time=_from_timestamp(orig_time),
            recv_time=_from_timestamp(recv_time),
            tx_time=_from_timestamp(tx_time),
        )


def clock_offset(reply: NtpPacket, destination: float) -> float:
    """Local clock error in seconds: ``((T2 - T1) + (T3 - T4)) / 2``."""
    return ((reply.recv_time - reply.orig_time) + (reply.tx_time - destination)) / 2


# ── Time source ───────────────────────────────────────────────────────────────

class _State(Enum):
    OPEN = "open"
    CLOSED = "closed"


class NtpTimeSource:
    """
    Time source that asks an NTP server for the clock offset on every call.

    The UDP socket is opened on construction and held until :meth:`close`.
    Once closed the source cannot be reopened; every further :meth:`time`
    call raises :class:`ClosedSource`.  Prefer using it as a context
    manager::

        with NtpTimeSource("pool.ntp.org") as source:
            totp = TimeOtp(key, time_source=source)
            ...
    """

    def __init__(
        self,
        host: str,
        timeout: float = DEFAULT_TIMEOUT,
        port: int = NTP_PORT,
    ) -> None:
        """
        Args:
            host:    NTP server name or address.
            timeout: Seconds to wait for a reply before failing.
            port:    Server UDP port.

        Raises:
            InvalidConfiguration: If ``timeout`` is not positive.
            TimeSyncError:        If the host cannot be resolved or the socket
                                  cannot be set up.
        """
        if timeout <= 0:
            raise InvalidConfiguration(f"Timeout must be positive, got {timeout}.")
        self._host = host
        self._port = port
        self._timeout = timeout
        self._socket: Optional[socket.socket] = None
        self._state = _State.CLOSED

        sock = None
        try:
            family, type_, proto, _, address = socket.getaddrinfo(
                host, port, type=socket.SOCK_DGRAM
            )[0]
            sock = socket.socket(family, type_, proto)
            sock.settimeout(timeout)
            sock.connect(address)
        except OSError as exc:
            if sock is not None:
                sock.close()
            raise TimeSyncError(f"Cannot reach NTP server {host}:{port}") from exc

        self._socket = sock
        self._state = _State.OPEN

    # ── Lifecycle ────────────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._state is _State.CLOSED

    def close(self) -> None:
        """Release the socket.  Closing twice is a no-op."""
        if self._state is _State.OPEN and self._socket is not None:
            self._socket.close()
            logger.debug("Closed NTP socket for %s:%d", self._host, self._port)
        self._socket = None
        self._state = _State.CLOSED

    def __enter__(self) -> "NtpTimeSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── TimeSource ───────────────────────────────────────────────────────

    def offset(self) -> float:
        """
        Perform one request/reply exchange and return the clock offset.

        Raises:
            ClosedSource:  If the source has been closed.
            TimeSyncError: On timeout, socket error or malformed reply.
        """
        if self._state is _State.CLOSED or self._socket is None:
            raise ClosedSource("NTP socket closed")

        request = NtpPacket(mode=MODE_CLIENT, tx_time=ntp_now()).to_bytes()
        try:
            self._socket.send(request)
            data = self._socket.recv(1024)
        except socket.timeout as exc:
            logger.warning(
                "NTP request to %s timed out after %.1fs", self._host, self._timeout
            )
            raise TimeSyncError(f"NTP request to {self._host} timed out") from exc
        except OSError as exc:
            logger.warning("NTP request to %s failed: %s", self._host, exc)
            raise TimeSyncError("Failed to obtain NTP time") from exc
        destination = ntp_now()

        try:
            reply = NtpPacket.from_bytes(data)
        except ValueError as exc:
            raise TimeSyncError(f"Malformed NTP reply from {self._host}") from exc
        # The server echoes our transmit timestamp as its origin timestamp.
        if data[24:32] != request[40:48]:
            raise TimeSyncError(f"NTP reply from {self._host} does not match request")

        result = clock_offset(reply, destination)
        logger.debug("NTP offset from %s: %+.3fs", self._host, result)
        return result

    def time(self) -> int:
        """Local clock corrected by a fresh NTP offset, in whole seconds."""
        return int(time.time() + self.offset())

    def __repr__(self) -> str:
        return f"NtpTimeSource({self._host!r}, port={self._port}, {self._state.value})"
