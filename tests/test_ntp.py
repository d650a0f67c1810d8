"""Tests for otpkit.ntp against a local fake NTP server."""

import socket
import threading
import time
from typing import Iterator, Optional

import pytest

from otpkit.errors import ClosedSource, InvalidConfiguration, TimeSyncError
from otpkit.generator import HmacGenerator
from otpkit.ntp import (
    MODE_CLIENT,
    MODE_SERVER,
    NTP_EPOCH_OFFSET,
    PACKET_SIZE,
    NtpPacket,
    NtpTimeSource,
    clock_offset,
    ntp_now,
)
from otpkit.timesource import FixedTimeSource
from otpkit.totp import TimeOtp


# ── Fake server ───────────────────────────────────────────────────────────────

class FakeNtpServer:
    """UDP server on 127.0.0.1 answering every request in a background thread."""

    def __init__(self) -> None:
        self.offset = 0.0
        self.reply: Optional[bytes] = None   # fixed reply instead of a real one
        self.echo_origin = True
        self.silent = False
        self.requests = []
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.settimeout(0.1)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def port(self) -> int:
        return self._sock.getsockname()[1]

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2)
        self._sock.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                data, address = self._sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                return
            self.requests.append(data)
            if self.silent:
                continue
            self._sock.sendto(self._answer(data), address)

    def _answer(self, request: bytes) -> bytes:
        if self.reply is not None:
            return self.reply
        now = ntp_now() + self.offset
        reply = NtpPacket(
            version=3, mode=MODE_SERVER, stratum=1, recv_time=now, tx_time=now
        ).to_bytes()
        if self.echo_origin:
            reply = reply[:24] + request[40:48] + reply[32:]
        return reply


@pytest.fixture()
def server() -> Iterator[FakeNtpServer]:
    fake = FakeNtpServer()
    fake.start()
    yield fake
    fake.stop()


@pytest.fixture()
def source(server: FakeNtpServer) -> Iterator[NtpTimeSource]:
    ntp = NtpTimeSource("127.0.0.1", timeout=0.5, port=server.port)
    yield ntp
    ntp.close()


# ── Packet ────────────────────────────────────────────────────────────────────

def test_client_packet_layout() -> None:
    data = NtpPacket(mode=MODE_CLIENT, tx_time=NTP_EPOCH_OFFSET + 1.5).to_bytes()
    assert len(data) == PACKET_SIZE
    assert data[0] == 0x1B            # LI 0, version 3, mode 3
    assert data[1:40] == b"\x00" * 39
    assert int.from_bytes(data[40:44], "big") == NTP_EPOCH_OFFSET + 1
    assert data[44] == 0x80           # .5 in the fraction


def test_packet_roundtrip() -> None:
    packet = NtpPacket(
        leap=1, version=4, mode=MODE_SERVER, stratum=2, poll=6, precision=-20,
        root_delay=0.5, root_dispersion=1.25, ref_id=b"GPS\x00",
        ref_time=3900000000.25, orig_time=3900000001.5,
        recv_time=3900000002.75, tx_time=3900000003.0,
    )
    parsed = NtpPacket.from_bytes(packet.to_bytes())

    assert (parsed.leap, parsed.version, parsed.mode) == (1, 4, MODE_SERVER)
    assert (parsed.stratum, parsed.poll, parsed.precision) == (2, 6, -20)
    assert parsed.root_delay == 0.5
    assert parsed.root_dispersion == 1.25
    assert parsed.ref_id == b"GPS\x00"
    # The random low byte only perturbs the last 2**-24 seconds
    assert parsed.ref_time == pytest.approx(3900000000.25, abs=1e-6)
    assert parsed.orig_time == pytest.approx(3900000001.5, abs=1e-6)
    assert parsed.recv_time == pytest.approx(3900000002.75, abs=1e-6)
    assert parsed.tx_time == pytest.approx(3900000003.0, abs=1e-6)


def test_zero_timestamps_stay_zero() -> None:
    data = NtpPacket().to_bytes()
    assert data[16:48] == b"\x00" * 32


def test_short_packet_rejected() -> None:
    with pytest.raises(ValueError):
        NtpPacket.from_bytes(b"\x1c" * 47)


def test_clock_offset() -> None:
    reply = NtpPacket(orig_time=100.0, recv_time=110.0, tx_time=111.0)
    assert clock_offset(reply, destination=103.0) == 9.0


def test_clock_offset_negative() -> None:
    reply = NtpPacket(orig_time=100.0, recv_time=90.0, tx_time=90.5)
    assert clock_offset(reply, destination=101.0) == -10.25


# ── Time source ───────────────────────────────────────────────────────────────

def test_time_without_offset(source: NtpTimeSource) -> None:
    assert abs(source.time() - time.time()) <= 2


def test_time_applies_offset(server: FakeNtpServer, source: NtpTimeSource) -> None:
    server.offset = 3600.0
    assert abs(source.time() - (time.time() + 3600)) <= 2
    server.offset = -7200.0
    assert abs(source.time() - (time.time() - 7200)) <= 2


def test_request_is_client_packet(server: FakeNtpServer, source: NtpTimeSource) -> None:
    source.time()
    request = NtpPacket.from_bytes(server.requests[0])
    assert request.mode == MODE_CLIENT
    assert request.version == 3
    assert abs(request.tx_time - ntp_now()) < 5


def test_each_call_queries_server(server: FakeNtpServer, source: NtpTimeSource) -> None:
    source.time()
    source.time()
    assert len(server.requests) == 2


def test_timeout_raises_time_sync_error(server: FakeNtpServer, source: NtpTimeSource) -> None:
    server.silent = True
    with pytest.raises(TimeSyncError) as excinfo:
        source.time()
    assert not isinstance(excinfo.value, ClosedSource)
    assert not source.closed


def test_short_reply_raises(server: FakeNtpServer, source: NtpTimeSource) -> None:
    server.reply = b"\x24" * 20
    with pytest.raises(TimeSyncError):
        source.time()


def test_mismatched_origin_raises(server: FakeNtpServer, source: NtpTimeSource) -> None:
    server.echo_origin = False
    with pytest.raises(TimeSyncError):
        source.time()


def test_closed_source_raises(source: NtpTimeSource) -> None:
    source.close()
    assert source.closed
    with pytest.raises(ClosedSource):
        source.time()
    with pytest.raises(ClosedSource):
        source.time()


def test_close_twice_is_noop(source: NtpTimeSource) -> None:
    source.close()
    source.close()
    assert source.closed


def test_context_manager_closes(server: FakeNtpServer) -> None:
    with NtpTimeSource("127.0.0.1", timeout=0.5, port=server.port) as ntp:
        assert not ntp.closed
        ntp.time()
    assert ntp.closed
    with pytest.raises(ClosedSource):
        ntp.time()


def test_unresolvable_host_raises() -> None:
    with pytest.raises(TimeSyncError):
        NtpTimeSource("ntp.invalid", timeout=0.5)


@pytest.mark.parametrize("timeout", [0, -1])
def test_bad_timeout_raises(timeout: float) -> None:
    with pytest.raises(InvalidConfiguration):
        NtpTimeSource("127.0.0.1", timeout=timeout)


# ── TOTP with network time ────────────────────────────────────────────────────

def test_totp_with_ntp_source(server: FakeNtpServer, source: NtpTimeSource) -> None:
    key = b"12345678901234567890"
    server.offset = 86400.0
    expected = TimeOtp(key, HmacGenerator.STANDARD, FixedTimeSource(int(time.time()) + 86400)).code()

    totp = TimeOtp(key, time_source=source)
    assert totp.verify(expected)
    assert not TimeOtp(key, time_source=FixedTimeSource(int(time.time()))).verify(expected)


def test_totp_propagates_closed_source(source: NtpTimeSource) -> None:
    totp = TimeOtp(b"12345678901234567890", time_source=source)
    source.close()
    with pytest.raises(ClosedSource):
        totp.verify("123456")
