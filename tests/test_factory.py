"""Tests for otpkit.factory."""

import pytest

from otpkit.errors import InvalidConfiguration, InvalidEncoding
from otpkit.factory import OtpFactory, standard_otp, standard_totp
from otpkit.generator import HashAlgorithm, HmacGenerator
from otpkit.hotp import CounterOtp
from otpkit.timesource import FixedTimeSource
from otpkit.totp import TimeOtp

RFC_SECRET = b"12345678901234567890"
RFC_SECRET_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


# ── Products ──────────────────────────────────────────────────────────────────

def test_standard_otp_from_bytes() -> None:
    otp = standard_otp(RFC_SECRET)
    assert isinstance(otp, CounterOtp)
    assert otp.code() == "755224"


def test_standard_otp_from_base32() -> None:
    assert standard_otp(RFC_SECRET_B32).code() == "755224"
    assert standard_otp(RFC_SECRET_B32.lower()).code() == "755224"


def test_standard_totp_defaults() -> None:
    totp = standard_totp(RFC_SECRET_B32)
    assert isinstance(totp, TimeOtp)
    assert totp.period == 30
    assert totp.discrepancy == 30


def test_invalid_base32_key_raises() -> None:
    with pytest.raises(InvalidEncoding):
        standard_totp("NOT BASE32!")


def test_none_key_raises() -> None:
    with pytest.raises(InvalidConfiguration):
        OtpFactory().otp(None)  # type: ignore[arg-type]


def test_factory_counter() -> None:
    otp = OtpFactory().counter(5).otp(RFC_SECRET)
    assert otp.counter == 5
    assert otp.code() == "254676"


def test_factory_totp_configuration() -> None:
    totp = (
        OtpFactory()
        .hash_algorithm(HashAlgorithm.SHA256)
        .digits(8)
        .time_source(FixedTimeSource(59))
        .period(30)
        .discrepancy(0)
        .totp(b"12345678901234567890123456789012")
    )
    assert totp.code() == "46119246"
    assert totp.discrepancy == 0


def test_factory_digits_keeps_algorithm() -> None:
    totp = (
        OtpFactory()
        .digits(8)
        .hash_algorithm(HashAlgorithm.SHA512)
        .time_source(FixedTimeSource(59))
        .totp(b"1234567890123456789012345678901234567890123456789012345678901234")
    )
    assert totp.code() == "90693936"


def test_factory_discrepancy_defaults_to_period() -> None:
    assert OtpFactory().period(60).totp(RFC_SECRET).discrepancy == 60


def test_factory_custom_generator() -> None:
    generator = HmacGenerator(HashAlgorithm.SHA1, 8)
    otp = OtpFactory().generator(generator).otp(RFC_SECRET)
    assert len(otp.code()) == 8


def test_factory_products_are_independent() -> None:
    factory = OtpFactory()
    first = factory.otp(RFC_SECRET)
    second = factory.otp(RFC_SECRET)
    first.increment()
    assert second.counter == 0


# ── Validation at the point of use ────────────────────────────────────────────

@pytest.mark.parametrize("digits", [0, 11])
def test_factory_rejects_digits(digits: int) -> None:
    with pytest.raises(InvalidConfiguration):
        OtpFactory().digits(digits)


def test_factory_rejects_period() -> None:
    with pytest.raises(InvalidConfiguration):
        OtpFactory().period(0)


def test_factory_rejects_discrepancy() -> None:
    with pytest.raises(InvalidConfiguration):
        OtpFactory().discrepancy(-1)


def test_factory_rejects_counter() -> None:
    with pytest.raises(InvalidConfiguration):
        OtpFactory().counter(-1)


def test_factory_rejects_algorithm() -> None:
    with pytest.raises(InvalidConfiguration):
        OtpFactory().hash_algorithm("MD5")  # type: ignore[arg-type]


def test_factory_rejects_none() -> None:
    with pytest.raises(InvalidConfiguration):
        OtpFactory().generator(None)  # type: ignore[arg-type]
    with pytest.raises(InvalidConfiguration):
        OtpFactory().time_source(None)  # type: ignore[arg-type]
