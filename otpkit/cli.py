"""
otpkit – command-line entry point.

Usage
-----
    python -m otpkit.cli keygen
    python -m otpkit.cli code JBSWY3DPEHPK3PXP
    python -m otpkit.cli verify JBSWY3DPEHPK3PXP 123456 --ntp pool.ntp.org

Or, if installed as a package:
    otpkit keygen
"""

import argparse
import contextlib
import logging
import sys
from typing import List, Optional

from otpkit.crypto import KEY_SIZE, generate_key
from otpkit.errors import OtpError
from otpkit.factory import OtpFactory
from otpkit.generator import HashAlgorithm
from otpkit.ntp import DEFAULT_TIMEOUT, NTP_PORT, NtpTimeSource
from otpkit.timesource import FixedTimeSource
from otpkit.utils import decode_base32, encode_base32, format_otp, normalize_secret

logger = logging.getLogger("otpkit")

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_ERROR = 2


# ── Logging setup ─────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Key generation details stay out of the log unless something goes wrong
    logging.getLogger("otpkit.crypto").setLevel(logging.WARNING)


# ── Arguments ─────────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="otpkit", description="Generate and verify one-time passwords.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    keygen = commands.add_parser("keygen", help="print a new random Base-32 key")
    keygen.add_argument("--length", type=int, default=KEY_SIZE, help="key length in bytes")
    keygen.add_argument("--padding", action="store_true", help="pad output with '='")

    options = argparse.ArgumentParser(add_help=False)
    options.add_argument("key", help="Base-32 key")
    options.add_argument("--algorithm", default="SHA1", type=str.upper,
                         choices=[alg.value for alg in HashAlgorithm])
    options.add_argument("--digits", type=int, default=6)
    options.add_argument("--counter", type=int, default=None,
                         help="use HOTP with this counter instead of TOTP")
    options.add_argument("--period", type=int, default=30)
    options.add_argument("--discrepancy", type=int, default=None)
    clock = options.add_mutually_exclusive_group()
    clock.add_argument("--ntp", metavar="HOST", help="take the time from an NTP server")
    clock.add_argument("--time", type=int, help="fixed Unix time (auditing only)")
    options.add_argument("--ntp-port", type=int, default=NTP_PORT)
    options.add_argument("--ntp-timeout", type=float, default=DEFAULT_TIMEOUT)

    commands.add_parser("code", parents=[options], help="print the current code")
    verify = commands.add_parser("verify", parents=[options], help="check a code")
    verify.add_argument("code", help="code to verify")
    return parser


# ── Commands ──────────────────────────────────────────────────────────────────

def _keygen(args: argparse.Namespace) -> int:
    print(encode_base32(generate_key(args.length), padding=args.padding))
    return EXIT_OK


def _run_otp(args: argparse.Namespace) -> int:
    key = decode_base32(normalize_secret(args.key))
    factory = (
        OtpFactory()
        .hash_algorithm(HashAlgorithm(args.algorithm))
        .digits(args.digits)
        .period(args.period)
    )
    if args.discrepancy is not None:
        factory.discrepancy(args.discrepancy)

    with contextlib.ExitStack() as stack:
        if args.counter is not None:
            otp = factory.counter(args.counter).otp(key)
        else:
            if args.ntp:
                source = NtpTimeSource(args.ntp, timeout=args.ntp_timeout, port=args.ntp_port)
                stack.enter_context(source)
                factory.time_source(source)
            elif args.time is not None:
                factory.time_source(FixedTimeSource(args.time))
            otp = factory.totp(key)

        if args.command == "code":
            print(format_otp(otp.code()))
            return EXIT_OK

        candidate = args.code.replace(" ", "")
        if otp.verify(candidate):
            logger.info("Code accepted.")
            return EXIT_OK
        logger.info("Code rejected.")
        return EXIT_REJECTED


# ── Main ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "keygen":
            return _keygen(args)
        return _run_otp(args)
    except OtpError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
