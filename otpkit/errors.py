"""
Exception hierarchy for otpkit.

Two families matter to callers:

* :class:`InvalidEncoding` / :class:`InvalidConfiguration` – bad input,
  raised at the point the value is supplied.  Both are ``ValueError``\\s.
* :class:`OtpGenerationError` and its subclasses – a code could not be
  evaluated at all.  Verification methods never turn these into ``False``.
"""


class OtpError(Exception):
    """Base class for all otpkit errors."""


# ── Input errors ──────────────────────────────────────────────────────────────

class InvalidEncoding(OtpError, ValueError):
    """Malformed Base-32 text."""


class InvalidConfiguration(OtpError, ValueError):
    """Digit count, period, discrepancy or counter outside its allowed range."""


# ── Evaluation errors ─────────────────────────────────────────────────────────

class OtpGenerationError(OtpError):
    """A code could not be generated (as opposed to "did not match")."""


class InvalidKey(OtpGenerationError):
    """The HMAC primitive rejected the key material."""


class AlgorithmUnavailable(OtpGenerationError):
    """The configured hash cannot be instantiated by the crypto backend."""


class TimeSyncError(OtpGenerationError):
    """Network time could not be obtained."""


class ClosedSource(TimeSyncError):
    """The network time source has already been released."""
