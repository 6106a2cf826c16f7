"""Exception types raised by the diagnosis client."""


class SeqdxError(Exception):
    """Base class for all seqdx errors."""


class ValidationError(SeqdxError, ValueError):
    """Required case input is missing. Raised before any network call."""


class TransportError(SeqdxError):
    """The backend answered with a non-success status or the read failed."""
