"""Error types raised by the Solar.web fetch path and session store."""

from typing import Optional


class SessionPersistenceError(Exception):
    """The durable session file could not be read or written."""
    pass


class SolarWebError(Exception):
    """Base class for failed Solar.web calls."""
    pass


class BreakerOpenError(SolarWebError):
    """Call refused locally because the circuit breaker is open.

    No request was sent. Callers should treat this as transient.
    """

    def __init__(self, retry_in: Optional[float] = None):
        self.retry_in = retry_in
        if retry_in is not None:
            message = f"Solar.web unavailable, circuit open (retry in {retry_in:.0f}s)"
        else:
            message = "Solar.web unavailable, circuit open"
        super().__init__(message)


class TransportError(SolarWebError):
    """Network-level failure talking to Solar.web."""
    pass


class RemoteStatusError(SolarWebError):
    """Solar.web answered with a status outside 2xx."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"received non successful status code {status}: {body[:200]}")


class DecodeError(SolarWebError):
    """Response body did not match the expected shape."""
    pass
