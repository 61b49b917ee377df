"""Error taxonomy for the trade ledger.

Fetch errors are raised by data sources and classified by how the sync
service should react to them:

- AuthError       - credentials missing or rejected, never retried
- RateLimitError  - upstream throttling, recovered through the rate limiter
- TransientError  - network or exchange hiccup, retried with backoff
- ProtocolError   - unexpected response shape, fatal for the sync run

StoreError wraps persistence failures and SyncInProgressError rejects a
full resync while another run is active.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for all trade ledger errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class FetchError(LedgerError):
    """Failure while fetching data from the exchange."""

    status_code = 502
    retryable = False


class AuthError(FetchError):
    """Missing or invalid API credentials."""

    status_code = 401


class RateLimitError(FetchError):
    """The exchange rejected the request for exceeding its rate limit."""

    status_code = 429
    retryable = True


class TransientError(FetchError):
    """Network-level or temporary exchange failure."""

    status_code = 503
    retryable = True


class ProtocolError(FetchError):
    """Response did not have the expected shape."""

    status_code = 502


class StoreError(LedgerError):
    """Persistence failure in the trade store."""

    status_code = 500


class SyncInProgressError(LedgerError):
    """A sync run is already active."""

    status_code = 409
