"""Retry policy for HTTP transport.

Only read-only catalogue requests (discovery, report and log listings)
honour a retry policy. Launch, status, cancel and combine requests are
never retried: a repeated launch would start a second execution, and a
repeated status poll would hide the fail-fast stop of the poller.
"""

from dataclasses import dataclass
from typing import Optional

# Methods that can be repeated without side effects on the backend
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


@dataclass
class RetryPolicy:
    """Exponential backoff for idempotent catalogue requests.

    Attributes:
        max_retries: Extra attempts after the first one (0 disables retries).
        initial_delay: Seconds to wait before the first retry.
        backoff_factor: Multiplier applied to the delay per attempt.
        max_delay: Upper bound for a single delay.
    """
    max_retries: int = 0
    initial_delay: float = 0.5
    backoff_factor: float = 2.0
    max_delay: float = 10.0

    def get_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (0-indexed)."""
        delay = self.initial_delay * (self.backoff_factor ** attempt)
        return min(delay, self.max_delay)

    def should_retry(self, method: str, attempt: int, status_code: Optional[int] = None) -> bool:
        """Decide whether a failed attempt may be repeated.

        Args:
            method: HTTP method of the request.
            attempt: Attempt that just failed (0 = first try).
            status_code: Response status, or None when no response arrived
                (connection error or timeout).

        Returns:
            True for idempotent methods that still have retries left and
            failed without a response or with a 5xx status.
        """
        if attempt >= self.max_retries:
            return False
        if method.upper() not in IDEMPOTENT_METHODS:
            return False
        return status_code is None or status_code >= 500


def no_retry_policy() -> RetryPolicy:
    """Create a no-retry policy (fail immediately)."""
    return RetryPolicy(max_retries=0)
