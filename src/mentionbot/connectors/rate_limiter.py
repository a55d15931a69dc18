"""Per-endpoint rate-limit tracking for the social API.

The social API reports its quota on every response. Rather than pacing calls
locally, the tracker remembers which endpoint categories are exhausted and
until when, so the scheduler can skip calls that would be rejected anyway.
"""

import threading
from collections.abc import Callable
from datetime import UTC, datetime

from mentionbot.logging import get_logger
from mentionbot.models.schedule import RateLimitState

logger = get_logger("rate_limiter")

# Endpoint category used by mention polling
SEARCH_ENDPOINT = "search"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RateLimitTracker:
    """Tracks whether each endpoint category is currently throttled.

    The limited flag is cleared lazily: the first ``is_limited`` call made
    after ``reset_at`` flips it back to false, so no explicit reset call is
    needed. All methods take an internal lock because the HTTP layer may read
    the tracker while the polling loop writes it.

    Args:
        low_watermark: Remaining quota at or below which a successful response
            is treated as a limit, throttling before the server rejects a call.
        clock: Callable returning the current aware datetime.
    """

    def __init__(
        self,
        low_watermark: int = 1,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._low_watermark = low_watermark
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[str, RateLimitState] = {}

    @property
    def low_watermark(self) -> int:
        return self._low_watermark

    def is_limited(self, endpoint: str) -> bool:
        """Whether calls to ``endpoint`` should currently be withheld.

        Args:
            endpoint: Endpoint category (e.g. "search").

        Returns:
            True only if a prior ``record_limit`` set a reset time that is
            still in the future.
        """
        with self._lock:
            state = self._states.get(endpoint)
            if state is None or not state.is_limited:
                return False
            if state.reset_at is not None and self._clock() < state.reset_at:
                return True
            state.is_limited = False
            logger.info("rate_limit_cleared", endpoint=endpoint)
            return False

    def record_limit(self, endpoint: str, reset_at: datetime) -> None:
        """Mark ``endpoint`` as limited until ``reset_at``.

        Args:
            endpoint: Endpoint category.
            reset_at: When the limit is assumed cleared.
        """
        with self._lock:
            state = self._states.setdefault(endpoint, RateLimitState(endpoint=endpoint))
            state.is_limited = True
            state.reset_at = reset_at
        logger.warning(
            "rate_limit_recorded",
            endpoint=endpoint,
            reset_at=reset_at.isoformat(),
        )

    def record_success(self, endpoint: str, remaining: int, reset_at: datetime) -> None:
        """Record the quota reported by a successful response.

        A remaining quota at or below the low watermark is recorded as a
        limit; otherwise the endpoint is marked clear.

        Args:
            endpoint: Endpoint category.
            remaining: Calls left in the current window.
            reset_at: When the current window resets.
        """
        if remaining <= self._low_watermark:
            self.record_limit(endpoint, reset_at)
            with self._lock:
                self._states[endpoint].remaining = remaining
            return

        with self._lock:
            state = self._states.setdefault(endpoint, RateLimitState(endpoint=endpoint))
            state.is_limited = False
            state.reset_at = reset_at
            state.remaining = remaining

    def reset_at(self, endpoint: str) -> datetime | None:
        """Reset time of ``endpoint`` if it is currently limited."""
        if not self.is_limited(endpoint):
            return None
        with self._lock:
            return self._states[endpoint].reset_at

    def state(self, endpoint: str) -> RateLimitState:
        """Return a copy of the state for ``endpoint``."""
        self.is_limited(endpoint)
        with self._lock:
            state = self._states.get(endpoint)
            if state is None:
                return RateLimitState(endpoint=endpoint)
            return state.model_copy()

    def snapshot(self) -> dict[str, RateLimitState]:
        """Return copies of every tracked endpoint state."""
        with self._lock:
            endpoints = list(self._states)
        return {endpoint: self.state(endpoint) for endpoint in endpoints}

    def reset(self) -> None:
        """Forget all tracked limits."""
        with self._lock:
            self._states.clear()
