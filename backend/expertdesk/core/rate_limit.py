"""
Rate Limit Classifier - Recognizes backend throttling and computes retry timing.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ..llm.base import LLMError
from ..models.rate_limit import LimitType, RateLimitState

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ('quota', 'rate limit', 'resource has been exhausted', 'too many requests')

# (limit type, keywords, fixed window in seconds); None means "until UTC midnight"
LIMIT_RULES = (
    (LimitType.PER_MINUTE_REQUESTS, ('minute', 'rpm'), 60),
    (LimitType.PER_MINUTE_TOKENS, ('tpm', 'token'), 60),
    (LimitType.PER_DAY_REQUESTS, ('day', 'daily', 'rpd'), None),
)

LIMIT_MESSAGES = {
    LimitType.PER_MINUTE_REQUESTS: "You've sent too many requests per minute. Please wait a moment.",
    LimitType.PER_MINUTE_TOKENS: "Token usage limit reached. Please wait a moment.",
    LimitType.PER_DAY_REQUESTS: "Daily request limit reached. You can resume tomorrow.",
    LimitType.UNKNOWN: "Please try again later.",
}

_RETRY_DELAY_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)s\s*$")


class RateLimitError(LLMError):
    """An LLM failure that was classified as a rate limit."""

    def __init__(self, state: RateLimitState, cause: Optional[LLMError] = None):
        super().__init__(
            state.message,
            status_code=cause.status_code if cause else None,
            headers=cause.headers if cause else None,
            body=cause.body if cause else None,
        )
        self.state = state


def seconds_until_utc_midnight(now: datetime) -> int:
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return int((tomorrow - now).total_seconds())


class RateLimitClassifier:
    """
    Turns backend failures into RateLimitState.

    Classification only runs for free-tier keys; on paid keys every failure
    propagates unclassified unless classify_all_429 is set.
    """

    def __init__(
        self,
        free_tier: bool = False,
        classify_all_429: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.free_tier = free_tier
        self.classify_all_429 = classify_all_429
        self._clock = clock

    def is_rate_limit_error(self, error: LLMError) -> bool:
        if error.status_code == 429:
            return True
        text = error.describe().lower()
        return any(marker in text for marker in RATE_LIMIT_MARKERS)

    def classify(self, error: LLMError) -> Optional[RateLimitState]:
        """
        Classify a backend failure.

        Returns:
            RateLimitState, or None when the error is not a rate limit or
            classification is disabled for this key type
        """
        enabled = self.free_tier or (self.classify_all_429 and error.status_code == 429)
        if not enabled or not self.is_rate_limit_error(error):
            return None

        now = self._clock()
        message_lower = (error.message or "rate limit exceeded").lower()

        limit_type = LimitType.UNKNOWN
        retry_after: Optional[int] = None
        for candidate, keywords, window in LIMIT_RULES:
            if any(keyword in message_lower for keyword in keywords):
                limit_type = candidate
                retry_after = window if window is not None else seconds_until_utc_midnight(now)
                break

        explicit = self._explicit_retry_after(error)
        if explicit is not None:
            retry_after = explicit

        reset_time = now + timedelta(seconds=retry_after) if retry_after else None

        state = RateLimitState(
            is_limited=True,
            limit_type=limit_type,
            reset_time=reset_time,
            retry_after_seconds=retry_after,
            message="API rate limit exceeded. " + LIMIT_MESSAGES[limit_type],
        )
        logger.warning(
            f"Rate limit classified: type={limit_type.value}, retry_after={retry_after}",
            extra={"extra_fields": {
                "status_code": error.status_code,
                "limit_type": limit_type.value,
                "retry_after_seconds": retry_after,
            }}
        )
        return state

    @staticmethod
    def _explicit_retry_after(error: LLMError) -> Optional[int]:
        """Retry-After header, else the Gemini RetryInfo.retryDelay detail."""
        header = error.headers.get("retry-after")
        if header is not None:
            try:
                return int(header)
            except ValueError:
                logger.debug(f"Ignoring non-numeric retry-after header: {header!r}")

        details: Any = None
        if isinstance(error.body, dict) and isinstance(error.body.get("error"), dict):
            details = error.body["error"].get("details")
        for detail in details or []:
            if not isinstance(detail, dict):
                continue
            match = _RETRY_DELAY_RE.match(str(detail.get("retryDelay", "")))
            if match:
                return int(float(match.group(1)))
        return None
