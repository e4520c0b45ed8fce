"""
Rate Limit Models - Backend throttling state surfaced to the user.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class LimitType(str, Enum):
    """Kind of quota the backend reported as exhausted."""
    PER_MINUTE_REQUESTS = "per-minute-requests"
    PER_MINUTE_TOKENS = "per-minute-tokens"
    PER_DAY_REQUESTS = "per-day-requests"
    UNKNOWN = "unknown"


LIMIT_LABELS = {
    LimitType.PER_DAY_REQUESTS: "Daily Limit Reached",
    LimitType.PER_MINUTE_REQUESTS: "Rate Limit (Per Minute)",
    LimitType.PER_MINUTE_TOKENS: "Token Limit (Per Minute)",
    LimitType.UNKNOWN: "Rate Limit Reached",
}


class RateLimitState(BaseModel):
    """Classified rate limit. Cleared once reset_time passes or a call succeeds."""
    is_limited: bool = True
    limit_type: LimitType = LimitType.UNKNOWN
    reset_time: Optional[datetime] = None
    retry_after_seconds: Optional[int] = None
    message: str = ""

    @property
    def label(self) -> str:
        return LIMIT_LABELS[self.limit_type]

    def has_expired(self, now: Optional[datetime] = None) -> bool:
        """True when a known reset time is in the past."""
        if self.reset_time is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.reset_time

    def format_time_remaining(self, now: Optional[datetime] = None) -> Optional[str]:
        """
        Human-readable countdown until the limit resets.

        Returns:
            "1h 2m 3s", "2m 3s", "3s", "Ready to resume", or None when the
            reset time is unknown
        """
        if self.reset_time is None:
            return None
        now = now or datetime.now(timezone.utc)
        diff = int((self.reset_time - now).total_seconds())
        if diff <= 0:
            return "Ready to resume"

        hours, rest = divmod(diff, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours > 0:
            return f"{hours}h {minutes}m {seconds}s"
        if minutes > 0:
            return f"{minutes}m {seconds}s"
        return f"{seconds}s"
