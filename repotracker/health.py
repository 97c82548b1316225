"""Freshness metrics derived from a project's last push.

Always computed at read time; nothing here is stored.
"""
import math
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

# (max days, score), checked in order.
SCORE_STEPS = ((7, 100), (30, 75), (90, 50), (180, 25))
STALE_SCORE = 10
NO_PUSH_SCORE = 50

# (max days, status), checked in order. Coarser than SCORE_STEPS.
STATUS_STEPS = ((30, 'on-track'), (90, 'at-risk'))
STALE_STATUS = 'delayed'
NO_PUSH_STATUS = 'unknown'

HEALTH_STATUSES = ('on-track', 'at-risk', 'delayed', 'unknown')

SECONDS_PER_DAY = 24 * 60 * 60


class HealthMetrics(BaseModel):
    days_since_last_push: Optional[int] = None
    health_score: int
    health_status: str


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since(last_push_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days since the push, rounded up. None when there was no push."""
    last_push_at = ensure_utc(last_push_at)
    if last_push_at is None:
        return None
    now = ensure_utc(now) or datetime.now(timezone.utc)
    elapsed = abs((now - last_push_at).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY)


def score_for(days: Optional[int]) -> int:
    if days is None:
        return NO_PUSH_SCORE
    for limit, score in SCORE_STEPS:
        if days <= limit:
            return score
    return STALE_SCORE


def status_for(days: Optional[int]) -> str:
    if days is None:
        return NO_PUSH_STATUS
    for limit, status in STATUS_STEPS:
        if days <= limit:
            return status
    return STALE_STATUS


def compute_health(last_push_at: Optional[datetime], now: Optional[datetime] = None) -> HealthMetrics:
    days = days_since(last_push_at, now=now)
    return HealthMetrics(
        days_since_last_push=days,
        health_score=score_for(days),
        health_status=status_for(days),
    )
