"""
Centralized datetime handling for taskboard.

Derived, time-dependent values (overdue, days remaining, trailing
windows) are computed through these helpers so "now" can be pinned in
one place.
"""
import math
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone

SECONDS_PER_DAY = 24 * 60 * 60


def now() -> datetime:
    """Single source of truth for "now" in taskboard."""
    return timezone.now()


def days_ago(days: int, reference: Optional[datetime] = None) -> datetime:
    """Start of a trailing window of `days` days."""
    return (reference or now()) - timedelta(days=days)


def days_until(moment: Optional[datetime], reference: Optional[datetime] = None) -> Optional[int]:
    """
    Whole days until `moment`, rounded up (ceil).

    Negative once the moment has passed; None when no moment is set.
    """
    if moment is None:
        return None
    diff = moment - (reference or now())
    return math.ceil(diff.total_seconds() / SECONDS_PER_DAY)

