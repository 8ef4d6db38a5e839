"""
Relative time reference parsing ("yesterday", "last week", ...).
"""

import re
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from lifelog_rag.models import TemporalIntent


_DAYS_AGO_RE = re.compile(r"\b(\d{1,3})\s+days?\s+ago\b")


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def _end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


def _day(reference: str, moment: datetime) -> TemporalIntent:
    return TemporalIntent(reference, _start_of_day(moment), _end_of_day(moment))


def parse_temporal_intent(text: str, now: Optional[datetime] = None) -> Optional[TemporalIntent]:
    """
    Resolve a relative time reference in the text to an absolute range.

    Weeks start on Sunday. Ranges that include the present end at the end
    of today.

    Returns:
        TemporalIntent, or None when the text has no time reference
    """
    now = now or datetime.now(timezone.utc)
    lowered = text.lower()

    if re.search(r"\btoday\b", lowered):
        return _day("today", now)

    if re.search(r"\bday before yesterday\b", lowered):
        return _day("day before yesterday", now - timedelta(days=2))

    if re.search(r"\byesterday\b", lowered):
        return _day("yesterday", now - timedelta(days=1))

    days_ago = _DAYS_AGO_RE.search(lowered)
    if days_ago:
        n = int(days_ago.group(1))
        return _day(f"{n} days ago", now - timedelta(days=n))

    days_since_sunday = (now.weekday() + 1) % 7

    if re.search(r"\bthis week\b", lowered):
        week_start = now - timedelta(days=days_since_sunday)
        return TemporalIntent("this week", _start_of_day(week_start), _end_of_day(now))

    if re.search(r"\blast week\b", lowered):
        last_saturday = now - timedelta(days=days_since_sunday + 1)
        last_sunday = last_saturday - timedelta(days=6)
        return TemporalIntent("last week", _start_of_day(last_sunday), _end_of_day(last_saturday))

    if re.search(r"\bthis month\b", lowered):
        month_start = now.replace(day=1)
        return TemporalIntent("this month", _start_of_day(month_start), _end_of_day(now))

    if re.search(r"\blast month\b", lowered):
        last_month_end = now.replace(day=1) - timedelta(days=1)
        last_month_start = last_month_end.replace(day=1)
        return TemporalIntent("last month", _start_of_day(last_month_start), _end_of_day(last_month_end))

    if re.search(r"\bthis year\b", lowered):
        year_start = now.replace(month=1, day=1)
        return TemporalIntent("this year", _start_of_day(year_start), _end_of_day(now))

    if re.search(r"\blast year\b", lowered):
        start = now.replace(year=now.year - 1, month=1, day=1)
        end = now.replace(year=now.year - 1, month=12, day=31)
        return TemporalIntent("last year", _start_of_day(start), _end_of_day(end))

    return None
