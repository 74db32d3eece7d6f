"""
Small helpers that both the SQL reports and the in-memory reports use,
so the two of them round money, count hours and build month keys the
exact same way. If these drift apart the validate command will notice
because the revenue totals won't line up anymore.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from dateutil import parser as dateparser

CENT = Decimal("0.01")

def to_money(value):
    if value is None:
        return None
    if not isinstance(value, Decimal):
        # going through str keeps 4.99 as 4.99 instead of 4.9900000000000002131...
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)

def money_sum(values):
    """Sum like SQL SUM does: NULLs are skipped and no values at all gives None."""
    total = None
    for v in values:
        if v is None:
            continue
        v = v if isinstance(v, Decimal) else Decimal(str(v))
        total = v if total is None else total + v
    return to_money(total)

def hours_between(start, end):
    """
    Whole hours from start to end, truncated toward zero. A missing timestamp
    gives None (not returned yet), and a return before the rental just comes
    out negative, we don't try to fix bad data here.
    """
    if start is None or end is None:
        return None
    return int((end - start) / timedelta(hours=1))

def as_datetime(value):
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return dateparser.parse(value)
    return datetime.combine(value, time.min)

def month_key(dt):
    if dt is None:
        return None
    return as_datetime(dt).strftime("%Y-%m")

def parse_as_of(value=None) -> date:
    if value is None:
        return date.today()
    if isinstance(value, str):
        return dateparser.parse(value).date()
    if isinstance(value, datetime):
        return value.date()
    return value

def churn_cutoff(as_of, days=90) -> datetime:
    # the cutoff is midnight of (as_of - days), so anything rented on that day still counts as active
    return datetime.combine(parse_as_of(as_of) - timedelta(days=days), time.min)

def full_name(first_name, last_name):
    if first_name is None or last_name is None:
        return None
    return f"{first_name} {last_name}"
