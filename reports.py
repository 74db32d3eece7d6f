"""
The nine reports as plain Python functions over rows. They take whatever
views.py hands back (or anything with the same attribute names) and return
lists of named tuples with the same columns the SQL versions in queries.py
return, so the two can be compared directly.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, Optional

from helpers import money_sum, month_key, churn_cutoff, full_name

TOP_N = 10
CHURN_DAYS = 90

class TableCount(NamedTuple):
    table_name: str
    total_rows: int

class MissingValues(NamedTuple):
    missing_rental_date: int
    missing_return_date: int
    missing_payment_amount: int

class DuplicateRental(NamedTuple):
    rental_id: int
    count: int

class CategoryRevenue(NamedTuple):
    category_name: Optional[str]
    total_revenue: Optional[Decimal]

class MonthlyRevenue(NamedTuple):
    month: Optional[str]
    monthly_revenue: Optional[Decimal]

class StorePerformance(NamedTuple):
    store_id: Optional[int]
    total_revenue: Optional[Decimal]
    total_customers: int

class TopCustomer(NamedTuple):
    customer_id: int
    customer_name: Optional[str]
    total_spent: Optional[Decimal]
    total_transactions: int

class TopFilm(NamedTuple):
    film_title: Optional[str]
    total_rentals: int

class InactiveCustomer(NamedTuple):
    customer_id: int
    customer_name: Optional[str]
    last_rental_date: Optional[datetime]

def _group(rows, key):
    groups = defaultdict(list)
    for r in rows:
        groups[key(r)].append(r)
    return groups

def _nulls_first(value):
    return (value is not None, value if value is not None else "")

def _by_revenue_desc(revenue):
    # NULL revenue (only possible if every amount in the group is NULL) sorts last
    return (revenue is None, -(revenue or 0))

def row_counts(relations):
    """relations maps table name -> rows, counted in the order given."""
    return [TableCount(name, len(rows)) for name, rows in relations.items()]

def missing_values(rentals, payments):
    return MissingValues(
        missing_rental_date=sum(1 for r in rentals if r.rental_date is None),
        missing_return_date=sum(1 for r in rentals if r.return_date is None),
        missing_payment_amount=sum(1 for p in payments if p.amount is None),
    )

def duplicate_rentals(rentals):
    counts = defaultdict(int)
    for r in rentals:
        counts[r.rental_id] += 1
    return [DuplicateRental(rid, n) for rid, n in sorted(counts.items(), key=lambda kv: _nulls_first(kv[0])) if n > 1]

def revenue_by_category(rows):
    out = [
        CategoryRevenue(name, money_sum(r.payment_amount for r in group))
        for name, group in _group(rows, lambda r: r.category_name).items()
    ]
    return sorted(out, key=lambda c: (_by_revenue_desc(c.total_revenue), _nulls_first(c.category_name)))

def monthly_revenue(rows):
    out = [
        MonthlyRevenue(month, money_sum(r.payment_amount for r in group))
        for month, group in _group(rows, lambda r: month_key(r.payment_date)).items()
    ]
    return sorted(out, key=lambda m: _nulls_first(m.month))

def store_performance(rows):
    out = [
        StorePerformance(
            store_id,
            money_sum(r.payment_amount for r in group),
            len({r.customer_id for r in group if r.customer_id is not None}),
        )
        for store_id, group in _group(rows, lambda r: r.store_id).items()
    ]
    return sorted(out, key=lambda s: (_by_revenue_desc(s.total_revenue), _nulls_first(s.store_id)))

def top_customers(rows, limit=TOP_N):
    """Lifetime value: everything a customer ever paid. Ties go to the lower customer_id."""
    out = [
        TopCustomer(
            customer_id,
            customer_name,
            money_sum(r.payment_amount for r in group),
            sum(1 for r in group if r.payment_id is not None),
        )
        for (customer_id, customer_name), group in _group(rows, lambda r: (r.customer_id, r.customer_name)).items()
    ]
    out.sort(key=lambda c: (_by_revenue_desc(c.total_spent), c.customer_id, _nulls_first(c.customer_name)))
    return out[:limit]

def top_films(rows, limit=TOP_N):
    # counts payment rows, so a rental nobody paid for isn't counted here
    out = [TopFilm(title, len(group)) for title, group in _group(rows, lambda r: r.film_title).items()]
    out.sort(key=lambda f: (-f.total_rentals, _nulls_first(f.film_title)))
    return out[:limit]

def inactive_customers(customers, rentals, as_of, days=CHURN_DAYS):
    """
    Customers whose last rental is older than `days` before as_of, plus the
    ones who never rented at all. as_of is always passed in so the result
    doesn't change depending on when you run it.
    """
    cutoff = churn_cutoff(as_of, days)
    last_rental = {}
    for r in rentals:
        if r.customer_id is None or r.rental_date is None:
            continue
        seen = last_rental.get(r.customer_id)
        if seen is None or r.rental_date > seen:
            last_rental[r.customer_id] = r.rental_date

    out = []
    for c in customers:
        last = last_rental.get(c.customer_id)
        if last is None or last < cutoff:
            out.append(InactiveCustomer(c.customer_id, full_name(c.first_name, c.last_name), last))
    out.sort(key=lambda c: (c.last_rental_date is not None, c.last_rental_date or datetime.min, c.customer_id))
    return out
