"""
The SQL side of the reports. Each function builds a SELECT and doesn't run
anything; pipeline.py executes them. Everything except the base table checks
and the churn report reads from the views in views.py, so create_views has to
have run first.
"""

from sqlalchemy import select, func, case, desc, literal, union_all, Numeric

from models import BASE_TABLES, Rental, Payment, Customer
from views import payment_analysis_view
from helpers import churn_cutoff
from reports import TOP_N, CHURN_DAYS

MONEY = Numeric(10, 2)

def money(expr, label):
    # rounding happens in the query, not when printing
    return func.round(func.sum(expr), 2, type_=MONEY).label(label)

def month_expr(col, dialect_name="sqlite"):
    if dialect_name in ("mysql", "mariadb"):
        return func.date_format(col, "%Y-%m")
    if dialect_name == "postgresql":
        return func.to_char(col, "YYYY-MM")
    return func.strftime("%Y-%m", col)

def row_counts_query():
    parts = [
        select(literal(name).label("table_name"), func.count().label("total_rows")).select_from(model)
        for name, model in BASE_TABLES.items()
    ]
    return union_all(*parts)

def _count_nulls(col):
    return func.coalesce(func.sum(case((col.is_(None), 1), else_=0)), 0)

def missing_values_query():
    missing_amount = select(_count_nulls(Payment.amount)).scalar_subquery()
    return select(
        _count_nulls(Rental.rental_date).label("missing_rental_date"),
        _count_nulls(Rental.return_date).label("missing_return_date"),
        missing_amount.label("missing_payment_amount"),
    )

def duplicate_rentals_query():
    return (
        select(Rental.rental_id, func.count().label("count"))
        .group_by(Rental.rental_id)
        .having(func.count() > 1)
        .order_by(Rental.rental_id)
    )

def total_revenue_query(v=payment_analysis_view):
    return select(money(v.c.payment_amount, "total_revenue"))

def revenue_by_category_query(v=payment_analysis_view):
    return (
        select(v.c.category_name, money(v.c.payment_amount, "total_revenue"))
        .group_by(v.c.category_name)
        .order_by(desc("total_revenue"), v.c.category_name)
    )

def monthly_revenue_query(dialect_name="sqlite", v=payment_analysis_view):
    month = month_expr(v.c.payment_date, dialect_name).label("month")
    return (
        select(month, money(v.c.payment_amount, "monthly_revenue"))
        .group_by(month)
        .order_by(month)
    )

def store_performance_query(v=payment_analysis_view):
    return (
        select(
            v.c.store_id,
            money(v.c.payment_amount, "total_revenue"),
            func.count(v.c.customer_id.distinct()).label("total_customers"),
        )
        .group_by(v.c.store_id)
        .order_by(desc("total_revenue"), v.c.store_id)
    )

def top_customers_query(limit=TOP_N, v=payment_analysis_view):
    return (
        select(
            v.c.customer_id,
            v.c.customer_name,
            money(v.c.payment_amount, "total_spent"),
            func.count(v.c.payment_id).label("total_transactions"),
        )
        .group_by(v.c.customer_id, v.c.customer_name)
        .order_by(desc("total_spent"), v.c.customer_id)
        .limit(limit)
    )

def top_films_query(limit=TOP_N, v=payment_analysis_view):
    return (
        select(v.c.film_title, func.count().label("total_rentals"))
        .group_by(v.c.film_title)
        .order_by(desc("total_rentals"), v.c.film_title)
        .limit(limit)
    )

def inactive_customers_query(as_of, days=CHURN_DAYS):
    # this one skips the views and left joins the base tables so customers
    # with no rentals at all still come back (with a NULL last_rental_date)
    last_rental = func.max(Rental.rental_date)
    return (
        select(
            Customer.customer_id,
            (Customer.first_name + " " + Customer.last_name).label("customer_name"),
            last_rental.label("last_rental_date"),
        )
        .outerjoin(Rental, Rental.customer_id == Customer.customer_id)
        .group_by(Customer.customer_id, Customer.first_name, Customer.last_name)
        .having((last_rental < churn_cutoff(as_of, days)) | last_rental.is_(None))
        # NULLS FIRST isn't portable (mysql), so sort on the null check first
        .order_by(case((last_rental.is_(None), 0), else_=1), last_rental, Customer.customer_id)
    )
