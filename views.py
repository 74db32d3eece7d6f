"""
The two views every report reads from. v_payment_analysis flattens a payment
into everything we know about it (customer, store, film, category) and
v_rental_clean adds how many hours a rental was out.

There are two ways to get the rows: create the views in the database and read
them back, or build the same rows in Python from plain lists of objects. The
second one is what lets the report functions get tested without a database.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func, cast, extract, literal_column, Integer, Float, Numeric, String, DateTime
from sqlalchemy.sql import table, column

from models import Payment, Rental, Inventory, Film, FilmCategory, Category, Customer
from helpers import full_name, hours_between

logger = logging.getLogger("reports")

PAYMENT_ANALYSIS_VIEW = "v_payment_analysis"
RENTAL_CLEAN_VIEW = "v_rental_clean"

payment_analysis_view = table(
    PAYMENT_ANALYSIS_VIEW,
    column("payment_id", Integer),
    column("customer_id", Integer),
    column("customer_name", String),
    column("store_id", Integer),
    column("payment_amount", Numeric(5, 2)),
    column("payment_date", DateTime),
    column("rental_date", DateTime),
    column("return_date", DateTime),
    column("film_id", Integer),
    column("film_title", String),
    column("rental_duration", Integer),
    column("rental_rate", Numeric(4, 2)),
    column("category_name", String),
)

rental_clean_view = table(
    RENTAL_CLEAN_VIEW,
    column("rental_id", Integer),
    column("customer_id", Integer),
    column("inventory_id", Integer),
    column("rental_date", DateTime),
    column("return_date", DateTime),
    column("rental_hours", Integer),
)

@dataclass(frozen=True)
class PaymentAnalysisRow:
    payment_id: int
    customer_id: int
    customer_name: Optional[str]
    store_id: Optional[int]
    payment_amount: Optional[Decimal]
    payment_date: Optional[datetime]
    rental_date: Optional[datetime]
    return_date: Optional[datetime]
    film_id: int
    film_title: Optional[str]
    rental_duration: Optional[int]
    rental_rate: Optional[Decimal]
    category_name: Optional[str]

@dataclass(frozen=True)
class RentalCleanRow:
    rental_id: int
    customer_id: Optional[int]
    inventory_id: Optional[int]
    rental_date: Optional[datetime]
    return_date: Optional[datetime]
    rental_hours: Optional[int]

def payment_analysis_select():
    # all inner joins on purpose: a payment we can't trace all the way to a
    # category and a customer just doesn't show up in the view
    return (
        select(
            Payment.payment_id,
            Payment.customer_id,
            (Customer.first_name + " " + Customer.last_name).label("customer_name"),
            Customer.store_id,
            Payment.amount.label("payment_amount"),
            Payment.payment_date,
            Rental.rental_date,
            Rental.return_date,
            Film.film_id,
            Film.title.label("film_title"),
            Film.rental_duration,
            Film.rental_rate,
            Category.name.label("category_name"),
        )
        .select_from(Payment)
        .join(Rental, Payment.rental_id == Rental.rental_id)
        .join(Inventory, Rental.inventory_id == Inventory.inventory_id)
        .join(Film, Inventory.film_id == Film.film_id)
        .join(FilmCategory, Film.film_id == FilmCategory.film_id)
        .join(Category, FilmCategory.category_id == Category.category_id)
        .join(Customer, Payment.customer_id == Customer.customer_id)
    )

def rental_hours_expr(dialect_name, start=Rental.rental_date, end=Rental.return_date):
    """Whole hours between two timestamps, truncated toward zero, NULL if either side is NULL."""
    if dialect_name in ("mysql", "mariadb"):
        return func.timestampdiff(literal_column("HOUR"), start, end)
    if dialect_name == "postgresql":
        return cast(func.trunc(extract("epoch", end - start) / 3600), Integer)
    # sqlite has no interval type, so go through julian days; rounding to the
    # millisecond keeps fractional seconds without float noise at whole hours
    days = func.julianday(end, type_=Float) - func.julianday(start, type_=Float)
    seconds = func.round(days * 86400, 3, type_=Float)
    return cast(seconds / 3600.0, Integer)

def rental_clean_select(dialect_name="sqlite"):
    return select(
        Rental.rental_id,
        Rental.customer_id,
        Rental.inventory_id,
        Rental.rental_date,
        Rental.return_date,
        rental_hours_expr(dialect_name).label("rental_hours"),
    )

def create_views(engine):
    """
    (Re)creates both views. Running it twice is fine, the old definition is
    dropped first, which is the closest thing sqlite has to CREATE OR REPLACE.
    """
    definitions = [
        (PAYMENT_ANALYSIS_VIEW, payment_analysis_select()),
        (RENTAL_CLEAN_VIEW, rental_clean_select(engine.dialect.name)),
    ]
    with engine.begin() as conn:
        for name, query in definitions:
            body = query.compile(dialect=engine.dialect, compile_kwargs={"literal_binds": True})
            conn.exec_driver_sql(f"DROP VIEW IF EXISTS {name}")
            conn.exec_driver_sql(f"CREATE VIEW {name} AS {body}")
            logger.info("View %s created.", name)

def fetch_payment_analysis(session):
    v = payment_analysis_view
    result = session.execute(select(v).order_by(v.c.payment_id, v.c.category_name))
    return [PaymentAnalysisRow(**row._asdict()) for row in result]

def fetch_rental_clean(session):
    v = rental_clean_view
    result = session.execute(select(v).order_by(v.c.rental_id))
    return [RentalCleanRow(**row._asdict()) for row in result]

def _index(rows, key):
    # a list per key so duplicate ids fan out the same way a SQL join would;
    # NULL keys never match anything
    out = defaultdict(list)
    for r in rows:
        k = getattr(r, key)
        if k is not None:
            out[k].append(r)
    return out

def build_payment_analysis(payments, rentals, inventory, films, film_categories, categories, customers):
    """
    Same rows as v_payment_analysis but joined in Python. Takes anything with
    the model attribute names (ORM objects, namedtuples, SimpleNamespace...).
    """
    rentals_by_id = _index(rentals, "rental_id")
    inventory_by_id = _index(inventory, "inventory_id")
    films_by_id = _index(films, "film_id")
    film_categories_by_film = _index(film_categories, "film_id")
    categories_by_id = _index(categories, "category_id")
    customers_by_id = _index(customers, "customer_id")

    rows = []
    for p in payments:
        for r in rentals_by_id.get(p.rental_id, ()):
            for i in inventory_by_id.get(r.inventory_id, ()):
                for f in films_by_id.get(i.film_id, ()):
                    for fc in film_categories_by_film.get(f.film_id, ()):
                        for cat in categories_by_id.get(fc.category_id, ()):
                            for c in customers_by_id.get(p.customer_id, ()):
                                rows.append(PaymentAnalysisRow(
                                    payment_id=p.payment_id,
                                    customer_id=p.customer_id,
                                    customer_name=full_name(c.first_name, c.last_name),
                                    store_id=c.store_id,
                                    payment_amount=p.amount,
                                    payment_date=p.payment_date,
                                    rental_date=r.rental_date,
                                    return_date=r.return_date,
                                    film_id=f.film_id,
                                    film_title=f.title,
                                    rental_duration=f.rental_duration,
                                    rental_rate=f.rental_rate,
                                    category_name=cat.name,
                                ))
    return rows

def build_rental_clean(rentals):
    return [
        RentalCleanRow(
            rental_id=r.rental_id,
            customer_id=r.customer_id,
            inventory_id=r.inventory_id,
            rental_date=r.rental_date,
            return_date=r.return_date,
            rental_hours=hours_between(r.rental_date, r.return_date),
        )
        for r in rentals
    ]
