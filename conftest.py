import pytest
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from models import BaseSource, Film, Category, FilmCategory, Customer, Inventory, Rental, Payment
from views import create_views

# with this date the churn cutoff lands on 2006-02-19 00:00, which is exactly
# PATRICIA JOHNSON's last rental
AS_OF = date(2006, 5, 20)

def seed(sess):
    ts = datetime(2006, 2, 15, 5, 0, 0)
    sess.add_all([
        Category(category_id=1, name="Action", last_update=ts),
        Category(category_id=2, name="Comedy", last_update=ts),
        Category(category_id=3, name="Drama", last_update=ts),
        Film(film_id=1, title="ACADEMY DINOSAUR", rental_duration=6, rental_rate=Decimal("0.99"), last_update=ts),
        Film(film_id=2, title="ACE GOLDFINGER", rental_duration=3, rental_rate=Decimal("4.99"), last_update=ts),
        Film(film_id=3, title="ADAPTATION HOLES", rental_duration=7, rental_rate=Decimal("2.99"), last_update=ts),
        # no category, so payments for it never make it into the payment view
        Film(film_id=4, title="ORPHAN FILM", rental_duration=5, rental_rate=Decimal("2.99"), last_update=ts),
        FilmCategory(film_id=1, category_id=1, last_update=ts),
        FilmCategory(film_id=2, category_id=2, last_update=ts),
        FilmCategory(film_id=3, category_id=1, last_update=ts),
        Customer(customer_id=1, store_id=1, first_name="MARY", last_name="SMITH", last_update=ts),
        Customer(customer_id=2, store_id=1, first_name="PATRICIA", last_name="JOHNSON", last_update=ts),
        Customer(customer_id=3, store_id=2, first_name="LINDA", last_name="WILLIAMS", last_update=ts),
        Customer(customer_id=4, store_id=2, first_name="BARBARA", last_name="JONES", last_update=ts),
        Inventory(inventory_id=1, film_id=1, store_id=1, last_update=ts),
        Inventory(inventory_id=2, film_id=2, store_id=1, last_update=ts),
        Inventory(inventory_id=3, film_id=3, store_id=2, last_update=ts),
        Inventory(inventory_id=4, film_id=4, store_id=2, last_update=ts),
        Inventory(inventory_id=5, film_id=1, store_id=2, last_update=ts),
        Rental(rental_id=1, inventory_id=1, customer_id=1, staff_id=1,
               rental_date=datetime(2005, 5, 24, 22, 53, 30), return_date=datetime(2005, 5, 26, 22, 4, 30)),
        Rental(rental_id=2, inventory_id=2, customer_id=1, staff_id=1,
               rental_date=datetime(2005, 5, 25, 10, 0), return_date=datetime(2005, 5, 27, 10, 0)),
        Rental(rental_id=3, inventory_id=3, customer_id=2, staff_id=2,
               rental_date=datetime(2005, 6, 15, 12, 0), return_date=None),
        Rental(rental_id=4, inventory_id=4, customer_id=3, staff_id=2,
               rental_date=datetime(2005, 6, 16, 9, 0), return_date=datetime(2005, 6, 17, 9, 0)),
        # returned before it was rented, bad data on purpose
        Rental(rental_id=5, inventory_id=5, customer_id=3, staff_id=1,
               rental_date=datetime(2006, 2, 14, 15, 0), return_date=datetime(2006, 2, 14, 13, 0)),
        Rental(rental_id=6, inventory_id=1, customer_id=2, staff_id=1,
               rental_date=datetime(2006, 2, 19, 0, 0), return_date=datetime(2006, 2, 20, 0, 0)),
        Payment(payment_id=1, customer_id=1, rental_id=1, staff_id=1, amount=Decimal("4.99"), payment_date=datetime(2005, 5, 25, 11, 30)),
        Payment(payment_id=2, customer_id=1, rental_id=2, staff_id=1, amount=Decimal("2.99"), payment_date=datetime(2005, 5, 28, 10, 0)),
        Payment(payment_id=3, customer_id=2, rental_id=3, staff_id=2, amount=Decimal("0.99"), payment_date=datetime(2005, 6, 15, 12, 5)),
        Payment(payment_id=4, customer_id=3, rental_id=4, staff_id=2, amount=Decimal("5.99"), payment_date=datetime(2005, 6, 16, 9, 5)),
        Payment(payment_id=5, customer_id=3, rental_id=5, staff_id=1, amount=Decimal("3.99"), payment_date=datetime(2006, 2, 14, 15, 5)),
        Payment(payment_id=6, customer_id=2, rental_id=6, staff_id=1, amount=Decimal("1.99"), payment_date=datetime(2006, 2, 19, 0, 10)),
        # customer 99 doesn't exist
        Payment(payment_id=7, customer_id=99, rental_id=2, staff_id=1, amount=Decimal("9.99"), payment_date=datetime(2005, 5, 28, 11, 0)),
        # rental 999 doesn't exist and the amount is missing
        Payment(payment_id=8, customer_id=1, rental_id=999, staff_id=1, amount=None, payment_date=datetime(2005, 5, 29, 9, 0)),
    ])

@pytest.fixture
def as_of():
    return AS_OF

@pytest.fixture
def source_url(tmp_path):
    return f"sqlite:///{tmp_path/'sakila.db'}"

@pytest.fixture
def source_engine(source_url):
    engine = create_engine(source_url)
    BaseSource.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    sess = Session()
    seed(sess)
    sess.commit()
    sess.close()
    create_views(engine)
    yield engine
    engine.dispose()

@pytest.fixture
def source_session(source_engine):
    Session = sessionmaker(bind=source_engine)
    sess = Session()
    yield sess
    sess.close()
