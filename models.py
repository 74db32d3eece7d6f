from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import declarative_base

BaseSource = declarative_base()

class Film(BaseSource):
    __tablename__ = "film"
    film_id = Column(Integer, primary_key=True)
    title = Column(String(255))
    rental_duration = Column(Integer)
    rental_rate = Column(Numeric(4,2))
    last_update = Column(DateTime)

class Category(BaseSource):
    __tablename__ = "category"
    category_id = Column(Integer, primary_key=True)
    name = Column(String(25))
    last_update = Column(DateTime)

class FilmCategory(BaseSource):
    __tablename__ = "film_category"
    film_id = Column(Integer, ForeignKey("film.film_id"), primary_key=True)
    category_id = Column(Integer, ForeignKey("category.category_id"), primary_key=True)
    last_update = Column(DateTime)

class Customer(BaseSource):
    __tablename__ = "customer"
    customer_id = Column(Integer, primary_key=True)
    store_id = Column(Integer)
    first_name = Column(String(45))
    last_name = Column(String(45))
    last_update = Column(DateTime)

class Inventory(BaseSource):
    __tablename__ = "inventory"
    inventory_id = Column(Integer, primary_key=True)
    film_id = Column(Integer, ForeignKey("film.film_id"))
    store_id = Column(Integer)
    last_update = Column(DateTime)

class Rental(BaseSource):
    __tablename__ = "rental"
    rental_id = Column(Integer, primary_key=True)
    rental_date = Column(DateTime)
    inventory_id = Column(Integer, ForeignKey("inventory.inventory_id"))
    customer_id = Column(Integer, ForeignKey("customer.customer_id"))
    return_date = Column(DateTime)
    staff_id = Column(Integer)
    last_update = Column(DateTime)

class Payment(BaseSource):
    __tablename__ = "payment"
    payment_id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.customer_id"))
    staff_id = Column(Integer)
    rental_id = Column(Integer, ForeignKey("rental.rental_id"))
    amount = Column(Numeric(5,2))
    payment_date = Column(DateTime)
    last_update = Column(DateTime)

# the order matters for the row count report, it's the order the tables get listed in
BASE_TABLES = {
    "film": Film,
    "category": Category,
    "film_category": FilmCategory,
    "customer": Customer,
    "inventory": Inventory,
    "rental": Rental,
    "payment": Payment,
}
