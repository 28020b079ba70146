import mongomock
import pytest

from schemas import ColorStock, Product, SizeStock, User

USER_ID = "user-123"

ADDRESS = {
    "fullName": "Asha Rao",
    "street": "123 Main St",
    "city": "Test City",
    "state": "Test State",
    "pincode": "12345",
}


@pytest.fixture
def db():
    return mongomock.MongoClient().db


def add_product(db, product_id, **fields):
    data = {"userId": "seller-1", "name": f"Product {product_id}", "price": 150, "offerPrice": 100, "stock": 10}
    data.update(fields)
    doc = Product(**data).model_dump()
    db["product"].insert_one({"_id": product_id, **doc})
    return product_id


def add_user(db, user_id=USER_ID, cart=None, designs=None):
    doc = User(name="Asha", email="asha@example.com", cartItems=cart or {}, customDesigns=designs or {}).model_dump()
    db["user"].insert_one({"_id": user_id, **doc})
    return user_id


def jersey_colors():
    return [
        ColorStock(color="#FF0000", stock=10, sizeStock=[
            SizeStock(size="M", quantity=4),
            SizeStock(size="L", quantity=6),
        ]).model_dump(),
        ColorStock(color="#0000FF", stock=5).model_dump(),
    ]


@pytest.fixture
def simple_product(db):
    return add_product(db, "p1")


@pytest.fixture
def jersey(db):
    return add_product(db, "p1", name="Club Jersey", stock=15, colors=jersey_colors())
