import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from catalog import PRODUCT_DATA, Catalog
from schemas import Product, ShippingAddress, UserOut
from session import SessionService
from storage import KeyValueStore
from tests.helpers import signup


@pytest.fixture
def database(monkeypatch):
    database = mongomock.MongoClient()["skinaura_test"]
    monkeypatch.setattr(main, "db", database)
    return database


@pytest.fixture
def storage(database):
    return KeyValueStore(database["kv"])


@pytest.fixture
def catalog():
    return Catalog(delay=0)


@pytest.fixture
def products():
    return {p["id"]: Product(**p) for p in PRODUCT_DATA}


@pytest.fixture
def user():
    return UserOut(id="u1", name="Test User", email="user@example.com")


@pytest.fixture
def other_user():
    return UserOut(id="u2", name="Other User", email="other@example.com")


@pytest.fixture
def session(storage, user):
    session = SessionService(storage)
    session.attach(user)
    return session


@pytest.fixture
def address():
    return ShippingAddress(
        full_name="Asha Verma",
        address_line1="12 MG Road",
        address_line2="Flat 4B",
        city="Mumbai",
        state="Maharashtra",
        zip_code="400012",
        phone_number="98765 43210",
    )


@pytest.fixture
def client(database, catalog):
    main.app.dependency_overrides[main.get_catalog] = lambda: catalog
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    return signup(client)
