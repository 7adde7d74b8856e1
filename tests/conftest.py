from datetime import datetime, timedelta, timezone

import pytest

from db import get_connection, init_db
from models import Brand, ChangeRecord, Product


class FakeClock:
    """Deterministic clock for expiry tests."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture()
def conn():
    conn = get_connection(":memory:")
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def brand():
    return Brand(id=9, name="X")


def make_product(id, price=100, qty="5", brand_id=9, name=None, country="AE"):
    return Product(
        id=id,
        brand_id=brand_id,
        subcategory="Phones",
        attribute_group=name or f"Product {id}",
        total_quantity=qty,
        price=price,
        country_code=country,
    )


def make_change(change_type, product_id=1, brand_name="Samsung", product_name="Galaxy S24", **kwargs):
    defaults = dict(
        brand_id=1,
        old_price=100,
        new_price=120,
        old_quantity="5",
        new_quantity="5",
        country_code="AE",
    )
    defaults.update(kwargs)
    return ChangeRecord(
        product_id=product_id,
        change_type=change_type,
        brand_name=brand_name,
        product_name=product_name,
        **defaults,
    )
