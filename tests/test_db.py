from datetime import timedelta

import pytest

from db import (
    append_change_record,
    clean_expired_tokens,
    clear_change_records,
    count_change_records,
    count_products,
    delete_token,
    get_brands,
    get_products_by_brand,
    get_subscribers_with_preferences,
    get_token,
    replace_products,
    save_brands,
    save_token,
)
from errors import PersistenceError
from models import PRICE_INCREASE, Brand, Credential
from tests.conftest import make_change, make_product


def test_save_brands_refreshes_names(conn):
    save_brands(conn, [Brand(1, "Samsung"), Brand(2, "apple")])
    save_brands(conn, [Brand(2, "Apple")])

    assert get_brands(conn) == [Brand(2, "Apple"), Brand(1, "Samsung")]


def test_replace_products_supersedes_snapshot(conn):
    save_brands(conn, [Brand(9, "X"), Brand(10, "Y")])
    replace_products(conn, 9, [make_product(1), make_product(2)])
    replace_products(conn, 10, [make_product(1, brand_id=10)])

    replace_products(conn, 9, [make_product(3, price=70, qty="1")])

    products = get_products_by_brand(conn, 9)
    assert [p.id for p in products] == [3]
    assert products[0].total_quantity == "1"
    assert products[0].price == 70
    assert products[0].country_code == "AE"
    assert [p.id for p in get_products_by_brand(conn, 10)] == [1]
    assert count_products(conn) == 2


def test_replace_products_rolls_back_on_failure(conn):
    save_brands(conn, [Brand(9, "X")])
    replace_products(conn, 9, [make_product(1)])

    with pytest.raises(PersistenceError):
        # id=None violates NOT NULL; the delete must be rolled back too
        replace_products(conn, 9, [make_product(2), make_product(None)])

    assert [p.id for p in get_products_by_brand(conn, 9)] == [1]


def test_change_records_are_staged_and_cleared(conn):
    append_change_record(conn, make_change(PRICE_INCREASE, 1))
    append_change_record(conn, make_change(PRICE_INCREASE, 2))
    assert count_change_records(conn) == 2

    assert clear_change_records(conn) == 2
    assert count_change_records(conn) == 0


def test_subscribers_are_moderators_with_preferences(conn):
    conn.executemany(
        "INSERT INTO users (user_id, role, receive_apple, receive_non_apple) VALUES (?, ?, ?, ?)",
        [
            (100, "moderator", 1, 0),
            (101, "moderator", 0, 1),
            (102, "user", 1, 1),
            (103, "admin", 1, 1),
        ],
    )
    conn.commit()

    subscribers = get_subscribers_with_preferences(conn)

    assert [(s.user_id, s.receive_apple, s.receive_non_apple) for s in subscribers] == [
        (100, True, False),
        (101, False, True),
    ]


def test_token_round_trip(conn, clock):
    expires = clock.now + timedelta(hours=24)
    save_token(conn, Credential("catalog", "abc", expires))
    save_token(conn, Credential("catalog", "def", expires))

    stored = get_token(conn, "catalog")
    assert stored.token == "def"
    assert stored.expires_at == expires

    assert delete_token(conn, "catalog") is True
    assert get_token(conn, "catalog") is None
    assert delete_token(conn, "catalog") is False


def test_clean_expired_tokens(conn, clock):
    save_token(conn, Credential("old", "a", clock.now - timedelta(hours=1)))
    save_token(conn, Credential("fresh", "b", clock.now + timedelta(hours=1)))

    assert clean_expired_tokens(conn, clock.now) == 1
    assert get_token(conn, "old") is None
    assert get_token(conn, "fresh") is not None


def test_closed_connection_raises_persistence_error(conn):
    conn.close()
    with pytest.raises(PersistenceError):
        get_brands(conn)
