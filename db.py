"""SQLite snapshot store for the catalog price monitor."""

import functools
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from config import DB_PATH
from errors import PersistenceError
from models import Brand, ChangeRecord, Credential, Product, Subscriber

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER UNIQUE NOT NULL,
    username TEXT,
    role TEXT DEFAULT 'user' CHECK (role IN ('user', 'moderator', 'admin')),
    receive_apple BOOLEAN DEFAULT 1,
    receive_non_apple BOOLEAN DEFAULT 1,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS tokens (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    service_name TEXT UNIQUE NOT NULL,
    token TEXT NOT NULL,
    expires_at DATETIME NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS brands (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS products (
    id_product INTEGER NOT NULL,
    id_brand INTEGER NOT NULL REFERENCES brands(id),
    subcategory TEXT,
    chars_group TEXT,
    total_qty TEXT,
    price INTEGER,
    country_abbr TEXT,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (id_brand, id_product)
);

CREATE TABLE IF NOT EXISTS price_changes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    id_product INTEGER NOT NULL,
    id_brand INTEGER NOT NULL,
    change_type TEXT NOT NULL CHECK (change_type IN (
        'price_increase', 'price_decrease', 'product_added',
        'product_removed', 'quantity_changed'
    )),
    old_value TEXT,
    new_value TEXT,
    old_price INTEGER,
    new_price INTEGER,
    old_quantity TEXT,
    new_quantity TEXT,
    product_name TEXT,
    brand_name TEXT,
    country_abbr TEXT,
    created_at DATETIME
);
"""


def _persistence(func):
    """Surface sqlite failures as PersistenceError."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except sqlite3.Error as e:
            raise PersistenceError(f"{func.__name__} failed: {e}") from e

    return wrapper


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# The scheduler runs cycles on a worker thread, serialized by its own guard.
@_persistence
def get_connection(db_path: str = DB_PATH) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@_persistence
def init_db(conn: sqlite3.Connection):
    conn.executescript(SCHEMA)
    conn.commit()


# --- Brands ---

@_persistence
def get_brands(conn: sqlite3.Connection) -> list[Brand]:
    rows = conn.execute("SELECT id, name FROM brands ORDER BY name").fetchall()
    return [Brand(id=r["id"], name=r["name"]) for r in rows]


@_persistence
def save_brands(conn: sqlite3.Connection, brands: list[Brand]):
    """Upsert brands; names are refreshed on every sync."""
    with conn:
        conn.executemany(
            """INSERT INTO brands (id, name, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
               ON CONFLICT(id) DO UPDATE SET name = excluded.name, updated_at = CURRENT_TIMESTAMP""",
            [(b.id, b.name) for b in brands],
        )


# --- Products ---

def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id_product"],
        brand_id=row["id_brand"],
        subcategory=row["subcategory"],
        attribute_group=row["chars_group"],
        total_quantity=row["total_qty"],
        price=row["price"],
        country_code=row["country_abbr"],
    )


@_persistence
def get_products_by_brand(conn: sqlite3.Connection, brand_id: int) -> list[Product]:
    rows = conn.execute(
        "SELECT * FROM products WHERE id_brand = ? ORDER BY price, id_product",
        (brand_id,),
    ).fetchall()
    return [_row_to_product(r) for r in rows]


@_persistence
def count_products(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM products").fetchone()[0]


@_persistence
def replace_products(conn: sqlite3.Connection, brand_id: int, products: list[Product]):
    """Replace the stored snapshot for a brand in a single transaction."""
    with conn:
        conn.execute("DELETE FROM products WHERE id_brand = ?", (brand_id,))
        conn.executemany(
            """INSERT OR REPLACE INTO products
                (id_product, id_brand, subcategory, chars_group, total_qty, price, country_abbr)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            [
                (
                    p.id, brand_id, p.subcategory, p.attribute_group,
                    p.total_quantity, p.price, p.country_code,
                )
                for p in products
            ],
        )


# --- Change staging ---

@_persistence
def append_change_record(conn: sqlite3.Connection, change: ChangeRecord):
    conn.execute(
        """INSERT INTO price_changes
            (id_product, id_brand, change_type, old_value, new_value,
             old_price, new_price, old_quantity, new_quantity,
             product_name, brand_name, country_abbr, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            change.product_id, change.brand_id, change.change_type,
            change.old_value, change.new_value, change.old_price,
            change.new_price, change.old_quantity, change.new_quantity,
            change.product_name, change.brand_name, change.country_code,
            _to_iso(change.created_at),
        ),
    )
    conn.commit()


@_persistence
def count_change_records(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM price_changes").fetchone()[0]


@_persistence
def clear_change_records(conn: sqlite3.Connection) -> int:
    result = conn.execute("DELETE FROM price_changes")
    conn.commit()
    return result.rowcount


# --- Subscribers ---

@_persistence
def get_subscribers_with_preferences(conn: sqlite3.Connection) -> list[Subscriber]:
    """Moderators with their category preferences."""
    rows = conn.execute(
        """SELECT user_id, receive_apple, receive_non_apple
           FROM users WHERE role = 'moderator' ORDER BY user_id"""
    ).fetchall()
    return [
        Subscriber(
            user_id=r["user_id"],
            receive_apple=bool(r["receive_apple"]),
            receive_non_apple=bool(r["receive_non_apple"]),
        )
        for r in rows
    ]


# --- Tokens ---

@_persistence
def get_token(conn: sqlite3.Connection, service_name: str) -> Optional[Credential]:
    row = conn.execute(
        "SELECT service_name, token, expires_at FROM tokens WHERE service_name = ?",
        (service_name,),
    ).fetchone()
    if not row:
        return None
    return Credential(
        service_name=row["service_name"],
        token=row["token"],
        expires_at=_from_iso(row["expires_at"]),
    )


@_persistence
def save_token(conn: sqlite3.Connection, credential: Credential):
    conn.execute(
        """INSERT OR REPLACE INTO tokens (service_name, token, expires_at, updated_at)
           VALUES (?, ?, ?, CURRENT_TIMESTAMP)""",
        (credential.service_name, credential.token, _to_iso(credential.expires_at)),
    )
    conn.commit()


@_persistence
def delete_token(conn: sqlite3.Connection, service_name: str) -> bool:
    result = conn.execute("DELETE FROM tokens WHERE service_name = ?", (service_name,))
    conn.commit()
    return result.rowcount > 0


@_persistence
def clean_expired_tokens(conn: sqlite3.Connection, now: datetime) -> int:
    result = conn.execute(
        "DELETE FROM tokens WHERE expires_at < ?", (_to_iso(now),)
    )
    conn.commit()
    return result.rowcount
