"""Data models for the catalog price monitor."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

PRICE_INCREASE = "price_increase"
PRICE_DECREASE = "price_decrease"
PRODUCT_ADDED = "product_added"
PRODUCT_REMOVED = "product_removed"
QUANTITY_CHANGED = "quantity_changed"

CHANGE_TYPES = (
    PRICE_INCREASE,
    PRICE_DECREASE,
    PRODUCT_ADDED,
    PRODUCT_REMOVED,
    QUANTITY_CHANGED,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Credential:
    service_name: str
    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at > now


@dataclass
class Brand:
    id: int
    name: str


@dataclass
class Product:
    id: int
    brand_id: int
    subcategory: Optional[str] = None
    attribute_group: Optional[str] = None  # display name in the catalog
    total_quantity: Optional[str] = None  # text, e.g. "5" or "10+"
    price: Optional[int] = None
    country_code: Optional[str] = None


@dataclass
class ChangeRecord:
    product_id: int
    brand_id: int
    change_type: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    old_price: Optional[int] = None
    new_price: Optional[int] = None
    old_quantity: Optional[str] = None
    new_quantity: Optional[str] = None
    product_name: Optional[str] = None
    brand_name: Optional[str] = None
    country_code: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Subscriber:
    user_id: int
    receive_apple: bool = True
    receive_non_apple: bool = True
