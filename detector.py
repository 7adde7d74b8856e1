"""Change detection between two product snapshots of one brand."""

from datetime import datetime
from typing import Iterable, Optional

from models import (
    CHANGE_TYPES,
    PRICE_DECREASE,
    PRICE_INCREASE,
    PRODUCT_ADDED,
    PRODUCT_REMOVED,
    QUANTITY_CHANGED,
    Brand,
    ChangeRecord,
    Product,
    utcnow,
)

REMOVED_MARKER = "removed"


def _price_and_qty(product: Product) -> str:
    return f"{product.price} ({product.total_quantity} pcs)"


def _record(
    change_type: str,
    brand: Brand,
    now: datetime,
    current: Product,
    old: Optional[Product] = None,
    new: Optional[Product] = None,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
) -> ChangeRecord:
    return ChangeRecord(
        product_id=current.id,
        brand_id=brand.id,
        change_type=change_type,
        old_value=old_value,
        new_value=new_value,
        old_price=old.price if old else None,
        new_price=new.price if new else None,
        old_quantity=old.total_quantity if old else None,
        new_quantity=new.total_quantity if new else None,
        product_name=current.attribute_group,
        brand_name=brand.name,
        country_code=current.country_code,
        created_at=now,
    )


def diff_products(
    old_products: Iterable[Product],
    new_products: Iterable[Product],
    brand: Brand,
    now: Optional[datetime] = None,
) -> list[ChangeRecord]:
    """Compare the stored snapshot of a brand with a freshly fetched one.

    Price and quantity are independent dimensions: a product whose price and
    quantity both moved yields two records. Additions and modifications come
    first in new-snapshot order, then removals in old-snapshot order.
    """
    now = now or utcnow()
    old_index = {p.id: p for p in old_products}
    new_index = {p.id: p for p in new_products}
    changes = []

    for product_id, new in new_index.items():
        old = old_index.get(product_id)
        if old is None:
            changes.append(_record(
                PRODUCT_ADDED, brand, now, new, new=new,
                new_value=_price_and_qty(new),
            ))
            continue

        if old.price != new.price:
            # a missing price counts as 0
            rising = (new.price or 0) > (old.price or 0)
            changes.append(_record(
                PRICE_INCREASE if rising else PRICE_DECREASE,
                brand, now, new, old=old, new=new,
                old_value=str(old.price), new_value=str(new.price),
            ))

        if old.total_quantity != new.total_quantity:
            changes.append(_record(
                QUANTITY_CHANGED, brand, now, new, old=old, new=new,
                old_value=old.total_quantity, new_value=new.total_quantity,
            ))

    for product_id, old in old_index.items():
        if product_id not in new_index:
            changes.append(_record(
                PRODUCT_REMOVED, brand, now, old, old=old,
                old_value=_price_and_qty(old), new_value=REMOVED_MARKER,
            ))

    return changes


def summarize(changes: Iterable[ChangeRecord]) -> dict[str, int]:
    """Count changes per type, in the fixed type order."""
    counts = {ct: 0 for ct in CHANGE_TYPES}
    for change in changes:
        counts[change.change_type] += 1
    return counts
