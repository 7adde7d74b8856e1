"""Per-subscriber filtering of detected changes."""

import logging
from typing import Iterable, Optional

from config import APPLE_KEYWORDS
from models import ChangeRecord, Subscriber

logger = logging.getLogger(__name__)


def is_apple_device(product_name: Optional[str], brand_name: Optional[str]) -> bool:
    """Case-insensitive keyword match over brand and product name."""
    if not product_name and not brand_name:
        return False
    search_text = f"{brand_name or ''} {product_name or ''}".lower()
    return any(keyword in search_text for keyword in APPLE_KEYWORDS)


def partition(changes: Iterable[ChangeRecord]) -> tuple[list[ChangeRecord], list[ChangeRecord]]:
    """Split changes into (apple, other), keeping input order within each."""
    apple, other = [], []
    for change in changes:
        if is_apple_device(change.product_name, change.brand_name):
            apple.append(change)
        else:
            other.append(change)
    return apple, other


def route(
    changes: list[ChangeRecord], subscribers: Iterable[Subscriber]
) -> dict[int, list[ChangeRecord]]:
    """Map each subscriber to the changes their preferences select.

    Subscribers with nothing selected are left out of the result.
    """
    apple, other = partition(changes)
    routed: dict[int, list[ChangeRecord]] = {}

    for sub in subscribers:
        selected = []
        if sub.receive_apple:
            selected.extend(apple)
        if sub.receive_non_apple:
            selected.extend(other)

        if not selected:
            logger.info(f"Subscriber {sub.user_id}: nothing to send")
            continue
        routed[sub.user_id] = selected

    return routed
