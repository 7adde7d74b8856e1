"""Formatting of change records into size-bounded Telegram messages."""

import logging
from datetime import datetime
from typing import Callable, Optional

from config import CURRENCY, MAX_MESSAGE_LENGTH
from models import (
    PRICE_DECREASE,
    PRICE_INCREASE,
    PRODUCT_ADDED,
    PRODUCT_REMOVED,
    QUANTITY_CHANGED,
    ChangeRecord,
    utcnow,
)

logger = logging.getLogger(__name__)

CONTINUED_HEADER = "📊 <b>Changes (continued):</b>\n\n"

# Regional indicator symbol A minus ord("A")
_FLAG_OFFSET = 127397


def country_flag(country_code: Optional[str]) -> str:
    """Emoji flag for a two-letter country code, with a leading space."""
    if not country_code:
        return ""
    code = country_code.strip().upper()
    if len(code) != 2 or not all("A" <= ch <= "Z" for ch in code):
        return ""
    return " " + "".join(chr(_FLAG_OFFSET + ord(ch)) for ch in code)


def _escape_html(text: Optional[str]) -> str:
    """Escape HTML special characters for Telegram HTML parse mode."""
    if text is None:
        return ""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _item_title(change: ChangeRecord) -> str:
    return (
        f"• {_escape_html(change.brand_name)} - {_escape_html(change.product_name)}"
        f"{country_flag(change.country_code)}\n"
    )


def _format_price_change(change: ChangeRecord) -> str:
    return f"{_item_title(change)}  {change.old_price} → {change.new_price} {CURRENCY}\n\n"


def _format_added(change: ChangeRecord) -> str:
    return (
        f"{_item_title(change)}  {change.new_price} {CURRENCY} "
        f"({_escape_html(change.new_quantity)} pcs)\n\n"
    )


def _format_removed(change: ChangeRecord) -> str:
    return (
        f"{_item_title(change)}  Was: {change.old_price} {CURRENCY} "
        f"({_escape_html(change.old_quantity)} pcs)\n\n"
    )


def _format_quantity(change: ChangeRecord) -> str:
    return (
        f"{_item_title(change)}  {_escape_html(change.old_quantity)} → "
        f"{_escape_html(change.new_quantity)} pcs ({change.new_price} {CURRENCY})\n\n"
    )


SECTIONS: list[tuple[str, str, Callable[[ChangeRecord], str]]] = [
    (PRICE_INCREASE, "📈 <b>Price increases:</b>", _format_price_change),
    (PRICE_DECREASE, "📉 <b>Price decreases:</b>", _format_price_change),
    (PRODUCT_ADDED, "➕ <b>New products:</b>", _format_added),
    (PRODUCT_REMOVED, "➖ <b>Removed products:</b>", _format_removed),
    (QUANTITY_CHANGED, "📦 <b>Quantity changes:</b>", _format_quantity),
]


def format_change(change: ChangeRecord) -> str:
    """Render a single change as it appears inside its section."""
    for change_type, _title, formatter in SECTIONS:
        if change_type == change.change_type:
            return formatter(change)
    raise ValueError(f"Unknown change type: {change.change_type}")


def _hard_split(text: str, max_length: int) -> list[str]:
    if len(text) <= max_length:
        return [text]
    logger.warning(f"Message too long ({len(text)} chars), splitting at {max_length}")
    return [text[i:i + max_length] for i in range(0, len(text), max_length)]


def batch_messages(
    changes: list[ChangeRecord],
    max_length: int = MAX_MESSAGE_LENGTH,
    now: Optional[datetime] = None,
) -> list[str]:
    """Group changes into sections and pack them into messages.

    Every message is at most ``max_length`` characters. A buffer that still
    overflows after a restart (the footer, or a single line longer than the
    budget) is split at the ``max_length`` boundary instead of being
    truncated, so joining the messages keeps every change line exactly once.
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    now = now or utcnow()

    by_type: dict[str, list[ChangeRecord]] = {ct: [] for ct, _, _ in SECTIONS}
    for change in changes:
        by_type[change.change_type].append(change)

    messages: list[str] = []
    buffer = (
        "📊 <b>Price list changes detected:</b>\n"
        f"<b>Total: {len(changes)} changes</b>\n\n"
    )

    def append(text: str, restart_header: str):
        nonlocal buffer
        if len(buffer) + len(text) > max_length:
            messages.extend(_hard_split(buffer, max_length))
            buffer = restart_header
        buffer += text

    for change_type, title, formatter in SECTIONS:
        items = by_type[change_type]
        if not items:
            continue
        append(f"{title}\n\n", CONTINUED_HEADER)
        for item in items:
            append(formatter(item), f"{CONTINUED_HEADER}{title} (continued)\n\n")

    buffer += f"\n🕐 <i>Checked at: {now:%Y-%m-%d %H:%M:%S %Z}</i>"
    messages.extend(_hard_split(buffer, max_length))
    return messages
