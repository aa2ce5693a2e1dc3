"""
Snapshot transforms used as optimistic `apply` functions.

A snapshot is a dict of collections, each a list of JSON objects with an
"id". Every function returns a new snapshot and leaves its input untouched.
Money values may be JSON numbers or decimal strings.
"""

from decimal import Decimal
from typing import Any


def _copy_with(snapshot: dict, collection: str, items: list) -> dict:
    updated = dict(snapshot)
    updated[collection] = items
    return updated


def without_item(snapshot: dict, collection: str, item_id: str) -> dict:
    items = [item for item in snapshot.get(collection) or [] if item.get("id") != item_id]
    return _copy_with(snapshot, collection, items)


def without_related(snapshot: dict, collection: str, field: str, value: Any) -> dict:
    """Drop every item whose `field` equals `value` (local cascade)."""
    items = [item for item in snapshot.get(collection) or [] if item.get(field) != value]
    return _copy_with(snapshot, collection, items)


def with_item_replaced(snapshot: dict, collection: str, item: dict) -> dict:
    """Swap in `item` for the element with the same id, keeping its position."""
    items = [
        {**existing, **item} if existing.get("id") == item.get("id") else existing
        for existing in snapshot.get(collection) or []
    ]
    return _copy_with(snapshot, collection, items)


def with_collection(snapshot: dict, collection: str, items: list) -> dict:
    return _copy_with(snapshot, collection, list(items))


def add_money(value: Any, delta: Any) -> Any:
    """Add two money values, keeping strings as strings."""
    total = Decimal(str(value if value is not None else 0)) + Decimal(str(delta))
    if isinstance(value, str):
        return str(total)
    return float(total)


def with_balance_adjusted(
    snapshot: dict,
    account_id: str,
    delta: Any,
    collection: str = "accounts",
) -> dict:
    """Add `delta` to one account's balance."""
    items = [
        {**account, "balance": add_money(account.get("balance"), delta)}
        if account.get("id") == account_id else account
        for account in snapshot.get(collection) or []
    ]
    return _copy_with(snapshot, collection, items)


def with_nested_item_removed(
    snapshot: dict,
    collection: str,
    parent_id: str,
    child_key: str,
    child_id: str,
) -> dict:
    """Remove one child (e.g. a goal payment) from a parent record."""
    items = []
    for parent in snapshot.get(collection) or []:
        if parent.get("id") == parent_id:
            children = [c for c in parent.get(child_key) or [] if c.get("id") != child_id]
            parent = {**parent, child_key: children}
        items.append(parent)
    return _copy_with(snapshot, collection, items)
