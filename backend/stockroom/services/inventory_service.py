# Overview: Inventory ledger; the single source of truth for current stock and price.

"""
Stockroom Inventory Ledger Invariants (authoritative)

Stock model:
- InventoryItem.quantity is the current stock; it is never negative.
- The only writers of quantity during sales are reserve_and_decrement() and
  restore(). Both are a single conditional UPDATE evaluated by the database,
  so concurrent sales against the same item serialize on that row and can
  never oversell. Callers never read quantity, compare, then write it back.
- InsufficientStockError is an expected outcome, reported per item.

Master data:
- Direct edits (name, description, price, category, quantity) go through
  update_item(); sales keep their own frozen copy of name and price.
- Deleting an item never touches sale history; restore() against a deleted
  item can be asked to be a no-op (missing_ok=True).
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import InventoryItem
from ..errors import InsufficientStockError, NotFoundError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    coerce_bounded_int,
    enforce_rules_item,
    validate_payload,
)
from .concurrency import run_with_retry
from .pagination import paginate

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category", "quantity", "price_cents"},
    required_on_create={"name", "description", "quantity", "price_cents"},
)


@dataclass(frozen=True)
class Reservation:
    """Outcome of a successful reserve: what was taken and at what price."""

    item_id: int
    quantity: int
    name: str
    unit_price_cents: int
    remaining: int


def _positive_quantity(quantity) -> int:
    qty = coerce_bounded_int(quantity, "quantity")
    if qty < 1:
        raise ValidationError("quantity must be a positive integer")
    return qty


def _load_item(item_id: int, *, refresh: bool = False) -> InventoryItem | None:
    query = db.session.query(InventoryItem)
    if refresh:
        query = query.populate_existing()
    return query.filter_by(id=item_id).first()


def get_item(item_id: int) -> InventoryItem:
    item = _load_item(item_id)
    if item is None:
        raise NotFoundError("Item", item_id)
    return item


def find_item_by_name(name: str) -> InventoryItem | None:
    """Case-insensitive lookup by item name."""
    return (
        db.session.query(InventoryItem)
        .filter(func.lower(InventoryItem.name) == name.strip().lower())
        .order_by(InventoryItem.id.asc())
        .first()
    )


def reserve_and_decrement(item_id: int, quantity, *, commit: bool = True) -> Reservation:
    """
    Atomically take ``quantity`` units of an item.

    One conditional UPDATE (``quantity >= :q``) checks and decrements in a
    single step. When nothing matched, the row is re-read only to tell
    NotFound from InsufficientStock; no state was changed.

    With commit=True the reservation is its own committed unit (retried on
    transient errors). With commit=False it joins the caller's transaction.
    """
    qty = _positive_quantity(quantity)

    def _op() -> Reservation:
        matched = db.session.query(InventoryItem).filter(
            InventoryItem.id == item_id,
            InventoryItem.quantity >= qty,
        ).update(
            {
                InventoryItem.quantity: InventoryItem.quantity - qty,
                InventoryItem.version_id: InventoryItem.version_id + 1,
            },
            synchronize_session=False,
        )

        item = _load_item(item_id, refresh=True)

        if matched != 1:
            if item is None:
                error = NotFoundError("Item", item_id)
            else:
                error = InsufficientStockError(
                    item_id=item_id,
                    requested=qty,
                    available=item.quantity,
                    name=item.name,
                )
            if commit:
                db.session.rollback()
            raise error

        # Snapshot before commit expires the instance
        reservation = Reservation(
            item_id=item.id,
            quantity=qty,
            name=item.name,
            unit_price_cents=item.price_cents,
            remaining=item.quantity,
        )

        if commit:
            db.session.commit()
        return reservation

    if commit:
        return run_with_retry(_op)
    return _op()


def restore(item_id: int, quantity, *, missing_ok: bool = False, commit: bool = True) -> int | None:
    """
    Atomically return ``quantity`` units to an item.

    Returns the new stock level, or None when the item no longer exists and
    ``missing_ok`` is set (the units are not attributable anywhere).
    """
    qty = _positive_quantity(quantity)

    def _op() -> int | None:
        matched = db.session.query(InventoryItem).filter(
            InventoryItem.id == item_id,
        ).update(
            {
                InventoryItem.quantity: InventoryItem.quantity + qty,
                InventoryItem.version_id: InventoryItem.version_id + 1,
            },
            synchronize_session=False,
        )

        if matched != 1:
            if not missing_ok:
                if commit:
                    db.session.rollback()
                raise NotFoundError("Item", item_id)
            current_app.logger.info(
                "Restore of %d unit(s) skipped: item %s no longer exists", qty, item_id
            )
            if commit:
                db.session.commit()
            return None

        new_quantity = _load_item(item_id, refresh=True).quantity
        if commit:
            db.session.commit()
        return new_quantity

    if commit:
        return run_with_retry(_op)
    return _op()


def search_items(query: str | None) -> list[InventoryItem]:
    """Case-insensitive substring search over name and description."""
    if query is None or not str(query).strip():
        raise ValidationError("search query is required")

    pattern = f"%{str(query).strip()}%"
    return (
        db.session.query(InventoryItem)
        .filter(or_(InventoryItem.name.ilike(pattern), InventoryItem.description.ilike(pattern)))
        .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        .all()
    )


def list_items(
    page=None,
    limit=None,
    *,
    category: str | None = None,
    search: str | None = None,
    low_stock: bool | None = None,
) -> dict:
    """Paged listing, newest first, with optional category/search/low-stock filters."""
    query = db.session.query(InventoryItem)

    if category:
        query = query.filter(func.lower(InventoryItem.category) == category.strip().lower())
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(InventoryItem.name.ilike(pattern), InventoryItem.description.ilike(pattern)))
    if low_stock is not None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
        if low_stock:
            query = query.filter(InventoryItem.quantity < threshold)
        else:
            query = query.filter(InventoryItem.quantity >= threshold)

    query = query.order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
    return paginate(query, page, limit, lambda item: item.to_dict())


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    if not current_app.config.get("UNIQUE_ITEM_NAMES", True):
        return
    existing = find_item_by_name(name)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(
            f"An item named '{existing.name}' already exists",
            details={"item_id": existing.id},
        )


def create_item(payload: dict, created_by: str | None = None) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)

    def _op():
        _ensure_unique_name(patch["name"])
        item = InventoryItem(created_by=created_by, **patch)
        db.session.add(item)
        db.session.commit()
        return item

    item = run_with_retry(_op)
    current_app.logger.info("Created inventory item %s (%s)", item.id, item.name)
    return item


def update_item(item_id: int, payload: dict) -> InventoryItem:
    """
    Edit item master data.

    Setting quantity here is a stock correction by hand; sales never use it.
    """
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)

    def _op():
        item = get_item(item_id)
        if "name" in patch:
            _ensure_unique_name(patch["name"], exclude_id=item.id)

        for key, value in patch.items():
            setattr(item, key, value)

        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(item_id: int) -> None:
    """Delete an item; sale lines keep their frozen name and price."""
    def _op():
        item = get_item(item_id)
        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Deleted inventory item %s", item_id)


def low_stock_items(threshold: int | None = None) -> list[InventoryItem]:
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.quantity < threshold)
        .order_by(InventoryItem.quantity.asc(), InventoryItem.name.asc())
        .all()
    )
