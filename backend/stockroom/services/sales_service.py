"""
Sales Service - sale commit, reversal and edits

Commit protocol (create_sale):
    RECEIVED -> VALIDATING -> RESERVING -> PRICING -> PERSISTING -> COMMITTED
    failure exits: REJECTED (validation / reservation), ABORTED (anything else)

- Nothing is mutated until every line and the customer have been validated.
  Ids and quantities outside the storage integer range are rejected here.
- Lines are reserved strictly in submission order through the ledger's
  conditional decrement. Each success pushes an undo entry; on the first
  failure the undo list is replayed in reverse and the whole sale fails with
  the offending line identified.
- Name and unit price are frozen from the reserved row; the total is
  computed once here and never again from live inventory.
- Whatever fails after the first reservation, storage or otherwise, all
  reservations are compensated before the error reaches the caller. The
  commit state is final before compensation starts.

Reversal (delete_sale) restores every line and removes the record inside one
database transaction: either all of it happens or none of it does.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleLine, CashSale, CustomerSale
from ..errors import (
    AppError,
    InsufficientStockError,
    NotFoundError,
    StorageError,
    with_line,
)
from ..time_utils import parse_iso_datetime, parse_range_end, utcnow
from ..validation import (
    ValidationError,
    coerce_datetime,
    coerce_bounded_int,
    coerce_payment_method,
)
from .concurrency import lock_for_update, run_with_retry
from .customer_service import get_customer
from .inventory_service import Reservation, reserve_and_decrement, restore
from .pagination import paginate

# Post-commit edits are limited to non-financial metadata
SALE_MUTABLE_FIELDS = {"date", "payment_method"}


class CommitState(str, Enum):
    RECEIVED = "RECEIVED"
    VALIDATING = "VALIDATING"
    RESERVING = "RESERVING"
    PRICING = "PRICING"
    PERSISTING = "PERSISTING"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class LineRequest:
    item_id: int
    quantity: int


@dataclass
class SaleCommit:
    """In-flight state of one create_sale call, including its undo list."""

    state: CommitState = CommitState.RECEIVED
    reservations: list[Reservation] = field(default_factory=list)

    def advance(self, state: CommitState) -> None:
        current_app.logger.debug("Sale commit %s -> %s", self.state.value, state.value)
        self.state = state


def _validate_lines(lines) -> list[LineRequest]:
    """Reject the whole request if any line is malformed; no partial lines."""
    if not isinstance(lines, (list, tuple)) or not lines:
        raise ValidationError("A sale requires at least one line")

    requests = []
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError(f"Line {index} must be an object", details={"line": index})
        try:
            if line.get("item_id") is None:
                raise ValidationError("item_id is required")
            item_id = coerce_bounded_int(line["item_id"], "item_id")
            if line.get("quantity") is None:
                raise ValidationError("quantity is required")
            quantity = coerce_bounded_int(line["quantity"], "quantity")
            if quantity < 1:
                raise ValidationError("quantity must be a positive integer")
        except ValidationError as exc:
            raise ValidationError(
                f"Line {index}: {exc.message}",
                details={"line": index, "item_id": line.get("item_id")},
            ) from exc
        requests.append(LineRequest(item_id=item_id, quantity=quantity))
    return requests


def _resolve_buyer(customer_id) -> CashSale | CustomerSale:
    """
    Map the optional customer id onto the customer-or-cash variant.

    A supplied id that does not resolve is a hard NotFoundError; it never
    degrades into a cash sale.
    """
    if customer_id in (None, ""):
        return CashSale()
    customer = get_customer(coerce_bounded_int(customer_id, "customer_id"))
    return CustomerSale(customer_id=customer.id, name=customer.name)


def _compensate(commit: SaleCommit) -> None:
    """
    Replay the undo list in reverse order.

    Every entry is attempted even if an earlier one fails; any that could not
    be restored are reported in the raised StorageError.
    """
    unrestored = []
    for reservation in reversed(commit.reservations):
        try:
            restore(reservation.item_id, reservation.quantity, missing_ok=True)
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "Compensation failed: %d unit(s) of item %s not restored",
                reservation.quantity,
                reservation.item_id,
            )
            unrestored.append({"item_id": reservation.item_id, "quantity": reservation.quantity})
        else:
            current_app.logger.info(
                "Compensated reservation: %d unit(s) returned to item %s",
                reservation.quantity,
                reservation.item_id,
            )
    commit.reservations.clear()

    if unrestored:
        raise StorageError(
            "Sale failed and some reserved stock could not be returned",
            details={"unrestored": unrestored},
            retryable=False,
        )


def _build_sale(
    commit: SaleCommit,
    *,
    buyer: CashSale | CustomerSale,
    payment_method: str,
    date,
    created_by: str | None,
) -> Sale:
    sale = Sale(
        date=date,
        customer_id=buyer.customer_id,
        customer_name=buyer.name,
        is_cash_sale=buyer.is_cash_sale,
        payment_method=payment_method,
        created_by=created_by,
    )

    total_cents = 0
    for position, reservation in enumerate(commit.reservations):
        subtotal = reservation.quantity * reservation.unit_price_cents
        total_cents += subtotal
        sale.lines.append(
            SaleLine(
                position=position,
                item_id=reservation.item_id,
                name=reservation.name,
                quantity=reservation.quantity,
                unit_price_cents=reservation.unit_price_cents,
                line_total_cents=subtotal,
            )
        )

    sale.total_amount_cents = total_cents
    return sale


def _persist_sale(sale: Sale) -> None:
    db.session.add(sale)
    db.session.commit()


def create_sale(
    lines,
    customer_id=None,
    payment_method="cash",
    date=None,
    created_by: str | None = None,
) -> Sale:
    """
    Commit a sale: reserve every line, price it, and write the record.

    Either the sale is fully committed with all its stock taken, or every
    reservation made on its behalf has been returned before the error is
    raised. Errors from reservation carry details["line"].
    """
    commit = SaleCommit()

    commit.advance(CommitState.VALIDATING)
    try:
        requests = _validate_lines(lines)
        method = coerce_payment_method(payment_method)
        sale_date = utcnow() if date in (None, "") else coerce_datetime(date, "date")
        buyer = _resolve_buyer(customer_id)
    except AppError:
        commit.advance(CommitState.REJECTED)
        raise

    commit.advance(CommitState.RESERVING)
    for index, request in enumerate(requests):
        try:
            reservation = reserve_and_decrement(request.item_id, request.quantity)
        except (NotFoundError, InsufficientStockError) as exc:
            current_app.logger.info("Sale rejected at line %d: %s", index, exc.message)
            commit.advance(CommitState.REJECTED)
            _compensate(commit)
            raise with_line(exc, index)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Storage failure reserving line %d", index)
            commit.advance(CommitState.ABORTED)
            _compensate(commit)
            raise StorageError(
                "Sale could not be recorded; no stock was taken",
                details={"line": index},
            ) from exc
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Unexpected failure reserving line %d; compensating", index)
            commit.advance(CommitState.ABORTED)
            _compensate(commit)
            raise
        commit.reservations.append(reservation)

    commit.advance(CommitState.PRICING)
    sale = _build_sale(
        commit,
        buyer=buyer,
        payment_method=method,
        date=sale_date,
        created_by=created_by,
    )

    commit.advance(CommitState.PERSISTING)
    try:
        _persist_sale(sale)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Storage failure persisting sale; compensating reservations")
        commit.advance(CommitState.ABORTED)
        _compensate(commit)
        raise StorageError("Sale could not be recorded; no stock was taken") from exc
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Unexpected failure persisting sale; compensating reservations")
        commit.advance(CommitState.ABORTED)
        _compensate(commit)
        raise

    commit.advance(CommitState.COMMITTED)
    current_app.logger.info(
        "Sale %s committed: %d line(s), total %d cents (%s)",
        sale.id,
        len(sale.lines),
        sale.total_amount_cents,
        sale.customer_name,
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if sale is None:
        raise NotFoundError("Sale", sale_id)
    return sale


def list_sales(
    page=None,
    limit=None,
    *,
    start: str | None = None,
    end: str | None = None,
    customer_id=None,
) -> dict:
    """Paged sales, newest first, optionally within a date range or for one customer."""
    query = db.session.query(Sale)

    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_range_end(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")

    if start_dt:
        query = query.filter(Sale.date >= start_dt)
    if end_dt:
        query = query.filter(Sale.date <= end_dt)
    if customer_id not in (None, ""):
        query = query.filter(Sale.customer_id == coerce_bounded_int(customer_id, "customer_id"))

    query = query.order_by(Sale.date.desc(), Sale.id.desc())
    return paginate(query, page, limit, lambda sale: sale.to_dict(include_lines=False))


def update_sale(sale_id: int, patch: dict) -> Sale:
    """
    Edit the date or payment method of a committed sale.

    Any other field (lines, quantities, customer, totals) is rejected rather
    than ignored; those were fixed when stock was reserved.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")

    rejected = sorted(set(patch) - SALE_MUTABLE_FIELDS)
    if rejected:
        raise ValidationError(
            "Only date and payment_method can be changed on a committed sale",
            details={"rejected_fields": rejected},
        )

    changes = {}
    if "date" in patch:
        if patch["date"] in (None, ""):
            raise ValidationError("date cannot be null")
        changes["date"] = coerce_datetime(patch["date"], "date")
    if "payment_method" in patch:
        changes["payment_method"] = coerce_payment_method(patch["payment_method"])

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale", sale_id)
        for key, value in changes.items():
            setattr(sale, key, value)
        db.session.commit()
        return sale

    try:
        return run_with_retry(_op)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError("Sale could not be updated") from exc


def delete_sale(sale_id: int) -> dict:
    """
    Delete a sale and return its stock to inventory.

    Restores and removal share one transaction, retried as a unit on
    transient errors. Lines whose item has since been deleted restore
    nothing. If the unit ultimately fails, the sale is left intact and no
    item is restored.
    """
    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale", sale_id)

        restored = []
        skipped = []
        for line in sale.lines:
            new_quantity = None
            if line.item_id is not None:
                new_quantity = restore(line.item_id, line.quantity, missing_ok=True, commit=False)
            entry = {"item_id": line.item_id, "name": line.name, "quantity": line.quantity}
            if new_quantity is None:
                skipped.append(entry)
            else:
                restored.append(entry)

        db.session.delete(sale)
        db.session.commit()
        return {"id": sale_id, "restored": restored, "skipped": skipped}

    try:
        result = run_with_retry(_op)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete sale %s; sale left intact", sale_id)
        raise StorageError("Sale could not be deleted; no stock was restored") from exc

    current_app.logger.info(
        "Sale %s deleted: %d line(s) restored, %d skipped",
        sale_id,
        len(result["restored"]),
        len(result["skipped"]),
    )
    return result
