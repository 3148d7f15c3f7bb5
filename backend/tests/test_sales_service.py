# Overview: Pytest coverage for sale commit, reversal and edits.

"""
Sale Commit Protocol Tests

Proves that a sale either commits completely (every line reserved, record
written) or leaves stock exactly as it found it, and that deleting a sale
returns exactly what it took.

Test Coverage:
- Single-item oversell is refused and reported per item
- Multi-line rollback restores earlier lines in reverse order
- Storage or unexpected failure compensates all reservations
- Out-of-range quantities and ids are rejected before any mutation
- Deleting a sale removes it from revenue totals
- Delete restores stock, including when an item was deleted meanwhile
- Price and name are frozen at commit
- Only date and payment_method are editable afterwards
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from stockroom.errors import (
    InsufficientStockError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from stockroom.models import CASH_SALE_LABEL, CashSale, CustomerSale, Sale
from stockroom.services import customer_service, inventory_service, reporting_service, sales_service


def _sale_count(db_session) -> int:
    return db_session.query(Sale).count()


class TestCreateSale:
    """Happy-path commits."""

    def test_cash_sale_commits_and_takes_stock(self, db_session, make_item, stock_of):
        widget = make_item(name="Widget", quantity=5, price_cents=500)

        sale = sales_service.create_sale([{"item_id": widget.id, "quantity": 3}], created_by="clerk-1")

        assert sale.id is not None
        assert sale.customer_name == CASH_SALE_LABEL
        assert sale.customer_id is None
        assert sale.buyer == CashSale()
        assert sale.payment_method == "cash"
        assert sale.total_amount_cents == 1500
        assert sale.created_by == "clerk-1"
        assert stock_of(widget.id) == 2

    def test_customer_sale_freezes_customer_name(self, make_item, make_customer):
        widget = make_item(quantity=5)
        customer = make_customer(name="Ada Lovelace")

        sale = sales_service.create_sale(
            [{"item_id": widget.id, "quantity": 1}],
            customer_id=customer.id,
            payment_method="credit",
        )

        assert sale.customer_id == customer.id
        assert sale.customer_name == "Ada Lovelace"
        assert sale.is_cash_sale is False
        assert sale.buyer == CustomerSale(customer_id=customer.id, name="Ada Lovelace")
        assert sale.payment_method == "credit"

    def test_total_is_sum_of_line_totals(self, make_item):
        a = make_item(name="A", quantity=10, price_cents=199)
        b = make_item(name="B", quantity=10, price_cents=2500)
        c = make_item(name="C", quantity=10, price_cents=1)

        sale = sales_service.create_sale([
            {"item_id": a.id, "quantity": 3},
            {"item_id": b.id, "quantity": 2},
            {"item_id": c.id, "quantity": 7},
        ])

        assert [line.line_total_cents for line in sale.lines] == [597, 5000, 7]
        assert sale.total_amount_cents == sum(line.line_total_cents for line in sale.lines) == 5604
        assert [line.position for line in sale.lines] == [0, 1, 2]
        assert sale.units == 12

    def test_same_item_on_two_lines(self, make_item, stock_of):
        widget = make_item(quantity=5, price_cents=100)

        sale = sales_service.create_sale([
            {"item_id": widget.id, "quantity": 2},
            {"item_id": widget.id, "quantity": 3},
        ])

        assert sale.total_amount_cents == 500
        assert stock_of(widget.id) == 0

    def test_explicit_date_is_kept(self, make_item):
        widget = make_item(quantity=5)
        sale = sales_service.create_sale(
            [{"item_id": widget.id, "quantity": 1}],
            date="2026-03-01T10:30:00Z",
        )
        assert sale.date == datetime(2026, 3, 1, 10, 30)


class TestCreateSaleRejections:
    """Failures leave stock and sales untouched."""

    def test_widget_scenario(self, db_session, make_item, stock_of):
        """Stock 5: sale of 3 succeeds, second sale of 3 fails, delete restores 5."""
        widget = make_item(name="Widget", quantity=5, price_cents=500)

        first = sales_service.create_sale([{"item_id": widget.id, "quantity": 3}])
        assert stock_of(widget.id) == 2

        with pytest.raises(InsufficientStockError) as excinfo:
            sales_service.create_sale([{"item_id": widget.id, "quantity": 3}])
        assert excinfo.value.available == 2
        assert excinfo.value.requested == 3
        assert excinfo.value.details["line"] == 0
        assert stock_of(widget.id) == 2
        assert _sale_count(db_session) == 1

        sales_service.delete_sale(first.id)
        assert stock_of(widget.id) == 5
        assert _sale_count(db_session) == 0

    def test_multi_line_rollback(self, db_session, make_item, stock_of):
        """Second line fails: the first line's reservation is returned."""
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=1)

        with pytest.raises(InsufficientStockError) as excinfo:
            sales_service.create_sale([
                {"item_id": x.id, "quantity": 4},
                {"item_id": y.id, "quantity": 2},
            ])

        assert excinfo.value.item_id == y.id
        assert excinfo.value.details["line"] == 1
        assert stock_of(x.id) == 10
        assert stock_of(y.id) == 1
        assert _sale_count(db_session) == 0

    def test_unknown_item_rolls_back_earlier_lines(self, db_session, make_item, stock_of):
        x = make_item(name="X", quantity=10)

        with pytest.raises(NotFoundError) as excinfo:
            sales_service.create_sale([
                {"item_id": x.id, "quantity": 4},
                {"item_id": 99999, "quantity": 1},
            ])

        assert excinfo.value.details["line"] == 1
        assert stock_of(x.id) == 10
        assert _sale_count(db_session) == 0

    def test_quantity_beyond_storage_range_rejected(self, db_session, make_item, stock_of):
        """A quantity too large for an integer column never reaches the ledger."""
        a = make_item(name="A", quantity=10)
        b = make_item(name="B", quantity=5)

        with pytest.raises(ValidationError) as excinfo:
            sales_service.create_sale([
                {"item_id": a.id, "quantity": 2},
                {"item_id": b.id, "quantity": 10**20},
            ])

        assert excinfo.value.details["line"] == 1
        assert stock_of(a.id) == 10
        assert stock_of(b.id) == 5
        assert _sale_count(db_session) == 0

    def test_item_id_beyond_storage_range_rejected(self, db_session, make_item, stock_of):
        a = make_item(name="A", quantity=10)

        with pytest.raises(ValidationError):
            sales_service.create_sale([
                {"item_id": a.id, "quantity": 2},
                {"item_id": str(10**20), "quantity": 1},
            ])

        assert stock_of(a.id) == 10

    def test_customer_id_beyond_storage_range_rejected(self, make_item, stock_of):
        a = make_item(name="A", quantity=10)
        with pytest.raises(ValidationError):
            sales_service.create_sale([{"item_id": a.id, "quantity": 1}], customer_id=10**20)
        assert stock_of(a.id) == 10

    @pytest.mark.parametrize("lines", [
        [],
        None,
        [{"item_id": 1}],
        [{"quantity": 1}],
        [{"item_id": 1, "quantity": 0}],
        [{"item_id": 1, "quantity": -2}],
        [{"item_id": 1, "quantity": 1.5}],
        [{"item_id": 1, "quantity": "2.5"}],
        [{"item_id": 1, "quantity": True}],
        ["not-a-line"],
    ])
    def test_malformed_lines_rejected_before_any_mutation(self, db_session, make_item, stock_of, lines):
        widget = make_item(quantity=5)
        request = [{"item_id": widget.id, "quantity": 1}] + lines if lines else lines

        with pytest.raises(ValidationError):
            sales_service.create_sale(request)

        assert stock_of(widget.id) == 5
        assert _sale_count(db_session) == 0

    def test_malformed_line_names_its_index(self, make_item):
        widget = make_item(quantity=5)
        with pytest.raises(ValidationError) as excinfo:
            sales_service.create_sale([
                {"item_id": widget.id, "quantity": 1},
                {"item_id": widget.id, "quantity": 0},
            ])
        assert excinfo.value.details["line"] == 1

    def test_unknown_payment_method_rejected(self, make_item, stock_of):
        widget = make_item(quantity=5)
        with pytest.raises(ValidationError):
            sales_service.create_sale([{"item_id": widget.id, "quantity": 1}], payment_method="barter")
        assert stock_of(widget.id) == 5

    def test_unknown_customer_is_hard_error(self, db_session, make_item, stock_of):
        widget = make_item(quantity=5)
        with pytest.raises(NotFoundError) as excinfo:
            sales_service.create_sale([{"item_id": widget.id, "quantity": 1}], customer_id=99999)
        assert excinfo.value.entity == "Customer"
        assert stock_of(widget.id) == 5
        assert _sale_count(db_session) == 0


class TestStorageFailure:
    """The record cannot be written: every reservation is compensated."""

    def test_persist_failure_compensates(self, db_session, make_item, stock_of, monkeypatch):
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=4)

        def boom(sale):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(sales_service, "_persist_sale", boom)

        with pytest.raises(StorageError) as excinfo:
            sales_service.create_sale([
                {"item_id": x.id, "quantity": 3},
                {"item_id": y.id, "quantity": 4},
            ])

        assert excinfo.value.retryable is True
        assert stock_of(x.id) == 10
        assert stock_of(y.id) == 4
        assert _sale_count(db_session) == 0

    def test_reservation_storage_error_compensates_earlier_lines(self, db_session, make_item, stock_of, monkeypatch):
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=10)
        real_reserve = sales_service.reserve_and_decrement

        def flaky(item_id, quantity, **kwargs):
            if item_id == y.id:
                raise OperationalError("UPDATE inventory_items", {}, Exception("database is locked"))
            return real_reserve(item_id, quantity, **kwargs)

        monkeypatch.setattr(sales_service, "reserve_and_decrement", flaky)

        with pytest.raises(StorageError) as excinfo:
            sales_service.create_sale([
                {"item_id": x.id, "quantity": 2},
                {"item_id": y.id, "quantity": 1},
            ])

        assert excinfo.value.details["line"] == 1
        assert stock_of(x.id) == 10
        assert stock_of(y.id) == 10
        assert _sale_count(db_session) == 0

    def test_unexpected_reservation_error_compensates(self, db_session, make_item, stock_of, monkeypatch):
        """A driver error SQLAlchemy does not wrap still returns earlier lines."""
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=5)
        real_reserve = sales_service.reserve_and_decrement

        def overflowing(item_id, quantity, **kwargs):
            if item_id == y.id:
                raise OverflowError("Python int too large to convert to SQLite INTEGER")
            return real_reserve(item_id, quantity, **kwargs)

        monkeypatch.setattr(sales_service, "reserve_and_decrement", overflowing)

        with pytest.raises(OverflowError):
            sales_service.create_sale([
                {"item_id": x.id, "quantity": 2},
                {"item_id": y.id, "quantity": 1},
            ])

        assert stock_of(x.id) == 10
        assert stock_of(y.id) == 5
        assert _sale_count(db_session) == 0

    def test_unexpected_persist_error_compensates(self, db_session, make_item, stock_of, monkeypatch):
        x = make_item(name="X", quantity=10)

        def boom(sale):
            raise RuntimeError("serializer exploded")

        monkeypatch.setattr(sales_service, "_persist_sale", boom)

        with pytest.raises(RuntimeError):
            sales_service.create_sale([{"item_id": x.id, "quantity": 3}])

        assert stock_of(x.id) == 10
        assert _sale_count(db_session) == 0

    def test_failed_compensation_still_finalizes_commit_state(self, db_session, make_item, stock_of, monkeypatch):
        """Even when stock cannot be returned, the commit ends REJECTED and names what is missing."""
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=1)
        states = []
        real_advance = sales_service.SaleCommit.advance

        def recording(self, state):
            states.append(state)
            real_advance(self, state)

        def failing_restore(item_id, quantity, **kwargs):
            raise OperationalError("UPDATE inventory_items", {}, Exception("database is locked"))

        monkeypatch.setattr(sales_service.SaleCommit, "advance", recording)
        monkeypatch.setattr(sales_service, "restore", failing_restore)

        with pytest.raises(StorageError) as excinfo:
            sales_service.create_sale([
                {"item_id": x.id, "quantity": 4},
                {"item_id": y.id, "quantity": 2},
            ])

        assert excinfo.value.retryable is False
        assert excinfo.value.details["unrestored"] == [{"item_id": x.id, "quantity": 4}]
        assert states[-1] == sales_service.CommitState.REJECTED
        assert stock_of(x.id) == 6
        assert _sale_count(db_session) == 0


class TestFrozenPricing:
    """Later edits to the item never alter a committed sale."""

    def test_price_and_name_frozen_at_commit(self, make_item):
        widget = make_item(name="Widget", quantity=5, price_cents=500)
        sale = sales_service.create_sale([{"item_id": widget.id, "quantity": 2}])
        sale_id = sale.id

        inventory_service.update_item(widget.id, {"price_cents": 900, "name": "Widget Pro"})

        reloaded = sales_service.get_sale(sale_id)
        line = reloaded.lines[0]
        assert line.unit_price_cents == 500
        assert line.name == "Widget"
        assert reloaded.total_amount_cents == 1000


class TestDeleteSale:
    """Reversal returns exactly what the sale took."""

    def test_delete_restores_every_line(self, db_session, make_item, stock_of):
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=10)
        sale = sales_service.create_sale([
            {"item_id": x.id, "quantity": 4},
            {"item_id": y.id, "quantity": 6},
        ])

        result = sales_service.delete_sale(sale.id)

        assert result["id"] == sale.id
        assert len(result["restored"]) == 2
        assert result["skipped"] == []
        assert stock_of(x.id) == 10
        assert stock_of(y.id) == 10
        assert _sale_count(db_session) == 0

    def test_delete_removes_sale_from_revenue(self, db_session, make_item):
        """After deletion, revenue and sale counts drop by exactly that sale."""
        x = make_item(name="X", quantity=20, price_cents=500)
        y = make_item(name="Y", quantity=20, price_cents=1250)
        sales_service.create_sale([{"item_id": x.id, "quantity": 1}])
        doomed = sales_service.create_sale([
            {"item_id": x.id, "quantity": 2},
            {"item_id": y.id, "quantity": 3},
        ])
        doomed_id = doomed.id
        doomed_total = doomed.total_amount_cents
        assert doomed_total == 2 * 500 + 3 * 1250

        before = reporting_service.sales_report()["summary"]
        sales_service.delete_sale(doomed_id)
        after = reporting_service.sales_report()["summary"]

        assert after["total_revenue_cents"] == before["total_revenue_cents"] - doomed_total
        assert after["total_sales"] == before["total_sales"] - 1
        assert after["total_units_sold"] == before["total_units_sold"] - 5
        assert after == {"total_revenue_cents": 500, "total_sales": 1, "total_units_sold": 1}

    def test_delete_after_item_deleted(self, db_session, make_item, stock_of):
        """A line whose item no longer exists restores nothing; the rest do."""
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=10)
        sale = sales_service.create_sale([
            {"item_id": x.id, "quantity": 3},
            {"item_id": y.id, "quantity": 2},
        ])

        inventory_service.delete_item(y.id)
        result = sales_service.delete_sale(sale.id)

        assert [entry["name"] for entry in result["restored"]] == ["X"]
        assert [entry["name"] for entry in result["skipped"]] == ["Y"]
        assert stock_of(x.id) == 10
        assert _sale_count(db_session) == 0

    def test_delete_unknown_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.delete_sale(99999)

    def test_delete_storage_failure_leaves_everything(self, db_session, make_item, stock_of, monkeypatch):
        """The second restore keeps failing: the first is rolled back and the sale stays."""
        x = make_item(name="X", quantity=10)
        y = make_item(name="Y", quantity=10)
        sale = sales_service.create_sale([
            {"item_id": x.id, "quantity": 4},
            {"item_id": y.id, "quantity": 5},
        ])
        real_restore = sales_service.restore

        def flaky(item_id, quantity, **kwargs):
            if item_id == y.id:
                raise OperationalError("UPDATE inventory_items", {}, Exception("database is locked"))
            return real_restore(item_id, quantity, **kwargs)

        monkeypatch.setattr(sales_service, "restore", flaky)

        with pytest.raises(StorageError):
            sales_service.delete_sale(sale.id)

        assert stock_of(x.id) == 6
        assert stock_of(y.id) == 5
        assert _sale_count(db_session) == 1

    def test_deleting_customer_keeps_sale(self, db_session, make_item, make_customer):
        widget = make_item(quantity=5)
        customer = make_customer(name="Ada Lovelace")
        sale = sales_service.create_sale([{"item_id": widget.id, "quantity": 1}], customer_id=customer.id)
        sale_id = sale.id

        customer_service.delete_customer(customer.id)

        reloaded = sales_service.get_sale(sale_id)
        assert reloaded.customer_id is None
        assert reloaded.customer_name == "Ada Lovelace"
        assert reloaded.is_cash_sale is False


class TestUpdateSale:
    """Only non-financial metadata is editable."""

    def test_update_date_and_payment_method(self, make_item):
        widget = make_item(quantity=5)
        sale = sales_service.create_sale([{"item_id": widget.id, "quantity": 1}])

        updated = sales_service.update_sale(sale.id, {"date": "2026-01-02T03:04:05Z", "payment_method": "credit"})

        assert updated.date == datetime(2026, 1, 2, 3, 4, 5)
        assert updated.payment_method == "credit"

    @pytest.mark.parametrize("patch", [
        {"lines": []},
        {"items": [{"item_id": 1, "quantity": 9}]},
        {"customer_id": 5},
        {"total_amount_cents": 1},
        {"payment_method": "cash", "quantity": 2},
    ])
    def test_financial_fields_rejected(self, make_item, stock_of, patch):
        widget = make_item(quantity=5, price_cents=500)
        sale = sales_service.create_sale([{"item_id": widget.id, "quantity": 1}])

        with pytest.raises(ValidationError) as excinfo:
            sales_service.update_sale(sale.id, patch)

        assert excinfo.value.details["rejected_fields"]
        reloaded = sales_service.get_sale(sale.id)
        assert reloaded.total_amount_cents == 500
        assert reloaded.payment_method == "cash"
        assert stock_of(widget.id) == 4

    def test_null_date_rejected(self, make_item):
        widget = make_item(quantity=5)
        sale = sales_service.create_sale([{"item_id": widget.id, "quantity": 1}])
        with pytest.raises(ValidationError):
            sales_service.update_sale(sale.id, {"date": None})

    def test_update_unknown_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.update_sale(99999, {"payment_method": "credit"})


class TestListSales:
    def test_newest_first_with_filters(self, make_item, make_customer):
        widget = make_item(quantity=50)
        customer = make_customer()
        sales_service.create_sale([{"item_id": widget.id, "quantity": 1}], date="2026-01-01T09:00:00Z")
        sales_service.create_sale(
            [{"item_id": widget.id, "quantity": 1}],
            customer_id=customer.id,
            date="2026-01-05T09:00:00Z",
        )
        sales_service.create_sale([{"item_id": widget.id, "quantity": 1}], date="2026-02-01T09:00:00Z")

        everything = sales_service.list_sales()
        assert [row["date"] for row in everything["items"]] == [
            "2026-02-01T09:00:00Z",
            "2026-01-05T09:00:00Z",
            "2026-01-01T09:00:00Z",
        ]
        assert "lines" not in everything["items"][0]

        january = sales_service.list_sales(start="2026-01-01", end="2026-01-31")
        assert january["total"] == 2

        for_customer = sales_service.list_sales(customer_id=customer.id)
        assert for_customer["total"] == 1

    def test_bad_range_rejected(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.list_sales(start="yesterday")
