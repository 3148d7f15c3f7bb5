from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..extensions import db
from stockroom.time_utils import to_utc_z

CASH_SALE_LABEL = "Cash Sale"


@dataclass(frozen=True)
class CustomerSale:
    customer_id: int | None
    name: str

    is_cash_sale = False


@dataclass(frozen=True)
class CashSale:
    name: str = CASH_SALE_LABEL

    customer_id = None
    is_cash_sale = True


Buyer = Union[CustomerSale, CashSale]


class Sale(db.Model):
    """
    Immutable sale record.

    Created only by sales_service.create_sale, after every line has been
    reserved against inventory. Lines, quantities, customer and totals never
    change afterwards; only date and payment_method may be edited.

    customer_name is frozen at commit ("Cash Sale" when there is no
    customer). customer_id is a weak reference and becomes NULL if the
    customer is deleted; the sale still reports as a customer sale.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_amount_cents >= 0", name="ck_sales_total_nonneg"),
        db.Index("ix_sales_customer_date", "customer_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Business time of the sale (UTC-naive); defaults to commit time
    date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    customer_id = db.Column(
        db.Integer,
        db.ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    customer_name = db.Column(db.String(255), nullable=False, default=CASH_SALE_LABEL)
    is_cash_sale = db.Column(db.Boolean, nullable=False, default=True)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")

    # Sum of line totals, computed once at commit
    total_amount_cents = db.Column(db.Integer, nullable=False)

    created_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True, passive_deletes=True))
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def buyer(self) -> Buyer:
        if self.is_cash_sale:
            return CashSale()
        return CustomerSale(customer_id=self.customer_id, name=self.customer_name)

    @property
    def units(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "date": to_utc_z(self.date),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "is_cash_sale": self.is_cash_sale,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "item_count": len(self.lines),
            "units": self.units,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """One priced line of a sale; owned by the sale, never shared."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sale_lines_quantity_pos"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sale_lines_price_nonneg"),
        db.UniqueConstraint("sale_id", "position", name="uq_sale_lines_sale_position"),
        db.Index("ix_sale_lines_item", "item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)

    # Submission order within the sale
    position = db.Column(db.Integer, nullable=False)

    # Weak reference; the frozen fields below survive item edits and deletion
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "position": self.position,
            "item_id": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
