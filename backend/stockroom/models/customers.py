from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data referenced by sales.

    Sales hold only a weak reference plus the name frozen at commit time, so
    a customer can be edited or deleted without touching sale history.
    (name, mobile) uniqueness is enforced in customer_service when
    UNIQUE_CUSTOMER_CONTACT is on.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name_mobile", "name", "mobile"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    address = db.Column(db.String(512), nullable=False)
    mobile = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "mobile": self.mobile,
            "email": self.email,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
