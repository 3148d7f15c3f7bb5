# Overview: Customer directory; identity records referenced by sales.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer
from ..errors import NotFoundError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    enforce_rules_customer,
    validate_payload,
)
from .concurrency import run_with_retry
from .pagination import paginate

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "mobile", "email"},
    required_on_create={"name", "address", "mobile"},
)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise NotFoundError("Customer", customer_id)
    return customer


def _ensure_unique_contact(name: str, mobile: str, exclude_id: int | None = None) -> None:
    """Reject a second customer with the same name and mobile number."""
    if not current_app.config.get("UNIQUE_CUSTOMER_CONTACT", True):
        return
    query = db.session.query(Customer).filter(
        func.lower(Customer.name) == name.strip().lower(),
        Customer.mobile == mobile.strip(),
    )
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    existing = query.first()
    if existing is not None:
        raise ConflictError(
            "A customer with this name and mobile number already exists",
            details={"customer_id": existing.id},
        )


def list_customers(page=None, limit=None, *, search: str | None = None) -> dict:
    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Customer.name.ilike(pattern), Customer.mobile.ilike(pattern)))
    query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
    return paginate(query, page, limit, lambda customer: customer.to_dict())


def create_customer(payload: dict, created_by: str | None = None) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    def _op():
        _ensure_unique_contact(patch["name"], patch["mobile"])
        customer = Customer(created_by=created_by, **patch)
        db.session.add(customer)
        db.session.commit()
        return customer

    customer = run_with_retry(_op)
    current_app.logger.info("Created customer %s", customer.id)
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)

    def _op():
        customer = get_customer(customer_id)
        if "name" in patch or "mobile" in patch:
            _ensure_unique_contact(
                patch.get("name", customer.name),
                patch.get("mobile", customer.mobile),
                exclude_id=customer.id,
            )
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(customer_id: int) -> None:
    """
    Delete a customer record.

    Their sales stay: the weak reference is cleared and the name frozen at
    commit keeps identifying the buyer.
    """
    def _op():
        customer = get_customer(customer_id)
        for sale in customer.sales:
            sale.customer_id = None
        db.session.delete(customer)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Deleted customer %s", customer_id)
