# Overview: Typed failures shared by services and routes.

from __future__ import annotations


class AppError(Exception):
    """Base class for failures reported back to the caller."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError, ValueError):
    """400-level input problem."""

    status_code = 400


class ConflictError(AppError, ValueError):
    """409-level business rule conflict (e.g., duplicate customer)."""

    status_code = 409


class NotFoundError(AppError):
    """An item, customer, or sale id did not resolve."""

    status_code = 404

    def __init__(self, entity: str, entity_id, details: dict | None = None):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id, **(details or {})},
        )
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStockError(AppError):
    """
    Requested quantity exceeds current stock.

    An expected business outcome, not a system fault. Carries enough to tell
    the caller exactly which item failed and by how much.
    """

    status_code = 409

    def __init__(
        self,
        item_id: int,
        requested: int,
        available: int,
        name: str | None = None,
        details: dict | None = None,
    ):
        label = name or f"item {item_id}"
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            details={
                "item_id": item_id,
                "name": name,
                "requested": requested,
                "available": available,
                **(details or {}),
            },
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available
        self.name = name


class StorageError(AppError):
    """Transient storage failure; any applied reservations were compensated."""

    status_code = 503

    def __init__(self, message: str, details: dict | None = None, retryable: bool = True):
        super().__init__(message, details={"retryable": retryable, **(details or {})})
        self.retryable = retryable


def with_line(exc: AppError, line: int) -> AppError:
    """Attach the offending sale-line index to an error before re-raising."""
    exc.details["line"] = line
    return exc
