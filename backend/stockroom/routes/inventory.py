# Overview: Inventory item API routes; parses input and returns JSON responses.

"""
Inventory routes.

Stock levels change through sales (reserve/restore in the ledger). The PUT
route here is a manual correction of master data, including quantity.
Errors raised by the service are rendered by the app-level AppError handler.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import json_body, with_actor
from ..services import inventory_service
from ..validation import ValidationError

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _optional_bool(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes"}:
        return True
    if value in {"0", "false", "no"}:
        return False
    raise ValidationError(f"{name} must be true or false")


@inventory_bp.get("/")
def list_items_route():
    result = inventory_service.list_items(
        request.args.get("page"),
        request.args.get("limit"),
        category=request.args.get("category"),
        search=request.args.get("search"),
        low_stock=_optional_bool("low_stock"),
    )
    return jsonify(result), 200


@inventory_bp.get("/search")
def search_items_route():
    items = inventory_service.search_items(request.args.get("q"))
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@inventory_bp.get("/low-stock")
def low_stock_route():
    threshold = request.args.get("threshold", type=int)
    items = inventory_service.low_stock_items(threshold)
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@inventory_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    item = inventory_service.get_item(item_id)
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.post("/")
@with_actor
def create_item_route():
    item = inventory_service.create_item(json_body(), created_by=g.actor)
    return jsonify({"item": item.to_dict()}), 201


@inventory_bp.put("/<int:item_id>")
@inventory_bp.patch("/<int:item_id>")
def update_item_route(item_id: int):
    item = inventory_service.update_item(item_id, json_body())
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.delete("/<int:item_id>")
def delete_item_route(item_id: int):
    inventory_service.delete_item(item_id)
    return jsonify({"id": item_id, "deleted": True}), 200
