# Overview: Customer directory API routes.

from flask import Blueprint, g, jsonify, request

from ..decorators import json_body, with_actor
from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/")
def list_customers_route():
    result = customer_service.list_customers(
        request.args.get("page"),
        request.args.get("limit"),
        search=request.args.get("search"),
    )
    return jsonify(result), 200


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(customer_id)
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.post("/")
@with_actor
def create_customer_route():
    customer = customer_service.create_customer(json_body(), created_by=g.actor)
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.put("/<int:customer_id>")
@customers_bp.patch("/<int:customer_id>")
def update_customer_route(customer_id: int):
    customer = customer_service.update_customer(customer_id, json_body())
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    """Sales keep the frozen customer name; only the link is cleared."""
    customer_service.delete_customer(customer_id)
    return jsonify({"id": customer_id, "deleted": True}), 200
