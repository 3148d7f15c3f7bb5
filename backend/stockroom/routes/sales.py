# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/stockroom/routes/sales.py
"""
Sales API routes

POST   /api/sales/            commit a sale (all lines reserved or none)
GET    /api/sales/            paged list, newest first
GET    /api/sales/<id>        one sale with its lines
PATCH  /api/sales/<id>        edit date / payment_method only
DELETE /api/sales/<id>        delete and return stock to inventory
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import json_body, with_actor
from ..services import sales_service
from ..validation import ValidationError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@with_actor
def create_sale_route():
    data = json_body()
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    sale = sales_service.create_sale(
        data.get("lines"),
        customer_id=data.get("customer_id"),
        payment_method=data.get("payment_method", "cash"),
        date=data.get("date"),
        created_by=g.actor,
    )
    return jsonify({"sale": sale.to_dict()}), 201


@sales_bp.get("/")
def list_sales_route():
    result = sales_service.list_sales(
        request.args.get("page"),
        request.args.get("limit"),
        start=request.args.get("start"),
        end=request.args.get("end"),
        customer_id=request.args.get("customer_id"),
    )
    return jsonify(result), 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.put("/<int:sale_id>")
@sales_bp.patch("/<int:sale_id>")
def update_sale_route(sale_id: int):
    sale = sales_service.update_sale(sale_id, json_body())
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    result = sales_service.delete_sale(sale_id)
    return jsonify(result), 200
