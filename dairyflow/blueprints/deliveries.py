from datetime import datetime

from flask import Blueprint, jsonify

from dairyflow.services import deliveries
from dairyflow.utils.dates import business_today
from dairyflow.utils.helpers import parse_date
from dairyflow.utils.responses import arg_date, bad_request, json_payload, respond

deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/deliveries")


@deliveries_bp.route("/confirm", methods=["POST"])
def confirm():
    data = json_payload()
    delivered_at = None
    if data.get("delivered_at"):
        try:
            delivered_at = datetime.fromisoformat(data["delivered_at"])
        except ValueError:
            return bad_request("delivered_at must be an ISO timestamp")
    result = deliveries.confirm_deliveries(
        data.get("order_ids"),
        custom_quantities=data.get("custom_quantities"),
        delivery_person=data.get("delivery_person"),
        notes=data.get("delivery_notes"),
        delivered_at=delivered_at,
    )
    return respond(result, 201)


@deliveries_bp.route("/additional", methods=["POST"])
def additional():
    data = json_payload()
    if not data.get("customer_id") or not data.get("product_id"):
        return bad_request("customer_id and product_id are required")
    try:
        quantity = float(data.get("quantity", 0))
        unit_price = float(data["unit_price"]) if data.get("unit_price") is not None else None
    except (TypeError, ValueError):
        return bad_request("quantity and unit_price must be numbers")
    result = deliveries.create_additional_delivery(
        data["customer_id"],
        data["product_id"],
        quantity,
        parse_date(data.get("order_date"), business_today()),
        unit_price=unit_price,
        delivery_person=data.get("delivery_person"),
        notes=data.get("delivery_notes"),
    )
    return respond(result, 201)


@deliveries_bp.route("/<int:delivery_id>", methods=["DELETE"])
def delete(delivery_id):
    return respond(deliveries.delete_delivery(delivery_id))


@deliveries_bp.route("/stats", methods=["GET"])
def stats():
    return jsonify(success=True, **deliveries.delivery_stats(arg_date("date")))
