from flask import Blueprint, jsonify

from dairyflow.extensions import config_limit, limiter
from dairyflow.services import orders
from dairyflow.utils.dates import business_today
from dairyflow.utils.helpers import parse_date
from dairyflow.utils.responses import arg_date, bad_request, json_payload, respond

orders_bp = Blueprint("orders", __name__, url_prefix="/orders")


@orders_bp.route("", methods=["GET"])
def list_orders():
    order_date = arg_date("date")
    rows = [o.to_dict() for o in orders.list_daily_orders(order_date)]
    return jsonify(success=True, data=rows)


@orders_bp.route("/preview", methods=["GET"])
def preview():
    order_date = arg_date("date", business_today())
    return respond(orders.preview_daily_orders(order_date))


@orders_bp.route("/generate", methods=["POST"])
@limiter.limit(config_limit("ORDER_GENERATION_LIMIT"))
def generate():
    order_date = parse_date(json_payload().get("order_date"))
    if order_date is None:
        return bad_request("A valid order_date is required")
    return respond(orders.generate_daily_orders(order_date), 201)


@orders_bp.route("", methods=["DELETE"])
def delete():
    order_date = arg_date("date")
    if order_date is None:
        return bad_request("A valid date is required")
    return respond(orders.delete_daily_orders(order_date))
