from flask import Blueprint, jsonify, request

from dairyflow.services import catalog
from dairyflow.services.errors import DairyFlowError
from dairyflow.utils.responses import json_payload, respond

subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/subscriptions")


@subscriptions_bp.route("", methods=["GET"])
def list_subscriptions():
    rows = catalog.list_subscriptions(customer_id=request.args.get("customer_id", type=int))
    return jsonify(success=True, data=[s.to_dict() for s in rows])


@subscriptions_bp.route("", methods=["POST"])
def create():
    return respond(catalog.create_subscription(json_payload()), 201)


@subscriptions_bp.route("/<int:subscription_id>", methods=["PUT", "PATCH"])
def update(subscription_id):
    return respond(catalog.update_subscription(subscription_id, json_payload()))


@subscriptions_bp.route("/<int:subscription_id>/toggle", methods=["POST"])
def toggle(subscription_id):
    return respond(catalog.toggle_subscription(subscription_id))


@subscriptions_bp.route("/<int:subscription_id>", methods=["DELETE"])
def delete(subscription_id):
    return respond(catalog.delete_subscription(subscription_id))


@subscriptions_bp.route("/<int:subscription_id>/preview", methods=["GET"])
def preview(subscription_id):
    days = min(request.args.get("days", 14, type=int), 62)
    try:
        rows = catalog.subscription_preview(subscription_id, days)
    except DairyFlowError as exc:
        return respond({"success": False, "error": exc.message, "error_type": exc.error_type})
    return jsonify(success=True, data=rows)
