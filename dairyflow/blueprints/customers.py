from flask import Blueprint, jsonify, request

from dairyflow.extensions import db
from dairyflow.models.customer import Customer
from dairyflow.services import catalog, outstanding
from dairyflow.utils.responses import json_payload, respond

customers_bp = Blueprint("customers", __name__, url_prefix="/customers")


# ── List / detail ────────────────────────────────────────────────────────────

@customers_bp.route("", methods=["GET"])
def list_customers():
    rows = catalog.list_customers(
        active_only=request.args.get("active") == "1",
        search=request.args.get("q", "").strip() or None,
    )
    return jsonify(success=True, data=[c.to_dict() for c in rows])


@customers_bp.route("/<int:customer_id>", methods=["GET"])
def detail(customer_id):
    customer = db.get_or_404(Customer, customer_id)
    data = customer.to_dict()
    data["subscriptions"] = [s.to_dict() for s in customer.subscriptions]
    data["effective_opening_balance"] = customer.effective_opening_balance
    data["outstanding_check"] = outstanding.validate_outstanding(customer.id)
    return jsonify(success=True, customer=data)


# ── Create / update / delete ─────────────────────────────────────────────────

@customers_bp.route("", methods=["POST"])
def create():
    return respond(catalog.create_customer(json_payload()), 201)


@customers_bp.route("/<int:customer_id>", methods=["PUT", "PATCH"])
def update(customer_id):
    return respond(catalog.update_customer(customer_id, json_payload()))


@customers_bp.route("/<int:customer_id>", methods=["DELETE"])
def delete(customer_id):
    return respond(catalog.delete_customer(customer_id))


# ── Routes ───────────────────────────────────────────────────────────────────

@customers_bp.route("/routes", methods=["GET"])
def routes():
    return jsonify(success=True, data=[r.to_dict() for r in catalog.list_routes()])


@customers_bp.route("/routes", methods=["POST"])
def create_route():
    data = json_payload()
    return respond(
        catalog.create_route(data.get("name"), data.get("description"), data.get("personnel_name")),
        201,
    )
