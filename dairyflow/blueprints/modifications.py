from flask import Blueprint, jsonify, request

from dairyflow.services import catalog
from dairyflow.utils.responses import arg_date, bad_request, json_payload, respond

modifications_bp = Blueprint("modifications", __name__, url_prefix="/modifications")


@modifications_bp.route("", methods=["GET"])
def list_modifications():
    rows = catalog.list_modifications(
        customer_id=request.args.get("customer_id", type=int),
        active_only=request.args.get("active") == "1",
        on_date=arg_date("date"),
    )
    return jsonify(success=True, data=[m.to_dict() for m in rows])


@modifications_bp.route("", methods=["POST"])
def create():
    return respond(catalog.create_modification(json_payload()), 201)


@modifications_bp.route("/bulk", methods=["POST"])
def bulk_create():
    data = json_payload()
    customer_ids = data.pop("customer_ids", None)
    if not isinstance(customer_ids, list):
        return bad_request("customer_ids must be a list")
    result = catalog.create_bulk_modifications(customer_ids, data)
    if "processed" in result:
        return jsonify(result), 200
    return respond(result)


@modifications_bp.route("/<int:modification_id>", methods=["PUT", "PATCH"])
def update(modification_id):
    return respond(catalog.update_modification(modification_id, json_payload()))


@modifications_bp.route("/<int:modification_id>/toggle", methods=["POST"])
def toggle(modification_id):
    return respond(catalog.toggle_modification(modification_id))


@modifications_bp.route("/<int:modification_id>", methods=["DELETE"])
def delete(modification_id):
    return respond(catalog.delete_modification(modification_id))
