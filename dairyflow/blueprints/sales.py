from flask import Blueprint, jsonify, request

from dairyflow.services import sales
from dairyflow.utils.responses import arg_date, bad_request, json_payload, respond

sales_bp = Blueprint("sales", __name__, url_prefix="/sales")


@sales_bp.route("", methods=["GET"])
def list_sales():
    rows = sales.list_sales(
        customer_id=request.args.get("customer_id", type=int),
        sale_type=request.args.get("sale_type"),
        payment_status=request.args.get("payment_status"),
        date_from=arg_date("date_from"),
        date_to=arg_date("date_to"),
    )
    return jsonify(success=True, data=[s.to_dict() for s in rows])


@sales_bp.route("", methods=["POST"])
def create():
    return respond(sales.create_sale(json_payload()), 201)


@sales_bp.route("/bulk", methods=["POST"])
def bulk_create():
    rows = json_payload().get("sales")
    if not isinstance(rows, list):
        return bad_request("sales must be a list")
    result = sales.create_bulk_sales(rows)
    # Partial success is still a 200; per-row errors are in the body.
    if "processed" in result:
        return jsonify(result), 200
    return respond(result)


@sales_bp.route("/<int:sale_id>", methods=["DELETE"])
def delete(sale_id):
    return respond(sales.delete_sale(sale_id))


@sales_bp.route("/bulk-delete", methods=["POST"])
def bulk_delete():
    return respond(sales.bulk_delete_sales(json_payload().get("sale_ids")))


@sales_bp.route("/stats", methods=["GET"])
def stats():
    return jsonify(success=True, **sales.sales_stats(arg_date("date_from"), arg_date("date_to")))
