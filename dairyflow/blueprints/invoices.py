from flask import Blueprint, jsonify, request

from dairyflow.extensions import config_limit, db, limiter
from dairyflow.models.invoice import Invoice
from dairyflow.services import invoices
from dairyflow.utils.helpers import parse_date
from dairyflow.utils.responses import arg_date, bad_request, json_payload, respond

invoices_bp = Blueprint("invoices", __name__, url_prefix="/invoices")


@invoices_bp.route("", methods=["GET"])
def list_invoices():
    rows = invoices.list_invoices(
        customer_id=request.args.get("customer_id", type=int),
        status=request.args.get("status"),
        date_from=arg_date("date_from"),
        date_to=arg_date("date_to"),
    )
    return jsonify(success=True, data=[i.to_dict() for i in rows])


@invoices_bp.route("/<int:invoice_id>", methods=["GET"])
def detail(invoice_id):
    invoice = db.get_or_404(Invoice, invoice_id)
    data = invoice.to_dict()
    data["line_items"] = [
        {
            "line_type": l.line_type,
            "product_name": l.product_name,
            "quantity": l.quantity,
            "unit_price": l.unit_price,
            "line_total": l.line_total,
            "gst_amount": l.gst_amount,
        }
        for l in invoice.line_items
    ]
    return jsonify(success=True, invoice=data)


@invoices_bp.route("/preview", methods=["GET"])
def preview():
    start, end = arg_date("period_start"), arg_date("period_end")
    if start is None or end is None:
        return bad_request("period_start and period_end are required")
    rows = invoices.preview_bulk_invoices(
        start, end,
        customer_selection=request.args.get("customer_selection", "all"),
        selected_customer_ids=request.args.getlist("selected_customer_ids", type=int),
    )
    return jsonify(success=True, data=rows)


@invoices_bp.route("/generate", methods=["POST"])
@limiter.limit(config_limit("INVOICE_GENERATION_LIMIT"))
def generate():
    data = json_payload()
    start, end = parse_date(data.get("period_start")), parse_date(data.get("period_end"))
    if start is None or end is None:
        return bad_request("period_start and period_end are required")
    invoice_date = parse_date(data.get("invoice_date"))
    if data.get("customer_ids"):
        result = invoices.generate_bulk_invoices(data["customer_ids"], start, end, invoice_date)
        return respond(result, 201)
    if not data.get("customer_id"):
        return bad_request("customer_id is required")
    return respond(invoices.generate_invoice(data["customer_id"], start, end, invoice_date), 201)


@invoices_bp.route("/<int:invoice_id>/sent", methods=["POST"])
def mark_sent(invoice_id):
    return respond(invoices.mark_invoice_sent(invoice_id))


@invoices_bp.route("/<int:invoice_id>", methods=["DELETE"])
def delete(invoice_id):
    return respond(invoices.delete_invoice(invoice_id))


@invoices_bp.route("/bulk-delete", methods=["POST"])
def bulk_delete():
    data = json_payload()
    return respond(invoices.bulk_delete_invoices(data.get("invoice_ids"), atomic=bool(data.get("atomic"))))


@invoices_bp.route("/stats", methods=["GET"])
def stats():
    return jsonify(success=True, **invoices.invoice_stats())
