from flask import Blueprint, jsonify, request

from dairyflow.forms.payment_form import PaymentForm
from dairyflow.services import allocation, outstanding
from dairyflow.services.errors import DairyFlowError
from dairyflow.utils.helpers import form_errors, to_formdata
from dairyflow.utils.responses import arg_date, bad_request, json_payload, respond

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


@payments_bp.route("", methods=["GET"])
def list_payments():
    rows = allocation.list_payments(
        customer_id=request.args.get("customer_id", type=int),
        date_from=arg_date("date_from"),
        date_to=arg_date("date_to"),
    )
    return jsonify(success=True, data=[p.to_dict() for p in rows])


@payments_bp.route("/allocation-items/<int:customer_id>", methods=["GET"])
def allocation_items(customer_id):
    try:
        items = allocation.load_allocation_items(customer_id)
    except DairyFlowError as exc:
        return respond({"success": False, "error": exc.message, "error_type": exc.error_type})
    return jsonify(success=True, items=[i.to_dict() for i in items])


@payments_bp.route("/auto-allocate", methods=["POST"])
def auto_allocate():
    """Suggested split for a payment amount; nothing is saved."""
    data = json_payload()
    try:
        amount = float(data.get("amount", 0))
    except (TypeError, ValueError):
        return bad_request("amount must be a number")
    if amount <= 0:
        return bad_request("Payment amount must be positive")
    try:
        items = allocation.auto_allocate(allocation.load_allocation_items(data.get("customer_id")), amount)
    except DairyFlowError as exc:
        return respond({"success": False, "error": exc.message, "error_type": exc.error_type})
    return jsonify(
        success=True,
        items=[i.to_dict() for i in items],
        summary=allocation.summarize(items, amount),
    )


@payments_bp.route("", methods=["POST"])
def create():
    data = json_payload()
    form = PaymentForm(formdata=to_formdata(data), meta={"csrf": False})
    if not form.validate():
        return jsonify(success=False, error=form_errors(form), fields=form.errors), 400
    result = allocation.record_payment(
        form.customer_id.data,
        float(form.amount.data),
        form.payment_date.data,
        form.payment_method.data,
        form.period_start.data,
        form.period_end.data,
        form.notes.data,
        allocations=data.get("allocations"),
        auto_allocate=bool(data.get("auto_allocate")),
    )
    return respond(result, 201)


@payments_bp.route("/bulk", methods=["POST"])
def bulk_create():
    rows = json_payload().get("payments")
    if not isinstance(rows, list):
        return bad_request("payments must be a list")
    result = allocation.create_bulk_payments(rows)
    if "processed" in result:
        return jsonify(result), 200
    return respond(result)


@payments_bp.route("/<int:payment_id>/allocate", methods=["POST"])
def allocate(payment_id):
    return respond(allocation.allocate_unapplied(payment_id, json_payload().get("allocations")))


@payments_bp.route("/<int:payment_id>", methods=["DELETE"])
def delete(payment_id):
    return respond(allocation.delete_payment(payment_id))


@payments_bp.route("/unapplied", methods=["GET"])
def unapplied():
    customer_id = request.args.get("customer_id", type=int)
    return jsonify(
        success=True,
        data=outstanding.unapplied_payments(customer_id),
        stats=outstanding.unapplied_payment_stats(),
    )
