from flask import Blueprint, jsonify, request

from dairyflow.forms.report_form import OutstandingReportForm
from dairyflow.services import outstanding
from dairyflow.utils.helpers import form_errors
from dairyflow.utils.responses import arg_date, respond

outstanding_bp = Blueprint("outstanding", __name__, url_prefix="/outstanding")


@outstanding_bp.route("/dashboard", methods=["GET"])
def dashboard():
    return respond(outstanding.get_outstanding_dashboard(arg_date("today")))


@outstanding_bp.route("/<int:customer_id>", methods=["GET"])
def customer(customer_id):
    return respond(outstanding.get_customer_outstanding(customer_id))


@outstanding_bp.route("/report", methods=["GET"])
def report():
    form = OutstandingReportForm(formdata=request.args, meta={"csrf": False})
    if not form.validate():
        return jsonify(success=False, error=form_errors(form), fields=form.errors), 400
    config = {
        "start_date": form.start_date.data,
        "end_date": form.end_date.data,
        "customer_selection": form.customer_selection.data,
        "selected_customer_ids": form.selected_customer_ids.data or [],
        "sort_key": form.sort_key.data,
        "sort_direction": form.sort_direction.data or "asc",
    }
    return respond(outstanding.generate_outstanding_report(config))
