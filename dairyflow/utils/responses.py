"""
Turn service results into JSON responses.
"""
from flask import jsonify, request

from dairyflow.utils.helpers import parse_date

STATUS_CODES = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "database": 500,
}


def respond(result: dict, success_status: int = 200):
    if result.get("success", True):
        return jsonify(result), success_status
    result = dict(result)
    status = STATUS_CODES.get(result.pop("error_type", "validation"), 400)
    return jsonify(result), status


def json_payload() -> dict:
    return request.get_json(silent=True) or {}


def arg_date(name: str, default=None):
    return parse_date(request.args.get(name), default)


def bad_request(message: str, **extra):
    return jsonify(success=False, error=message, **extra), 400
