from flask import Blueprint, jsonify, request

from dairyflow.services import catalog
from dairyflow.utils.responses import json_payload, respond

products_bp = Blueprint("products", __name__, url_prefix="/products")


@products_bp.route("", methods=["GET"])
def list_products():
    rows = catalog.list_products(subscription_only=request.args.get("subscription") == "1")
    return jsonify(success=True, data=[p.to_dict() for p in rows])


@products_bp.route("", methods=["POST"])
def create():
    return respond(catalog.create_product(json_payload()), 201)


@products_bp.route("/<int:product_id>", methods=["PUT", "PATCH"])
def update(product_id):
    return respond(catalog.update_product(product_id, json_payload()))
