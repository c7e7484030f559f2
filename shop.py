# shop.py
from flask import Blueprint, jsonify, request

from core import get_carts, get_pipeline, get_storage, request_json, serialize
from catalog import query_products
from errors import NotFoundError, ValidationError
from exports import whatsapp_message, whatsapp_url
from schemas import CartItemCreate, QuantityUpdate, validate

shop_bp = Blueprint("shop", __name__)

# --- Routes: Catalog ---
@shop_bp.route("/products", methods=["GET"])
def list_products():
    category = request.args.get("category", "").strip()
    q = request.args.get("search", "").strip()
    products = query_products(get_storage(), category=category or None, text=q or None)
    return jsonify(serialize(products))

@shop_bp.route("/products/<product_id>", methods=["GET"])
def get_product(product_id):
    product = get_storage().get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    return jsonify(serialize(product))

# --- Routes: Cart ---
@shop_bp.route("/cart", methods=["GET"])
def cart_view():
    session_id = request.args.get("session_id", "").strip()
    if not session_id:
        raise ValidationError("session_id is required", details=[{"field": "session_id", "message": "Field required"}])
    return jsonify(serialize(get_carts().items(session_id)))

@shop_bp.route("/cart", methods=["POST"])
def add_to_cart():
    data = validate(CartItemCreate, request_json(), "Invalid cart data")
    item = get_carts().add(data.session_id, data.product_id, data.quantity)
    return jsonify(serialize(item)), 201

@shop_bp.route("/cart/<item_id>", methods=["PUT"])
def update_cart_item(item_id):
    data = validate(QuantityUpdate, request_json(), "Invalid quantity")
    # null body when the line was removed (quantity 0) or never existed
    item = get_carts().update_quantity(item_id, data.quantity)
    return jsonify(serialize(item))

@shop_bp.route("/cart/<item_id>", methods=["DELETE"])
def remove_cart_item(item_id):
    if not get_carts().remove(item_id):
        raise NotFoundError("Cart item not found")
    return "", 204

@shop_bp.route("/cart/session/<session_id>", methods=["GET"])
def session_cart(session_id):
    return jsonify(serialize(get_carts().items(session_id)))

@shop_bp.route("/cart/session/<session_id>", methods=["DELETE"])
def clear_session_cart(session_id):
    get_carts().clear(session_id)
    return "", 204

@shop_bp.route("/cart/session/<session_id>/whatsapp", methods=["GET"])
def whatsapp_link(session_id):
    cart = get_carts().cart(session_id)
    customer = None
    if request.args.get("name") or request.args.get("phone"):
        customer = {
            "name": request.args.get("name", ""),
            "phone": request.args.get("phone", ""),
            "address": request.args.get("address", ""),
        }
    message = whatsapp_message(cart.order_items(), customer)
    return jsonify({"message": message, "url": whatsapp_url(message)})

# --- Routes: Checkout ---
@shop_bp.route("/orders", methods=["POST"])
def checkout():
    payload = request_json()
    order = get_pipeline().submit_order(payload)
    session_id = payload.get("session_id")
    if session_id:
        get_carts().clear(session_id)
    return jsonify(serialize(order)), 201
