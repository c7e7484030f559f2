# admin.py
from flask import Blueprint, Response, current_app, jsonify, request, session

from core import get_pipeline, get_storage, request_json, serialize
from errors import AuthError, NotFoundError
from exports import sales_csv
from reports import category_performance, low_stock_products, parse_report_date, sales_report
from schemas import LoginRequest, ProductCreate, ProductUpdate, StockUpdate, validate

admin_bp = Blueprint("admin", __name__)

PUBLIC_ENDPOINTS = ("admin.admin_login", "admin.admin_logout")

@admin_bp.before_request
def require_admin():
    if not current_app.config["REQUIRE_ADMIN_SESSION"] or request.endpoint in PUBLIC_ENDPOINTS:
        return None
    if not session.get("is_admin"):
        raise AuthError("Admin login required")
    return None

# --- Routes: Session ---
@admin_bp.route("/admin/login", methods=["POST"])
def admin_login():
    data = validate(LoginRequest, request_json(), "Email and password required")
    admin = get_storage().get_admin_user(data.email)
    # Plaintext comparison, demo-grade only. Replace with a salted hash check before production.
    if not admin or admin["password"] != data.password:
        current_app.logger.info("Admin login rejected for %s", data.email)
        raise AuthError()
    session["is_admin"] = True
    session["admin_email"] = admin["email"]
    current_app.logger.info("Admin login for %s", admin["email"])
    return jsonify({
        "success": True,
        "admin": {"id": admin["id"], "email": admin["email"], "name": admin["name"]},
    })

@admin_bp.route("/admin/logout", methods=["POST"])
def admin_logout():
    session.pop("is_admin", None)
    session.pop("admin_email", None)
    return jsonify({"success": True})

# --- Routes: Products ---
@admin_bp.route("/products", methods=["POST"])
def admin_new():
    data = validate(ProductCreate, request_json(), "Invalid product data")
    product = get_storage().create_product(data.model_dump())
    current_app.logger.info("Product %s created", product["id"])
    return jsonify(serialize(product)), 201

@admin_bp.route("/products/<product_id>", methods=["PUT"])
def admin_edit(product_id):
    data = validate(ProductUpdate, request_json(), "Invalid product data")
    product = get_storage().update_product(product_id, data.changes())
    if not product:
        raise NotFoundError("Product not found")
    return jsonify(serialize(product))

@admin_bp.route("/products/<product_id>", methods=["PATCH"])
def admin_stock(product_id):
    data = validate(StockUpdate, request_json(), "Invalid stock value")
    product = get_storage().update_product_stock(product_id, data.stock)
    if not product:
        raise NotFoundError("Product not found")
    return jsonify(serialize(product))

@admin_bp.route("/products/<product_id>", methods=["DELETE"])
def admin_delete(product_id):
    if not get_storage().delete_product(product_id):
        raise NotFoundError("Product not found")
    current_app.logger.info("Product %s deleted", product_id)
    return "", 204

# --- Routes: Orders ---
@admin_bp.route("/orders", methods=["GET"])
def list_orders():
    return jsonify(serialize(get_pipeline().list_orders()))

@admin_bp.route("/orders/<order_id>", methods=["GET"])
def get_order(order_id):
    return jsonify(serialize(get_pipeline().get_order(order_id)))

@admin_bp.route("/orders/<order_id>/status", methods=["PATCH"])
def update_order_status(order_id):
    status = request_json().get("status")
    order = get_pipeline().update_status(order_id, status)
    return jsonify(serialize(order))

# --- Routes: Reports ---
@admin_bp.route("/reports/sales", methods=["GET"])
def report_sales():
    start = parse_report_date(request.args.get("startDate"), "startDate")
    end = parse_report_date(request.args.get("endDate"), "endDate", end_of_day=True)
    return jsonify(serialize(sales_report(get_storage(), start, end)))

@admin_bp.route("/reports/categories", methods=["GET"])
def report_categories():
    return jsonify(serialize(category_performance(get_storage())))

@admin_bp.route("/reports/low-stock", methods=["GET"])
def report_low_stock():
    return jsonify(serialize(low_stock_products(get_storage())))

@admin_bp.route("/reports/export/sales", methods=["GET"])
def export_sales():
    report = sales_report(get_storage())
    return Response(
        sales_csv(report["orders"]),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=sales_report.csv"},
    )
