# core.py
from flask import Flask, current_app, jsonify, json, request
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
import logging, os, threading, uuid

from errors import StorefrontError

# --- DB handle (imported by storage) ---
db = SQLAlchemy()

# --- Constants / Config shared across blueprints ---
EXCHANGE_RATE = Decimal("64")       # 1 USD = 64 MZN, fixed
LOW_STOCK_THRESHOLD = 50
CENT = Decimal("0.01")
WHATSAPP_NUMBER = "258843210987"

# --- Helpers ---
def new_id():
    return str(uuid.uuid4())

def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)

def mzn_to_usd(mzn):
    return (Decimal(mzn) / EXCHANGE_RATE).quantize(CENT, rounding=ROUND_HALF_UP)

def usd_str(value):
    """Normalise a USD amount (number, Decimal or string) to a 2-place string."""
    return str(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))

def serialize(value):
    """Make store records JSON-ready: datetimes as ISO-8601, Decimals as strings."""
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value

def request_json():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


class KeyedLocks:
    """One lock per key. An entry lives only while someone holds or waits on it."""

    def __init__(self):
        self._locks = {}  # key -> [lock, users]
        self._guard = threading.Lock()

    def __len__(self):
        with self._guard:
            return len(self._locks)

    @contextmanager
    def __call__(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


# --- Models ---
class Product(db.Model):
    __tablename__ = "products"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(80), nullable=False)  # free text, not an enum
    price_mzn = db.Column(db.Integer, nullable=False)
    price_usd = db.Column(db.Numeric(10, 2), nullable=False)
    stock = db.Column(db.Integer, nullable=False)
    images = db.Column(db.JSON, nullable=False, default=list)
    specifications = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(40), nullable=False, default="active")
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

class Order(db.Model):
    __tablename__ = "orders"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    customer_name = db.Column(db.String(200), nullable=False)
    customer_email = db.Column(db.String(200), nullable=False)
    customer_phone = db.Column(db.String(40), nullable=False)
    customer_company = db.Column(db.String(200), nullable=True)
    delivery_address = db.Column(db.Text, nullable=False)
    delivery_city = db.Column(db.String(120), nullable=False)
    delivery_postal_code = db.Column(db.String(20), nullable=True)
    delivery_option = db.Column(db.String(20), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    items = db.Column(db.JSON, nullable=False)  # frozen OrderItem snapshot
    total_mzn = db.Column(db.Integer, nullable=False)
    total_usd = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

class CartItem(db.Model):
    __tablename__ = "cart_items"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    session_id = db.Column(db.String(120), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    __table_args__ = (db.UniqueConstraint("session_id", "product_id"),)

class AdminUser(db.Model):
    __tablename__ = "admin_users"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)  # plaintext, see admin.admin_login
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


SAMPLE_PRODUCTS = [
    {
        "name": "Tijolo Cerâmico 20x20cm",
        "description": "Tijolo cerâmico de alta qualidade, dimensões 20x20cm, ideal para construção residencial e comercial.",
        "category": "Construção",
        "price_mzn": 25,
        "price_usd": "0.39",
        "stock": 5000,
        "images": ["https://images.unsplash.com/photo-1590642916589-592bca10dfbf?w=800&h=600"],
        "specifications": {"Dimensões": "20x20x10cm", "Material": "Cerâmica vermelha", "Origem": "China"},
    },
    {
        "name": "Janela Alumínio 120x120cm",
        "description": "Janela de alumínio com vidro temperado, acabamento branco, sistema de abertura correr.",
        "category": "Construção",
        "price_mzn": 1600,
        "price_usd": "25.00",
        "stock": 100,
        "images": ["https://images.unsplash.com/photo-1449844908441-8829872d2607?w=800&h=600"],
        "specifications": {"Dimensões": "120x120cm", "Material": "Alumínio + Vidro", "Abertura": "Correr"},
    },
    {
        "name": "Smartphone Android 64GB",
        "description": "Smartphone com tela 6.5\", 4GB RAM, câmera dupla 13MP, bateria 4000mAh.",
        "category": "Eletrônicos",
        "price_mzn": 5000,
        "price_usd": "78.13",
        "stock": 50,
        "images": ["https://images.unsplash.com/photo-1511707171634-5f897ff02aa9?w=800&h=600"],
        "specifications": {"Tela": "6.5 polegadas", "RAM": "4GB", "Armazenamento": "64GB"},
    },
    {
        "name": "Cimento Portland 50kg",
        "description": "Cimento Portland CP-II 50kg, ideal para concreto e argamassa de alta resistência.",
        "category": "Construção",
        "price_mzn": 800,
        "price_usd": "12.50",
        "stock": 15,
        "images": ["https://images.unsplash.com/photo-1605732562742-3023a888e56e?w=800&h=600"],
        "specifications": {"Peso": "50kg", "Tipo": "CP-II", "Origem": "China"},
    },
]

def seed_if_empty(storage, admin_email, admin_password):
    """Seed the default admin and sample products on first run."""
    if storage.get_admin_user(admin_email) is None:
        storage.create_admin_user({"email": admin_email, "password": admin_password, "name": "Admin"})
    if storage.get_products():
        return
    for p in SAMPLE_PRODUCTS:
        storage.create_product(dict(p, status="active"))
    current_app.logger.info("Seeded %d sample products", len(SAMPLE_PRODUCTS))


# --- Accessors used by the blueprints ---
def get_storage():
    return current_app.extensions["storefront"]["storage"]

def get_carts():
    return current_app.extensions["storefront"]["carts"]

def get_pipeline():
    return current_app.extensions["storefront"]["orders"]


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(err):
        body = {"error": err.message}
        if getattr(err, "details", None):
            body["details"] = err.details
        return jsonify(body), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        # keep werkzeug's headers (Allow on 405) but swap the HTML body for JSON
        response = err.get_response()
        response.data = json.dumps({"error": err.description})
        response.content_type = "application/json"
        return response

    @app.errorhandler(Exception)
    def handle_unexpected_error(err):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def create_app(config=None):
    app = Flask(__name__)

    # --- Config ---
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    DB_PATH = os.path.join(BASE_DIR, "storefront.db")
    app.config.update(
        SECRET_KEY=os.environ.get("SECRET_KEY", "dev-secret-change-me"),
        SQLALCHEMY_DATABASE_URI=os.environ.get("DATABASE_URL", f"sqlite:///{DB_PATH}"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        STORAGE_BACKEND=os.environ.get("STORAGE_BACKEND", "sql"),
        SEED_DATA=_env_flag("SEED_DATA", True),
        ADMIN_EMAIL=os.environ.get("ADMIN_EMAIL", "admin@maputoimporthub.mz"),
        ADMIN_PASSWORD=os.environ.get("ADMIN_PASSWORD", "admin123"),
        REQUIRE_ADMIN_SESSION=_env_flag("REQUIRE_ADMIN_SESSION", False),
        SERIALIZE_STOCK_DEDUCTION=_env_flag("SERIALIZE_STOCK_DEDUCTION", False),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )
    if config:
        app.config.update(config)

    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("orders").setLevel(app.config["LOG_LEVEL"])

    # Storage backends and services (import inside to avoid circular imports)
    from storage import MemStorage, DbStorage
    from cart import CartService
    from orders import OrderPipeline

    backend = app.config["STORAGE_BACKEND"]
    if backend == "memory":
        storage = MemStorage()
    elif backend == "sql":
        db.init_app(app)
        with app.app_context():
            db.create_all()
        storage = DbStorage(db)
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")

    app.extensions["storefront"] = {
        "storage": storage,
        "carts": CartService(storage),
        "orders": OrderPipeline(storage, serialize_stock=app.config["SERIALIZE_STOCK_DEDUCTION"]),
    }

    register_error_handlers(app)

    # Register blueprints
    from shop import shop_bp
    from admin import admin_bp
    app.register_blueprint(shop_bp, url_prefix="/api")   # storefront
    app.register_blueprint(admin_bp, url_prefix="/api")  # back-office

    if app.config["SEED_DATA"]:
        with app.app_context():
            seed_if_empty(storage, app.config["ADMIN_EMAIL"], app.config["ADMIN_PASSWORD"])

    app.logger.info("Storefront ready (backend=%s)", backend)
    return app
