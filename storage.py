# storage.py
"""Entity store: the repository interface and its in-memory and SQL adapters.

Records cross this boundary as plain dicts. USD amounts are 2-place decimal
strings, timestamps are naive UTC datetimes. Every method returns copies, so
mutating a returned record never changes what is stored.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from decimal import Decimal
import copy, threading

from core import Product, Order, CartItem, AdminUser, new_id, utcnow, usd_str
from errors import StorageError

PRODUCT_FIELDS = ("name", "description", "category", "price_mzn", "price_usd",
                  "stock", "images", "specifications", "status")
ORDER_FIELDS = ("customer_name", "customer_email", "customer_phone", "customer_company",
                "delivery_address", "delivery_city", "delivery_postal_code",
                "delivery_option", "payment_method", "total_mzn", "total_usd", "notes")


def _order_item(item):
    """Copy one OrderItem with its USD amounts normalised."""
    return dict(item, price_usd=usd_str(item["price_usd"]), total_usd=usd_str(item["total_usd"]))


class Storage(ABC):
    """Repository interface consumed by the cart, catalog, order and report code."""

    # Products
    @abstractmethod
    def get_products(self): ...

    @abstractmethod
    def get_product(self, product_id): ...

    @abstractmethod
    def get_products_by_category(self, category): ...

    @abstractmethod
    def search_products(self, text):
        """Case-insensitive substring match on name, description or category."""

    @abstractmethod
    def create_product(self, data): ...

    @abstractmethod
    def update_product(self, product_id, changes):
        """Apply a partial update; returns the product or None if it is missing."""

    @abstractmethod
    def delete_product(self, product_id): ...

    def update_product_stock(self, product_id, stock):
        """Overwrite stock with an absolute value. Not a compare-and-swap."""
        return self.update_product(product_id, {"stock": stock})

    # Orders
    @abstractmethod
    def get_orders(self): ...

    @abstractmethod
    def get_order(self, order_id): ...

    @abstractmethod
    def create_order(self, data):
        """Persist a new order with status "pending" and a frozen copy of its items."""

    @abstractmethod
    def update_order_status(self, order_id, status): ...

    # Cart
    @abstractmethod
    def get_cart_items(self, session_id):
        """Lines for a session, each with its resolved ``product``.

        Lines whose product no longer exists are left out.
        """

    @abstractmethod
    def get_cart_item(self, item_id): ...

    @abstractmethod
    def add_to_cart(self, session_id, product_id, quantity):
        """Add to the (session, product) line, creating it if it does not exist."""

    @abstractmethod
    def update_cart_item_quantity(self, item_id, quantity):
        """Set a line's quantity; ``quantity <= 0`` deletes the line and returns None."""

    @abstractmethod
    def remove_from_cart(self, item_id): ...

    @abstractmethod
    def clear_cart(self, session_id): ...

    # Admin
    @abstractmethod
    def get_admin_user(self, email): ...

    @abstractmethod
    def create_admin_user(self, data): ...


class MemStorage(Storage):
    """Dict-backed store. One re-entrant lock serialises every read-modify-write."""

    def __init__(self):
        self._products = {}
        self._orders = {}
        self._cart_items = {}
        self._admin_users = {}
        self._lock = threading.RLock()

    # --- Products ---
    def get_products(self):
        with self._lock:
            return copy.deepcopy(list(self._products.values()))

    def get_product(self, product_id):
        with self._lock:
            return copy.deepcopy(self._products.get(product_id))

    def get_products_by_category(self, category):
        return [p for p in self.get_products() if p["category"] == category]

    def search_products(self, text):
        q = text.lower()
        return [
            p for p in self.get_products()
            if q in p["name"].lower() or q in p["description"].lower() or q in p["category"].lower()
        ]

    def create_product(self, data):
        now = utcnow()
        product = {
            "id": new_id(),
            "name": data["name"],
            "description": data["description"],
            "category": data["category"],
            "price_mzn": data["price_mzn"],
            "price_usd": usd_str(data["price_usd"]),
            "stock": data["stock"],
            "images": list(data.get("images") or []),
            "specifications": dict(data.get("specifications") or {}),
            "status": data.get("status") or "active",
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._products[product["id"]] = product
            return copy.deepcopy(product)

    def update_product(self, product_id, changes):
        with self._lock:
            existing = self._products.get(product_id)
            if existing is None:
                return None
            updated = dict(existing)
            for key in PRODUCT_FIELDS:
                if changes.get(key) is not None:
                    updated[key] = copy.deepcopy(changes[key])
            updated["price_usd"] = usd_str(updated["price_usd"])
            updated["updated_at"] = utcnow()
            self._products[product_id] = updated
            return copy.deepcopy(updated)

    def delete_product(self, product_id):
        with self._lock:
            if self._products.pop(product_id, None) is None:
                return False
            for item_id in [i for i, c in self._cart_items.items() if c["product_id"] == product_id]:
                del self._cart_items[item_id]
            return True

    # --- Orders ---
    def get_orders(self):
        with self._lock:
            return copy.deepcopy(list(self._orders.values()))

    def get_order(self, order_id):
        with self._lock:
            return copy.deepcopy(self._orders.get(order_id))

    def create_order(self, data):
        order = {"id": new_id()}
        for key in ORDER_FIELDS:
            order[key] = data.get(key)
        order["total_usd"] = usd_str(data["total_usd"])
        order["items"] = [_order_item(i) for i in data["items"]]
        order["status"] = "pending"
        order["created_at"] = utcnow()
        with self._lock:
            self._orders[order["id"]] = order
            return copy.deepcopy(order)

    def update_order_status(self, order_id, status):
        with self._lock:
            existing = self._orders.get(order_id)
            if existing is None:
                return None
            existing["status"] = status
            return copy.deepcopy(existing)

    # --- Cart ---
    def get_cart_items(self, session_id):
        with self._lock:
            result = []
            for item in self._cart_items.values():
                if item["session_id"] != session_id:
                    continue
                product = self._products.get(item["product_id"])
                if product:
                    result.append(dict(copy.deepcopy(item), product=copy.deepcopy(product)))
            return result

    def get_cart_item(self, item_id):
        with self._lock:
            return copy.deepcopy(self._cart_items.get(item_id))

    def add_to_cart(self, session_id, product_id, quantity):
        with self._lock:
            for item in self._cart_items.values():
                if item["session_id"] == session_id and item["product_id"] == product_id:
                    item["quantity"] += quantity
                    return copy.deepcopy(item)
            item = {
                "id": new_id(),
                "session_id": session_id,
                "product_id": product_id,
                "quantity": quantity,
                "created_at": utcnow(),
            }
            self._cart_items[item["id"]] = item
            return copy.deepcopy(item)

    def update_cart_item_quantity(self, item_id, quantity):
        with self._lock:
            existing = self._cart_items.get(item_id)
            if existing is None:
                return None
            if quantity <= 0:
                del self._cart_items[item_id]
                return None
            existing["quantity"] = quantity
            return copy.deepcopy(existing)

    def remove_from_cart(self, item_id):
        with self._lock:
            return self._cart_items.pop(item_id, None) is not None

    def clear_cart(self, session_id):
        with self._lock:
            for item_id in [i for i, c in self._cart_items.items() if c["session_id"] == session_id]:
                del self._cart_items[item_id]
            return True

    # --- Admin ---
    def get_admin_user(self, email):
        with self._lock:
            return copy.deepcopy(self._admin_users.get(email))

    def create_admin_user(self, data):
        user = {
            "id": new_id(),
            "email": data["email"],
            "password": data["password"],
            "name": data["name"],
            "created_at": utcnow(),
        }
        with self._lock:
            self._admin_users[user["email"]] = user
            return copy.deepcopy(user)


# --- Row -> record converters ---
def product_record(p):
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "category": p.category,
        "price_mzn": p.price_mzn,
        "price_usd": usd_str(p.price_usd),
        "stock": p.stock,
        "images": list(p.images or []),
        "specifications": dict(p.specifications or {}),
        "status": p.status,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }

def order_record(o):
    record = {"id": o.id}
    for key in ORDER_FIELDS:
        record[key] = getattr(o, key)
    record["total_usd"] = usd_str(o.total_usd)
    record["items"] = [dict(i) for i in o.items]
    record["status"] = o.status
    record["created_at"] = o.created_at
    return record

def cart_item_record(c):
    return {
        "id": c.id,
        "session_id": c.session_id,
        "product_id": c.product_id,
        "quantity": c.quantity,
        "created_at": c.created_at,
    }

def admin_record(a):
    return {"id": a.id, "email": a.email, "password": a.password, "name": a.name, "created_at": a.created_at}


class DbStorage(Storage):
    """Flask-SQLAlchemy store. Needs an application context.

    Each call is its own transaction. Any SQLAlchemy failure rolls the session
    back and surfaces as StorageError.
    """

    def __init__(self, db):
        self.db = db

    @contextmanager
    def _session(self):
        session = self.db.session
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError() from exc

    # --- Products ---
    def get_products(self):
        with self._session() as s:
            rows = s.query(Product).order_by(Product.created_at).all()
            return [product_record(p) for p in rows]

    def get_product(self, product_id):
        with self._session() as s:
            p = s.get(Product, product_id)
            return product_record(p) if p else None

    def get_products_by_category(self, category):
        with self._session() as s:
            rows = s.query(Product).filter(Product.category == category).order_by(Product.created_at).all()
            return [product_record(p) for p in rows]

    def search_products(self, text):
        like = f"%{text.lower()}%"
        with self._session() as s:
            rows = s.query(Product).filter(
                func.lower(Product.name).like(like)
                | func.lower(Product.description).like(like)
                | func.lower(Product.category).like(like)
            ).order_by(Product.created_at).all()
            return [product_record(p) for p in rows]

    def create_product(self, data):
        with self._session() as s:
            p = Product(
                name=data["name"],
                description=data["description"],
                category=data["category"],
                price_mzn=data["price_mzn"],
                price_usd=Decimal(usd_str(data["price_usd"])),
                stock=data["stock"],
                images=list(data.get("images") or []),
                specifications=dict(data.get("specifications") or {}),
                status=data.get("status") or "active",
            )
            s.add(p)
            s.flush()
            return product_record(p)

    def update_product(self, product_id, changes):
        with self._session() as s:
            p = s.get(Product, product_id)
            if p is None:
                return None
            for key in PRODUCT_FIELDS:
                value = changes.get(key)
                if value is None:
                    continue
                if key == "price_usd":
                    value = Decimal(usd_str(value))
                elif key in ("images", "specifications"):
                    value = copy.deepcopy(value)
                setattr(p, key, value)
            p.updated_at = utcnow()
            s.flush()
            return product_record(p)

    def delete_product(self, product_id):
        with self._session() as s:
            p = s.get(Product, product_id)
            if p is None:
                return False
            s.query(CartItem).filter(CartItem.product_id == product_id).delete()
            s.delete(p)
            return True

    # --- Orders ---
    def get_orders(self):
        with self._session() as s:
            return [order_record(o) for o in s.query(Order).order_by(Order.created_at).all()]

    def get_order(self, order_id):
        with self._session() as s:
            o = s.get(Order, order_id)
            return order_record(o) if o else None

    def create_order(self, data):
        with self._session() as s:
            o = Order(**{key: data.get(key) for key in ORDER_FIELDS})
            o.total_usd = Decimal(usd_str(data["total_usd"]))
            o.items = [_order_item(i) for i in data["items"]]
            o.status = "pending"
            s.add(o)
            s.flush()
            return order_record(o)

    def update_order_status(self, order_id, status):
        with self._session() as s:
            o = s.get(Order, order_id)
            if o is None:
                return None
            o.status = status
            s.flush()
            return order_record(o)

    # --- Cart ---
    def get_cart_items(self, session_id):
        with self._session() as s:
            rows = (
                s.query(CartItem, Product)
                .join(Product, CartItem.product_id == Product.id)
                .filter(CartItem.session_id == session_id)
                .order_by(CartItem.created_at)
                .all()
            )
            return [dict(cart_item_record(c), product=product_record(p)) for c, p in rows]

    def get_cart_item(self, item_id):
        with self._session() as s:
            c = s.get(CartItem, item_id)
            return cart_item_record(c) if c else None

    def add_to_cart(self, session_id, product_id, quantity):
        with self._session() as s:
            c = (
                s.query(CartItem)
                .filter_by(session_id=session_id, product_id=product_id)
                .with_for_update()
                .first()
            )
            if c:
                c.quantity = c.quantity + quantity
            else:
                c = CartItem(session_id=session_id, product_id=product_id, quantity=quantity)
                s.add(c)
            s.flush()
            return cart_item_record(c)

    def update_cart_item_quantity(self, item_id, quantity):
        with self._session() as s:
            c = s.get(CartItem, item_id)
            if c is None:
                return None
            if quantity <= 0:
                s.delete(c)
                return None
            c.quantity = quantity
            s.flush()
            return cart_item_record(c)

    def remove_from_cart(self, item_id):
        with self._session() as s:
            return s.query(CartItem).filter(CartItem.id == item_id).delete() > 0

    def clear_cart(self, session_id):
        with self._session() as s:
            s.query(CartItem).filter(CartItem.session_id == session_id).delete()
            return True

    # --- Admin ---
    def get_admin_user(self, email):
        with self._session() as s:
            a = s.query(AdminUser).filter_by(email=email).first()
            return admin_record(a) if a else None

    def create_admin_user(self, data):
        with self._session() as s:
            a = AdminUser(email=data["email"], password=data["password"], name=data["name"])
            s.add(a)
            s.flush()
            return admin_record(a)
