# cart.py
"""Cart engine.

``Cart`` is the shopper's in-progress selection held by the client: products
are passed in directly and totals float with the prices of the attached
products until checkout freezes them into an order snapshot.

``CartService`` is the server-held variant, keyed by session id and backed by
the entity store.
"""
from decimal import Decimal

from core import KeyedLocks, mzn_to_usd, new_id, usd_str
from errors import NotFoundError, ValidationError


def _check_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(
            "Invalid quantity",
            details=[{"field": "quantity", "message": "Quantity must be a positive integer"}],
        )


class Cart:
    def __init__(self, session_id=None):
        self.session_id = session_id or new_id()
        self.items = []  # {"id", "product", "quantity"}

    def _line(self, product_id):
        for line in self.items:
            if line["product"]["id"] == product_id:
                return line
        return None

    def add_item(self, product, quantity):
        _check_quantity(quantity)
        line = self._line(product["id"])
        if line:
            line["quantity"] += quantity
            return line
        line = {"id": new_id(), "product": product, "quantity": quantity}
        self.items.append(line)
        return line

    def remove_item(self, product_id):
        self.items = [line for line in self.items if line["product"]["id"] != product_id]

    def update_quantity(self, product_id, quantity):
        if quantity <= 0:
            self.remove_item(product_id)
            return
        line = self._line(product_id)
        if line:
            line["quantity"] = quantity

    def clear(self):
        self.items = []

    def total_items(self):
        return sum(line["quantity"] for line in self.items)

    def total_mzn(self):
        return sum(line["product"]["price_mzn"] * line["quantity"] for line in self.items)

    def total_usd(self):
        return mzn_to_usd(self.total_mzn())

    def item_count(self, product_id):
        line = self._line(product_id)
        return line["quantity"] if line else 0

    def order_items(self):
        """Freeze the current lines into OrderItem snapshots."""
        items = []
        for line in self.items:
            p, qty = line["product"], line["quantity"]
            items.append({
                "product_id": p["id"],
                "product_name": p["name"],
                "price_mzn": p["price_mzn"],
                "price_usd": usd_str(p["price_usd"]),
                "quantity": qty,
                "total_mzn": p["price_mzn"] * qty,
                "total_usd": usd_str(Decimal(str(p["price_usd"])) * qty),
            })
        return items

    def checkout_request(self, **customer):
        """Build the body for OrderPipeline.submit_order from customer and delivery fields."""
        return dict(
            customer,
            items=self.order_items(),
            total_mzn=self.total_mzn(),
            total_usd=usd_str(self.total_usd()),
        )

    @classmethod
    def from_session(cls, storage, session_id):
        cart = cls(session_id)
        for item in storage.get_cart_items(session_id):
            cart.items.append({"id": item["id"], "product": item["product"], "quantity": item["quantity"]})
        return cart


class CartService:
    """Server-side carts. Mutations for one session id are serialised."""

    def __init__(self, storage):
        self.storage = storage
        self._session_lock = KeyedLocks()

    def items(self, session_id):
        return self.storage.get_cart_items(session_id)

    def cart(self, session_id):
        return Cart.from_session(self.storage, session_id)

    def add(self, session_id, product_id, quantity):
        _check_quantity(quantity)
        with self._session_lock(session_id):
            if self.storage.get_product(product_id) is None:
                raise NotFoundError("Product not found")
            return self.storage.add_to_cart(session_id, product_id, quantity)

    def update_quantity(self, item_id, quantity):
        item = self.storage.get_cart_item(item_id)
        if item is None:
            return None
        with self._session_lock(item["session_id"]):
            return self.storage.update_cart_item_quantity(item_id, quantity)

    def remove(self, item_id):
        item = self.storage.get_cart_item(item_id)
        if item is None:
            return False
        with self._session_lock(item["session_id"]):
            return self.storage.remove_from_cart(item_id)

    def clear(self, session_id):
        with self._session_lock(session_id):
            return self.storage.clear_cart(session_id)

    def checkout(self, session_id, pipeline, **customer):
        """Submit the session's cart as an order, then empty the cart."""
        request = self.cart(session_id).checkout_request(**customer)
        order = pipeline.submit_order(request)
        self.clear(session_id)
        return order
