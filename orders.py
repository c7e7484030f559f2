# orders.py
"""Order pipeline: the only code that turns a checkout into an Order and deducts stock.

Submission is two effects with no transaction around them:

1. persist the order (status "pending") with the caller's item snapshot and
   totals stored verbatim, never recomputed from live prices;
2. for each line, in submitted order, read the product and write back
   ``stock - quantity``.

Step 2 does not check availability and may drive stock negative. A line
whose product is gone is skipped. A storage failure in step 2 leaves the
order committed with only the earlier deductions applied; nothing is rolled
back and the caller gets the same generic failure as for a failed insert.
"""
import logging

from core import KeyedLocks
from errors import NotFoundError, OrderSubmissionError, StorageError
from schemas import OrderRequest, StatusUpdate, validate

logger = logging.getLogger(__name__)


class OrderPipeline:
    def __init__(self, storage, serialize_stock=False):
        self.storage = storage
        # Holds a per-product lock across the read-then-write window; off by
        # default, so concurrent orders can lose each other's deductions.
        self.serialize_stock = serialize_stock
        self._product_lock = KeyedLocks()

    def submit_order(self, payload):
        request = validate(OrderRequest, payload, "Invalid order data")
        data = request.record()

        try:
            order = self.storage.create_order(data)
        except StorageError as exc:
            logger.error("Order insert failed for %s", data["customer_email"])
            raise OrderSubmissionError() from exc
        logger.info("Order %s created: %d line(s), %d MZN", order["id"], len(order["items"]), order["total_mzn"])

        try:
            for item in data["items"]:
                self._deduct_stock(order["id"], item)
        except StorageError as exc:
            logger.exception("Order %s committed but stock deduction failed part way", order["id"])
            raise OrderSubmissionError() from exc
        return order

    def _deduct_stock(self, order_id, item):
        if self.serialize_stock:
            with self._product_lock(item["product_id"]):
                self._read_then_write(order_id, item)
        else:
            self._read_then_write(order_id, item)

    def _read_then_write(self, order_id, item):
        product = self.storage.get_product(item["product_id"])
        if product is None:
            logger.warning("Order %s: product %s not found, stock not deducted", order_id, item["product_id"])
            return
        new_stock = product["stock"] - item["quantity"]
        if new_stock < 0:
            logger.warning("Order %s: stock for product %s goes negative (%d)", order_id, product["id"], new_stock)
        self.storage.update_product_stock(product["id"], new_stock)

    def update_status(self, order_id, status):
        update = validate(StatusUpdate, {"status": status}, "Invalid status")
        order = self.storage.update_order_status(order_id, update.status)
        if order is None:
            raise NotFoundError("Order not found")
        logger.info("Order %s status set to %s", order_id, update.status)
        return order

    def get_order(self, order_id):
        order = self.storage.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def list_orders(self):
        return self.storage.get_orders()
