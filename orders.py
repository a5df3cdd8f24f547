import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from errors import OrderNotFound
from schemas import Order

logger = logging.getLogger(__name__)


def doc_to_order(doc: dict) -> Order:
    doc = dict(doc)
    doc.pop("_id", None)
    return Order.model_validate(doc)


class OrderRepository:
    """Placed orders, stored in the "order" collection keyed by their ORD- id.

    Line items, totals and the address are fixed at creation; only the
    status fields and tracking number change afterwards.
    """

    def __init__(self, collection):
        self.collection = collection

    def save(self, order: Order) -> Order:
        self.collection.insert_one(order.model_dump())
        return order

    def get(self, order_id: str) -> Order:
        doc = self.collection.find_one({"id": order_id})
        if not doc:
            raise OrderNotFound(order_id)
        return doc_to_order(doc)

    def list_for_user(self, user_id: str, status: Optional[str] = None) -> List[Order]:
        query = {"user_id": user_id}
        if status:
            query["status"] = status
        return [doc_to_order(d) for d in self.collection.find(query).sort([("created_at", -1)])]

    def list_all(self, status: Optional[str] = None) -> List[Order]:
        query = {"status": status} if status else {}
        return [doc_to_order(d) for d in self.collection.find(query).sort([("created_at", -1)])]

    def update_status(self, order_id: str, status: Optional[str] = None, payment_status: Optional[str] = None,
                      tracking_number: Optional[str] = None) -> Order:
        update = {"updated_at": datetime.now(timezone.utc)}
        if status is not None:
            update["status"] = status
        if payment_status is not None:
            update["payment_status"] = payment_status
        if tracking_number is not None:
            update["tracking_number"] = tracking_number
        result = self.collection.update_one({"id": order_id}, {"$set": update})
        if result.matched_count == 0:
            raise OrderNotFound(order_id)
        logger.info("Order %s updated: %s", order_id, {k: v for k, v in update.items() if k != "updated_at"})
        return self.get(order_id)


def sales_report(orders: Iterable[Order]) -> dict:
    orders = list(orders)
    billable = [o for o in orders if o.status != "cancelled"]
    by_status = Counter(o.status for o in orders)
    by_payment = Counter(o.payment_method for o in orders)
    return {
        "total_orders": len(orders),
        "total_revenue": round(sum(o.total for o in billable), 2),
        "items_sold": sum(i.quantity for o in billable for i in o.items),
        "average_order_value": round(sum(o.total for o in billable) / len(billable), 2) if billable else 0.0,
        "orders_by_status": dict(by_status),
        "orders_by_payment_method": dict(by_payment),
    }
