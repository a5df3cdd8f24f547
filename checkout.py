"""
Checkout workflow.

A checkout starts in DRAFTING, where the shopper fills (or picks) a shipping
address, and moves once to CONFIRMED when a valid address is submitted for a
non-empty cart. The confirmed order is kept under the last-order keys so a
reload of /checkout?confirmed=true shows the same confirmation.
"""
import logging
import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import ValidationError

from addresses import AddressBook, validate_shipping_address
from errors import AddressValidationError, CheckoutError, EmptyCartError, NotAuthenticated
from invoice import generate_invoice
from orders import OrderRepository
from schemas import Order, OrderConfirmation, OrderItem, PriceSummary, SavedAddress, ShippingAddress
from session import SessionService
from storage import KeyValueStore
from stores import CartStore

logger = logging.getLogger(__name__)

FREE_SHIPPING_THRESHOLD = 999
FLAT_SHIPPING_COST = 99
CONFIRMED_LOCATION = "/checkout?confirmed=true"
NEW_ADDRESS = "new"

LAST_ORDER_FIELDS = ("lastOrderId", "lastOrderDate", "lastOrderItems", "lastShippingAddress", "lastPaymentMethod")


def shipping_cost_for(subtotal: float) -> float:
    return 0 if subtotal >= FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_COST


def price_summary(subtotal: float) -> PriceSummary:
    """Totals shown on both the cart page and checkout."""
    shipping = shipping_cost_for(subtotal)
    return PriceSummary(subtotal=subtotal, shipping_cost=shipping, tax=0.0, total=subtotal + shipping)


def generate_order_id() -> str:
    return "ORD-" + str(secrets.randbelow(10_000_000)).zfill(7)


def format_order_date(moment: datetime) -> str:
    return f"{moment.day} {moment.strftime('%B %Y')}"


def last_order_key(field: str, user_id: str) -> str:
    return f"{field}_{user_id}"


class CheckoutState(str, Enum):
    DRAFTING = "drafting"
    CONFIRMED = "confirmed"


class CheckoutWorkflow:
    def __init__(self, session: SessionService, cart: CartStore, address_book: AddressBook,
                 storage: KeyValueStore, orders: Optional[OrderRepository] = None):
        self.session = session
        self.cart = cart
        self.address_book = address_book
        self.storage = storage
        self.orders = orders
        self.notifier = session.notifier

        self.state = CheckoutState.DRAFTING
        self.draft = ShippingAddress()
        self.saved_addresses: List[SavedAddress] = []
        self.selected_address_id = ""
        self.confirmation: Optional[OrderConfirmation] = None
        self.order: Optional[Order] = None

        if session.user is not None:
            self.saved_addresses = address_book.list()
            default = next((a for a in self.saved_addresses if a.is_default), None)
            if default is not None:
                self.select_address(default.id)

    @property
    def location(self) -> str:
        return CONFIRMED_LOCATION if self.state == CheckoutState.CONFIRMED else "/checkout"

    def summary(self) -> PriceSummary:
        return price_summary(self.cart.total_price)

    def select_address(self, address_id: str) -> ShippingAddress:
        """Fill the draft from a saved address, or clear it for a new one."""
        if address_id == NEW_ADDRESS:
            self.selected_address_id = NEW_ADDRESS
            self.draft = ShippingAddress()
            return self.draft
        for address in self.saved_addresses:
            if address.id == address_id:
                self.selected_address_id = address_id
                self.draft = ShippingAddress.model_validate(address.model_dump())
                break
        return self.draft

    def submit(self, shipping_address: ShippingAddress, payment_method: str = "Online",
               notes: Optional[str] = None) -> OrderConfirmation:
        if self.state == CheckoutState.CONFIRMED:
            raise CheckoutError("This order has already been placed")
        user = self.session.user
        if user is None:
            raise NotAuthenticated()

        self.draft = shipping_address
        errors = validate_shipping_address(shipping_address)
        if errors:
            self.notifier.notify(
                "Please fill all required fields",
                "Some fields need to be completed before placing your order.",
                variant="destructive",
            )
            raise AddressValidationError(errors)

        lines = self.cart.items
        if not lines:
            raise EmptyCartError()

        now = datetime.now(timezone.utc)
        items = [OrderItem(product=line.product, quantity=line.quantity, price=line.product.price) for line in lines]
        subtotal = sum(i.price * i.quantity for i in items)
        summary = price_summary(subtotal)
        order = Order(
            id=generate_order_id(),
            user_id=user.id,
            items=items,
            shipping_address=shipping_address,
            payment_method=payment_method,
            subtotal=summary.subtotal,
            shipping_cost=summary.shipping_cost,
            tax=summary.tax,
            total=summary.total,
            created_at=now,
            updated_at=now,
            notes=notes or None,
        )
        confirmation = OrderConfirmation(
            order_id=order.id,
            order_date=format_order_date(now),
            items=items,
            shipping_address=shipping_address,
            payment_method=payment_method,
            subtotal=summary.subtotal,
            shipping_cost=summary.shipping_cost,
            total=summary.total,
        )

        self._remember(user.id, confirmation)
        if self.orders is not None:
            self.orders.save(order)
        logger.info("Order %s placed by user %s for %.2f", order.id, user.id, order.total)

        self.order = order
        self.confirmation = confirmation
        self.state = CheckoutState.CONFIRMED
        self.notifier.notify("Order Placed Successfully!", f"Your order {order.id} has been placed successfully.")
        self.cart.clear_cart()
        return confirmation

    def resume(self, confirmed: bool = True) -> Optional[OrderConfirmation]:
        """Re-enter CONFIRMED from the last-order snapshot when the location asks for it."""
        if self.state == CheckoutState.CONFIRMED:
            return self.confirmation
        user = self.session.user
        if not confirmed or user is None:
            return None
        stored = {f: self.storage.get_json(last_order_key(f, user.id)) for f in LAST_ORDER_FIELDS}
        if any(v is None for v in stored.values()):
            return None
        try:
            items = [OrderItem.model_validate(i) for i in stored["lastOrderItems"]]
            address = ShippingAddress.model_validate(stored["lastShippingAddress"])
            summary = price_summary(sum(i.price * i.quantity for i in items))
            confirmation = OrderConfirmation(
                order_id=stored["lastOrderId"],
                order_date=stored["lastOrderDate"],
                items=items,
                shipping_address=address,
                payment_method=stored["lastPaymentMethod"],
                subtotal=summary.subtotal,
                shipping_cost=summary.shipping_cost,
                total=summary.total,
            )
        except (TypeError, ValidationError):
            logger.warning("Failed to parse last order snapshot for user %s", user.id)
            return None
        self.confirmation = confirmation
        self.draft = address
        self.state = CheckoutState.CONFIRMED
        return self.confirmation

    def invoice(self):
        confirmation = self.confirmation
        if self.state != CheckoutState.CONFIRMED or confirmation is None:
            raise CheckoutError("No confirmed order to invoice")
        pdf = generate_invoice(
            confirmation.order_id,
            confirmation.order_date,
            confirmation.items,
            confirmation.shipping_address,
            confirmation.subtotal,
            confirmation.shipping_cost,
            confirmation.total,
            confirmation.payment_method,
        )
        self.notifier.notify("Invoice Downloaded", "Your invoice has been downloaded as a PDF.")
        return pdf

    def _remember(self, user_id: str, confirmation: OrderConfirmation) -> None:
        values = {
            "lastOrderId": confirmation.order_id,
            "lastOrderDate": confirmation.order_date,
            "lastOrderItems": [i.model_dump(mode="json") for i in confirmation.items],
            "lastShippingAddress": confirmation.shipping_address.model_dump(mode="json"),
            "lastPaymentMethod": confirmation.payment_method,
        }
        for field, value in values.items():
            self.storage.set_json(last_order_key(field, user_id), value)
