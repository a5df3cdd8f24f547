"""Domain errors raised by the storefront services.

The HTTP layer in main.py turns these into HTTPExceptions.
"""
from typing import Dict


class StorefrontError(Exception):
    pass


class NotAuthenticated(StorefrontError):
    def __init__(self, message: str = "Please log in to continue"):
        super().__init__(message)


class ProductNotFound(StorefrontError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class OrderNotFound(StorefrontError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class AddressNotFound(StorefrontError):
    def __init__(self, address_id: str):
        super().__init__(f"Address {address_id} not found")
        self.address_id = address_id


class AddressValidationError(StorefrontError):
    """Field-level problems with a shipping address form."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Please fill all required fields")
        self.errors = errors


class CheckoutError(StorefrontError):
    pass


class EmptyCartError(CheckoutError):
    def __init__(self):
        super().__init__("Your cart is empty")


class StaleViewError(StorefrontError):
    """A catalog load was superseded by a newer load for the same view."""

    def __init__(self, view_key: str):
        super().__init__(f"Load for view {view_key!r} was superseded")
        self.view_key = view_key
