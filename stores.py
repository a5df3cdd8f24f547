"""
Per-user cart and wishlist.

Both stores follow the session: when the user changes the in-memory state is
dropped and the new user's saved state is loaded; on logout memory is cleared
and nothing persisted is touched. Every mutation made while a user is signed
in is written back to storage right away.
"""
import logging
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from notifications import Notifier
from schemas import CartLine, Product, UserOut
from session import SessionService
from storage import KeyValueStore

logger = logging.getLogger(__name__)


class UserScopedStore:
    key_prefix = ""
    model = BaseModel

    def __init__(self, session: SessionService, storage: KeyValueStore, notifier: Optional[Notifier] = None):
        self.session = session
        self.storage = storage
        self.notifier = notifier or session.notifier
        self._items: list = []
        session.subscribe(self._on_user_change)
        if session.user is not None:
            self._on_user_change(session.user)

    def storage_key(self, user_id: str) -> str:
        return f"{self.key_prefix}_{user_id}"

    def _on_user_change(self, user: Optional[UserOut]) -> None:
        self._items = []
        if user is not None:
            self._items = self._load(user.id)

    def _load(self, user_id: str) -> list:
        key = self.storage_key(user_id)
        data = self.storage.get_json(key, [])
        if not isinstance(data, list):
            logger.warning("Failed to parse saved %s for user %s", self.key_prefix, user_id)
            return []
        try:
            return [self.model.model_validate(entry) for entry in data]
        except ValidationError:
            logger.warning("Failed to parse saved %s for user %s", self.key_prefix, user_id)
            return []

    def _persist(self) -> None:
        user = self.session.user
        if user is None:
            return
        self.storage.set_json(self.storage_key(user.id), [i.model_dump(mode="json") for i in self._items])

    def _forget(self) -> None:
        self._items = []
        user = self.session.user
        if user is not None:
            self.storage.remove(self.storage_key(user.id))


class CartStore(UserScopedStore):
    key_prefix = "cart"
    model = CartLine

    @property
    def items(self) -> List[CartLine]:
        return [line.model_copy(deep=True) for line in self._items]

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self._items)

    @property
    def total_price(self) -> float:
        return sum(line.product.price * line.quantity for line in self._items)

    def add_item(self, product: Product, quantity: int = 1) -> CartLine:
        line = self._find(product.id)
        if line is not None:
            line.quantity += quantity
        else:
            line = CartLine(product=product.model_copy(deep=True), quantity=quantity)
            self._items.append(line)
        self._persist()
        self.notifier.notify("Added to Cart", f"{product.name} has been added to your cart.")
        return line.model_copy(deep=True)

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id)
            return
        line = self._find(product_id)
        if line is None:
            return
        line.quantity = quantity
        self._persist()

    def remove_item(self, product_id: str) -> None:
        self._items = [line for line in self._items if line.product.id != product_id]
        self._persist()
        self.notifier.notify("Item Removed", "The item has been removed from your cart.")

    def clear_cart(self) -> None:
        self._forget()

    def is_in_cart(self, product_id: str) -> bool:
        return self._find(product_id) is not None

    def _find(self, product_id: str) -> Optional[CartLine]:
        for line in self._items:
            if line.product.id == product_id:
                return line
        return None


class WishlistStore(UserScopedStore):
    key_prefix = "wishlist"
    model = Product

    @property
    def items(self) -> List[Product]:
        return [p.model_copy(deep=True) for p in self._items]

    def add_item(self, product: Product) -> bool:
        """Save a product; returns False when it was already saved."""
        if self.is_in_wishlist(product.id):
            self.notifier.notify("Already in Wishlist", f"{product.name} is already in your wishlist.")
            return False
        self._items.append(product.model_copy(deep=True))
        self._persist()
        self.notifier.notify("Added to Wishlist", f"{product.name} has been added to your wishlist.")
        return True

    def remove_item(self, product_id: str) -> None:
        self._items = [p for p in self._items if p.id != product_id]
        self._persist()
        self.notifier.notify("Item Removed", "The item has been removed from your wishlist.")

    def clear_wishlist(self) -> None:
        self._forget()

    def is_in_wishlist(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self._items)

    def move_to_cart(self, product_id: str, cart: CartStore) -> Optional[CartLine]:
        for product in self._items:
            if product.id == product_id:
                line = cart.add_item(product)
                self.remove_item(product_id)
                return line
        return None
