from typing import Optional

from addresses import AddressBook
from checkout import CheckoutWorkflow
from notifications import Notifier
from orders import OrderRepository
from schemas import UserOut
from session import SessionService
from storage import KeyValueStore
from stores import CartStore, WishlistStore


class Storefront:
    """The per-shopper services, wired to each other once.

    The HTTP layer builds one per request for the token's user; the bearer
    token is the session, so nothing is written under the session key.
    """

    def __init__(self, database, user: Optional[UserOut] = None, session_key: Optional[str] = None):
        self.notifier = Notifier()
        self.storage = KeyValueStore(database["kv"])
        self.orders = OrderRepository(database["order"])
        self.session = SessionService(self.storage, self.notifier, session_key=session_key)
        self.session.attach(user)
        self.cart = CartStore(self.session, self.storage, self.notifier)
        self.wishlist = WishlistStore(self.session, self.storage, self.notifier)
        self.address_book = AddressBook(self.session, self.storage, self.notifier)
        self._checkout: Optional[CheckoutWorkflow] = None

    @property
    def checkout(self) -> CheckoutWorkflow:
        if self._checkout is None:
            self._checkout = CheckoutWorkflow(self.session, self.cart, self.address_book, self.storage, self.orders)
        return self._checkout
