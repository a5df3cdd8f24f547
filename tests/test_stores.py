import json

from session import SessionService
from stores import CartStore, WishlistStore


def make_cart(session, storage):
    return CartStore(session, storage)


def test_repeated_adds_collapse_into_one_line(session, storage, products):
    cart = make_cart(session, storage)
    for quantity in (1, 2, 4):
        cart.add_item(products["1"], quantity)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 7
    assert cart.total_items == 7


def test_totals_follow_every_mutation(session, storage, products):
    cart = make_cart(session, storage)
    cart.add_item(products["1"], 2)
    cart.add_item(products["3"])
    assert cart.total_price == 1299 * 2 + 899

    cart.update_quantity("3", 3)
    assert cart.total_price == 1299 * 2 + 899 * 3
    assert cart.total_items == 5

    cart.remove_item("1")
    assert cart.total_price == 899 * 3


def test_update_quantity_zero_removes_line(session, storage, products):
    cart = make_cart(session, storage)
    cart.add_item(products["1"])
    cart.add_item(products["2"])

    cart.update_quantity("1", 0)
    assert not cart.is_in_cart("1")
    assert cart.is_in_cart("2")

    cart.update_quantity("2", -3)
    assert cart.items == []


def test_update_quantity_for_absent_product_is_silent(session, storage, products):
    cart = make_cart(session, storage)
    cart.add_item(products["1"])
    session.notifier.drain()

    cart.update_quantity("9", 4)
    assert [line.product.id for line in cart.items] == ["1"]
    assert session.notifier.pending == []


def test_mutations_are_persisted_per_user(session, storage, products, user):
    cart = make_cart(session, storage)
    cart.add_item(products["5"], 2)

    saved = storage.get_json(f"cart_{user.id}")
    assert saved[0]["product"]["id"] == "5"
    assert saved[0]["quantity"] == 2

    reloaded = make_cart(session, storage)
    assert reloaded.total_items == 2


def test_clear_cart_removes_persisted_state(session, storage, products, user):
    cart = make_cart(session, storage)
    cart.add_item(products["5"])
    cart.clear_cart()
    assert cart.total_items == 0
    assert storage.get(f"cart_{user.id}") is None


def test_add_and_remove_emit_notifications(session, storage, products):
    cart = make_cart(session, storage)
    cart.add_item(products["2"])
    cart.remove_item("2")
    titles = [n.title for n in session.notifier.drain()]
    assert titles == ["Added to Cart", "Item Removed"]


def test_malformed_saved_cart_falls_back_to_empty(session, storage, user, caplog):
    storage.set(f"cart_{user.id}", "{not json")
    assert make_cart(session, storage).items == []

    storage.set_json(f"cart_{user.id}", [{"product": {"id": "1"}, "quantity": 2}])
    assert make_cart(session, storage).items == []
    assert "Failed to parse saved cart" in caplog.text


def test_switching_user_loads_that_users_cart(storage, products, user, other_user):
    session = SessionService(storage)
    cart = make_cart(session, storage)
    wishlist = WishlistStore(session, storage)

    session.login(user)
    cart.add_item(products["1"], 3)
    wishlist.add_item(products["2"])

    session.login(other_user)
    assert cart.items == []
    assert wishlist.items == []
    cart.add_item(products["4"])

    session.login(user)
    assert cart.total_items == 3
    assert wishlist.is_in_wishlist("2")


def test_logout_clears_memory_but_keeps_saved_state(storage, products, user):
    session = SessionService(storage)
    cart = make_cart(session, storage)
    wishlist = WishlistStore(session, storage)
    session.login(user)
    cart.add_item(products["1"], 2)
    wishlist.add_item(products["3"])

    session.logout()

    assert cart.total_items == 0
    assert wishlist.items == []
    assert storage.get_json(f"cart_{user.id}")[0]["quantity"] == 2
    assert storage.get_json(f"wishlist_{user.id}")[0]["id"] == "3"

    cart.add_item(products["4"])
    assert storage.get_json(f"cart_{user.id}")[0]["product"]["id"] == "1"


def test_wishlist_duplicate_add_is_a_noop(session, storage, products, user):
    wishlist = WishlistStore(session, storage)
    assert wishlist.add_item(products["6"]) is True
    assert wishlist.add_item(products["6"]) is False

    assert len(wishlist.items) == 1
    assert len(storage.get_json(f"wishlist_{user.id}")) == 1
    titles = [n.title for n in session.notifier.drain()]
    assert titles == ["Added to Wishlist", "Already in Wishlist"]


def test_wishlist_remove_and_clear(session, storage, products, user):
    wishlist = WishlistStore(session, storage)
    wishlist.add_item(products["1"])
    wishlist.add_item(products["2"])

    wishlist.remove_item("1")
    assert [p.id for p in wishlist.items] == ["2"]

    wishlist.clear_wishlist()
    assert wishlist.items == []
    assert storage.get(f"wishlist_{user.id}") is None


def test_move_to_cart(session, storage, products):
    cart = make_cart(session, storage)
    wishlist = WishlistStore(session, storage)
    wishlist.add_item(products["7"])

    line = wishlist.move_to_cart("7", cart)

    assert line.product.id == "7"
    assert cart.is_in_cart("7")
    assert not wishlist.is_in_wishlist("7")
    assert wishlist.move_to_cart("7", cart) is None


def test_session_restore_round_trip(storage, user):
    SessionService(storage).login(user)
    restored = SessionService(storage)
    assert restored.restore().model_dump() == user.model_dump()
    assert restored.is_authenticated

    storage.set("user_session", json.dumps({"name": "missing fields"}))
    broken = SessionService(storage)
    assert broken.restore() is None
    assert storage.get("user_session") is None
