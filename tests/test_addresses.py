import pytest

from addresses import AddressBook, validate_shipping_address
from errors import AddressNotFound, AddressValidationError, NotAuthenticated
from schemas import ShippingAddress
from session import SessionService


@pytest.mark.parametrize("phone, valid", [
    ("98765432", False),
    ("9876543210", True),
    ("98765 43210", True),
    ("98765-43210", False),
])
def test_phone_number_needs_ten_digits(address, phone, valid):
    errors = validate_shipping_address(address.model_copy(update={"phone_number": phone}))
    assert ("phone_number" not in errors) is valid


@pytest.mark.parametrize("zip_code, valid", [
    ("40001", False),
    ("400012", True),
    ("400 012", True),
    ("4000123", False),
])
def test_zip_code_needs_six_digits(address, zip_code, valid):
    errors = validate_shipping_address(address.model_copy(update={"zip_code": zip_code}))
    assert ("zip_code" not in errors) is valid


def test_required_fields_are_reported_together():
    errors = validate_shipping_address(ShippingAddress(address_line2="optional only"))
    assert set(errors) == {"full_name", "address_line1", "city", "state", "zip_code", "phone_number"}
    assert errors["city"] == "This field is required"


def test_address_line2_is_optional(address):
    assert validate_shipping_address(address.model_copy(update={"address_line2": None})) == {}


def test_first_address_becomes_default(session, storage, address):
    book = AddressBook(session, storage)
    first = book.add(address)
    second = book.add(address.model_copy(update={"city": "Pune"}))

    assert first.is_default
    assert not second.is_default
    assert book.default().id == first.id


def test_only_one_default(session, storage, address):
    book = AddressBook(session, storage)
    first = book.add(address)
    second = book.add(address.model_copy(update={"city": "Pune"}), is_default=True)

    assert [a.id for a in book.list() if a.is_default] == [second.id]

    book.set_default(first.id)
    assert [a.id for a in book.list() if a.is_default] == [first.id]

    book.update(second.id, address.model_copy(update={"city": "Nagpur"}), is_default=True)
    defaults = [a for a in book.list() if a.is_default]
    assert [(a.id, a.city) for a in defaults] == [(second.id, "Nagpur")]


def test_invalid_address_is_not_saved(session, storage, address):
    book = AddressBook(session, storage)
    with pytest.raises(AddressValidationError) as exc:
        book.add(address.model_copy(update={"zip_code": "123"}))
    assert "zip_code" in exc.value.errors
    assert book.list() == []


def test_remove_and_missing_ids(session, storage, address, user):
    book = AddressBook(session, storage)
    saved = book.add(address)
    book.remove(saved.id)
    assert storage.get_json(f"addresses_{user.id}") == []

    with pytest.raises(AddressNotFound):
        book.remove(saved.id)
    with pytest.raises(AddressNotFound):
        book.set_default("nope")
    with pytest.raises(AddressNotFound):
        book.get("nope")


def test_requires_signed_in_user(storage):
    with pytest.raises(NotAuthenticated):
        AddressBook(SessionService(storage), storage).list()
