import logging
import re
import uuid
from typing import Dict, List, Optional

from pydantic import ValidationError

from errors import AddressNotFound, AddressValidationError, NotAuthenticated
from notifications import Notifier
from schemas import SavedAddress, ShippingAddress
from session import SessionService
from storage import KeyValueStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("full_name", "address_line1", "city", "state", "zip_code", "phone_number")
PHONE_PATTERN = re.compile(r"^\d{10}$")
ZIP_PATTERN = re.compile(r"^\d{6}$")


def strip_whitespace(value: str) -> str:
    return re.sub(r"\s+", "", value or "")


def validate_shipping_address(address: ShippingAddress) -> Dict[str, str]:
    """Return a map of field name to error message; empty when the form is valid."""
    errors: Dict[str, str] = {}
    for field in REQUIRED_FIELDS:
        if not (getattr(address, field) or "").strip():
            errors[field] = "This field is required"

    if address.phone_number and "phone_number" not in errors:
        if not PHONE_PATTERN.match(strip_whitespace(address.phone_number)):
            errors["phone_number"] = "Please enter a valid 10-digit phone number"

    if address.zip_code and "zip_code" not in errors:
        if not ZIP_PATTERN.match(strip_whitespace(address.zip_code)):
            errors["zip_code"] = "Please enter a valid 6-digit ZIP code"

    return errors


class AddressBook:
    """Saved shipping addresses of the signed-in user, kept under addresses_<user id>."""

    def __init__(self, session: SessionService, storage: KeyValueStore, notifier: Optional[Notifier] = None):
        self.session = session
        self.storage = storage
        self.notifier = notifier or session.notifier

    def _key(self) -> str:
        user = self.session.user
        if user is None:
            raise NotAuthenticated()
        return f"addresses_{user.id}"

    def list(self) -> List[SavedAddress]:
        data = self.storage.get_json(self._key(), [])
        try:
            return [SavedAddress.model_validate(entry) for entry in data]
        except (TypeError, ValidationError):
            logger.warning("Failed to parse saved addresses for user %s", self.session.user.id)
            return []

    def get(self, address_id: str) -> SavedAddress:
        for address in self.list():
            if address.id == address_id:
                return address
        raise AddressNotFound(address_id)

    def default(self) -> Optional[SavedAddress]:
        return next((a for a in self.list() if a.is_default), None)

    def add(self, address: ShippingAddress, is_default: bool = False) -> SavedAddress:
        self._validate(address)
        addresses = self.list()
        saved = SavedAddress(
            **ShippingAddress.model_validate(address.model_dump()).model_dump(),
            id=uuid.uuid4().hex[:9],
            is_default=is_default or not addresses,
        )
        if saved.is_default:
            for existing in addresses:
                existing.is_default = False
        addresses.append(saved)
        self._save(addresses)
        self.notifier.notify("Address Saved", "Your address has been added successfully.")
        return saved

    def update(self, address_id: str, address: ShippingAddress, is_default: Optional[bool] = None) -> SavedAddress:
        self._validate(address)
        addresses = self.list()
        updated = None
        for index, existing in enumerate(addresses):
            if existing.id == address_id:
                updated = SavedAddress(
                    **ShippingAddress.model_validate(address.model_dump()).model_dump(),
                    id=address_id,
                    is_default=existing.is_default if is_default is None else is_default,
                )
                addresses[index] = updated
        if updated is None:
            raise AddressNotFound(address_id)
        if updated.is_default:
            for existing in addresses:
                existing.is_default = existing.id == address_id
        self._save(addresses)
        self.notifier.notify("Address Saved", "Your address has been updated successfully.")
        return updated

    def remove(self, address_id: str) -> None:
        addresses = self.list()
        remaining = [a for a in addresses if a.id != address_id]
        if len(remaining) == len(addresses):
            raise AddressNotFound(address_id)
        self._save(remaining)
        self.notifier.notify("Address Deleted", "Your address has been removed successfully.")

    def set_default(self, address_id: str) -> SavedAddress:
        addresses = self.list()
        if not any(a.id == address_id for a in addresses):
            raise AddressNotFound(address_id)
        for address in addresses:
            address.is_default = address.id == address_id
        self._save(addresses)
        self.notifier.notify("Default Address Updated", "Your default address has been updated successfully.")
        return next(a for a in addresses if a.is_default)

    def _validate(self, address: ShippingAddress) -> None:
        errors = validate_shipping_address(address)
        if errors:
            raise AddressValidationError(errors)

    def _save(self, addresses: List[SavedAddress]) -> None:
        self.storage.set_json(self._key(), [a.model_dump(mode="json") for a in addresses])
