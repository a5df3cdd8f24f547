"""
String-keyed, JSON-valued storage kept in a Mongo collection.

Values are stored as JSON text, one document per key:
    {"key": "cart_<user id>", "value": "[...]", "updated_at": ...}
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class KeyValueStore:
    def __init__(self, collection):
        self.collection = collection

    def get(self, key: str) -> Optional[str]:
        doc = self.collection.find_one({"key": key})
        if not doc:
            return None
        return doc.get("value")

    def set(self, key: str, value: str) -> None:
        self.collection.update_one(
            {"key": key},
            {"$set": {"value": value, "updated_at": datetime.now(timezone.utc)}},
            upsert=True,
        )

    def remove(self, key: str) -> None:
        self.collection.delete_one({"key": key})

    def keys(self) -> List[str]:
        return [d["key"] for d in self.collection.find({}, {"key": 1})]

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decode the value stored under key.

        Missing keys and malformed JSON both come back as `default`; the
        malformed case is logged and left in place for the owner to overwrite.
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed value stored under %r", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))
