import logging
from typing import List, Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class Notifier:
    """Collects user-visible confirmations raised while handling one action."""

    def __init__(self):
        self._pending: List[Notification] = []

    def notify(self, title: str, description: str, variant: str = "default") -> Notification:
        note = Notification(title=title, description=description, variant=variant)
        logger.info("%s: %s", title, description)
        self._pending.append(note)
        return note

    @property
    def pending(self) -> List[Notification]:
        return list(self._pending)

    def drain(self) -> List[Notification]:
        notes, self._pending = self._pending, []
        return notes
