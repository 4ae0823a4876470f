# Overview: Transient user-facing notifications (toasts) raised by store operations.

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, asdict

from ..time_utils import utcnow, to_utc_z


logger = logging.getLogger(__name__)

VARIANT_DEFAULT = "default"
VARIANT_DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = VARIANT_DEFAULT
    created_at: str = ""

    @property
    def is_error(self) -> bool:
        return self.variant == VARIANT_DESTRUCTIVE

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationCenter:
    """
    Bounded FIFO of pending notifications.

    Routes drain it into each response; tests inspect it directly.
    """

    def __init__(self, maxlen: int = 50):
        self._pending: deque[Notification] = deque(maxlen=maxlen)

    def notify(self, title: str, description: str, variant: str = VARIANT_DEFAULT) -> Notification:
        note = Notification(title, description, variant, to_utc_z(utcnow()))
        self._pending.append(note)
        if note.is_error:
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)
        return note

    def error(self, description: str, title: str = "Error") -> Notification:
        return self.notify(title, description, VARIANT_DESTRUCTIVE)

    def pending(self) -> list[Notification]:
        return list(self._pending)

    @property
    def last(self) -> Notification | None:
        return self._pending[-1] if self._pending else None

    def drain(self) -> list[Notification]:
        notes = list(self._pending)
        self._pending.clear()
        return notes
