"""
Notification sinks.
Components report user-facing outcomes through an explicit sink instead of
a global toast channel, so the core runs headless.
"""
from dataclasses import dataclass, asdict
from typing import Protocol

from core.config import logger

SUCCESS = "success"
ERROR = "error"
WARNING = "warning"
INFO = "info"


@dataclass(frozen=True)
class Notification:
    level: str
    title: str
    description: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationSink(Protocol):
    def notify(self, level: str, title: str, description: str = "") -> None:
        ...


class LoggingNotificationSink:
    """Mirrors notifications into the application log."""

    _levels = {ERROR: "error", WARNING: "warning"}

    def notify(self, level: str, title: str, description: str = "") -> None:
        log = getattr(logger, self._levels.get(level, "info"))
        log(f"[notify.{level}] {title} {description}".rstrip())


class CollectingNotificationSink:
    """Keeps notifications in memory so a response (or a test) can return them."""

    def __init__(self, mirror_to_log: bool = True):
        self.items: list[Notification] = []
        self._log = LoggingNotificationSink() if mirror_to_log else None

    def notify(self, level: str, title: str, description: str = "") -> None:
        self.items.append(Notification(level=level, title=title, description=description))
        if self._log:
            self._log.notify(level, title, description)

    def to_list(self) -> list[dict]:
        return [n.to_dict() for n in self.items]

    def levels(self) -> list[str]:
        return [n.level for n in self.items]
