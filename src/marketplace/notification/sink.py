"""Notification sink — fire-and-forget messages to buyers and sellers.

The marketplace does not own delivery. It hands a Notice to whichever sink is
configured; the default writes it to the structured log, where a log shipper
or a mail relay can pick it up.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Notice:
    recipient_id: str
    kind: str
    subject: str
    context: dict = field(default_factory=dict)


class NotificationSink(ABC):
    @abstractmethod
    def send(self, notice: Notice) -> None: ...


class LoggingSink(NotificationSink):
    def send(self, notice: Notice) -> None:
        logger.info(
            "notification_sent",
            recipient_id=notice.recipient_id,
            kind=notice.kind,
            subject=notice.subject,
            **notice.context,
        )


_sink: NotificationSink | None = None


def get_sink() -> NotificationSink:
    global _sink
    if _sink is None:
        _sink = LoggingSink()
    return _sink


def set_sink(sink: NotificationSink) -> None:
    """Override the active sink (useful for tests)."""
    global _sink
    _sink = sink


def reset_sink() -> None:
    global _sink
    _sink = None


def notify(notice: Notice) -> bool:
    """Best-effort delivery: failures are logged, never raised."""
    try:
        get_sink().send(notice)
    except Exception:
        logger.exception("notification_failed", recipient_id=notice.recipient_id, kind=notice.kind)
        return False
    return True
