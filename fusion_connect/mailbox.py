"""
Per-recipient signal mailboxes.

Each recipient owns an ordered list of pending WebRTC signaling payloads
(offers, answers, ICE candidates, hangups). The payloads are opaque here;
reading a mailbox through `drain` empties it so nothing is delivered twice.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from fusion_connect.errors import ValidationError
from fusion_connect.kv import KeyValueStore

logger = logging.getLogger(__name__)

MAILBOX_KEY_PREFIX = "webrtc:signals:"


def now_ms() -> int:
    return int(time.time() * 1000)


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


@dataclass
class SignalMessage:
    sender: str
    recipient: str
    signal: Any
    type: str
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def create(cls, sender: Any, recipient: Any, signal: Any, type: Any) -> "SignalMessage":
        if any(_is_missing(value) for value in (sender, recipient, signal, type)):
            raise ValidationError("Missing required fields")
        return cls(sender=sender, recipient=recipient, signal=signal, type=type)

    @classmethod
    def from_dict(cls, data: dict) -> "SignalMessage":
        return cls(
            sender=data["from"],
            recipient=data["to"],
            signal=data["signal"],
            type=data["type"],
            timestamp=data["timestamp"],
        )

    def as_dict(self) -> dict:
        return {
            "from": self.sender,
            "to": self.recipient,
            "signal": self.signal,
            "type": self.type,
            "timestamp": self.timestamp,
        }


class SignalMailbox:
    """Mailbox service on top of an injected key-value store."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(recipient: str) -> str:
        return f"{MAILBOX_KEY_PREFIX}{recipient}"

    @staticmethod
    def _require_username(username: str | None) -> str:
        if not username:
            raise ValidationError("Username required")
        return username

    def save_signal(self, recipient: str, message: SignalMessage) -> None:
        self._require_username(recipient)
        self.store.append(self._key(recipient), message.as_dict())

    def get_signals(self, recipient: str) -> list[SignalMessage]:
        self._require_username(recipient)
        items = self.store.get(self._key(recipient)) or []
        return [SignalMessage.from_dict(item) for item in items]

    def clear_signals(self, recipient: str) -> None:
        self._require_username(recipient)
        self.store.delete(self._key(recipient))

    def drain(self, recipient: str) -> list[SignalMessage]:
        """Return every pending message for recipient and empty the mailbox."""
        self._require_username(recipient)
        items = self.store.drain(self._key(recipient))
        if items:
            logger.debug("Drained %d signal(s) for %s", len(items), recipient)
        return [SignalMessage.from_dict(item) for item in items]

    def send(self, sender: Any, recipient: Any, signal: Any, type: Any) -> SignalMessage:
        """Validate and append a new message to the recipient's mailbox."""
        message = SignalMessage.create(sender, recipient, signal, type)
        self.save_signal(message.recipient, message)
        logger.info(
            "Queued %s signal from %s to %s",
            message.type,
            message.sender,
            message.recipient,
        )
        return message
