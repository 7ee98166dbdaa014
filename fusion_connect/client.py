"""
HTTP client for the signaling service.

Implements the `SignalTransport` protocol so a `CallSessionTracker` can talk
to a remote service.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from fusion_connect.config import Settings, get_settings
from fusion_connect.local_store import JsonFileActiveCallStore
from fusion_connect.mailbox import SignalMessage
from fusion_connect.session import CallSessionTracker

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds


class SignalingClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def send_signal(self, sender: str, to: str, signal: Any, type: str) -> None:
        response = self.session.post(
            self._url("signal"),
            json={"from": sender, "to": to, "signal": signal, "type": type},
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.debug("Sent %s signal %s -> %s", type, sender, to)

    def fetch_signals(self, username: str) -> list[SignalMessage]:
        """Drain `username`'s mailbox on the server."""
        response = self.session.get(
            self._url("signal"),
            params={"username": username},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return [SignalMessage.from_dict(item) for item in response.json()["signals"]]

    def record_call(
        self,
        caller: str,
        recipient: str,
        type: str,
        duration: int = 0,
        status: Optional[str] = None,
    ) -> dict:
        payload = {
            "caller": caller,
            "recipient": recipient,
            "type": type,
            "duration": duration,
        }
        if status:
            payload["status"] = status
        response = self.session.post(
            self._url("calls"), json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()["call"]

    def list_calls(self, username: str) -> list[dict]:
        response = self.session.get(
            self._url("calls"),
            params={"username": username},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()["calls"]


def create_tracker(
    username: str, settings: Optional[Settings] = None
) -> CallSessionTracker:
    """Build a tracker wired to the configured service and active call file."""
    settings = settings or get_settings()
    return CallSessionTracker(
        username,
        JsonFileActiveCallStore(settings.active_call_path),
        SignalingClient(
            settings.signaling_base_url, timeout=settings.request_timeout_seconds
        ),
        connect_delay=settings.call_connect_delay_seconds,
        missed_timeout=settings.call_missed_timeout_seconds,
        clear_delay=settings.call_clear_delay_seconds,
    )
