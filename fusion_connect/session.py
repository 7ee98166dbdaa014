r"""
Client-side call session tracking.

`CallSessionTracker` owns the single active call of the local user:

    idle -> calling -> connected -> ended
                   \-> declined
                   \-> missed

Terminal states are cleared back to idle after a short grace delay. Every
transition is written to an `ActiveCallStore` so a restarted client picks
the call up again, and is broadcast to subscribed observers.

Negotiation happens through the signal mailbox: the caller sends an `offer`,
the callee answers with `answer`, `decline` or `busy`, and either side sends
`hangup`. `poll()` drains the local mailbox and applies those messages. A
fixed-delay simulated connect is available as a fallback for demos and tests
(`connect_delay`); it is off unless configured.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Optional, Protocol

from fusion_connect.call_data import HISTORY_STATUS_FOR, CallData
from fusion_connect.db import CALL_TYPES
from fusion_connect.errors import CallStateError, ValidationError
from fusion_connect.local_store import ActiveCallStore
from fusion_connect.mailbox import SignalMessage, now_ms
from fusion_connect.scheduler import ScheduledCall, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

Observer = Callable[[Optional[CallData]], None]


class SignalTransport(Protocol):
    """What the tracker needs from the signaling service."""

    def send_signal(self, sender: str, to: str, signal: Any, type: str) -> None:
        ...

    def fetch_signals(self, username: str) -> list[SignalMessage]:
        ...

    def record_call(
        self,
        caller: str,
        recipient: str,
        type: str,
        duration: int = 0,
        status: Optional[str] = None,
    ) -> Any:
        ...


class CallSessionTracker:
    def __init__(
        self,
        username: str,
        store: ActiveCallStore,
        transport: Optional[SignalTransport] = None,
        scheduler: Optional[Scheduler] = None,
        *,
        connect_delay: Optional[float] = None,
        missed_timeout: float = 30.0,
        clear_delay: float = 1.0,
        clock: Callable[[], int] = now_ms,
    ):
        if not username:
            raise ValidationError("Username required")
        self.username = username
        self.store = store
        self.transport = transport
        self.scheduler = scheduler or ThreadingScheduler()
        self.connect_delay = connect_delay
        self.missed_timeout = missed_timeout
        self.clear_delay = clear_delay
        self._clock = clock

        self._lock = threading.RLock()
        self._observers: list[Observer] = []
        self._timers: dict[str, ScheduledCall] = {}

        self._call = store.load()
        if self._call is not None:
            logger.info("Recovered %s call %s", self._call.status, self._call.id)
            self._rearm_timers(self._call)

    # Observers

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register `observer`; the returned callable unregisters it."""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _notify(self, call: Optional[CallData]) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(call)
            except Exception:
                logger.exception("Call observer %r failed", observer)

    # State queries

    def active_call(self) -> Optional[CallData]:
        """Current stored call, for observers attaching mid-call."""
        return self.store.load()

    @property
    def is_in_call(self) -> bool:
        with self._lock:
            return self._call is not None and not self._call.is_terminal

    # Transitions

    def initiate(
        self, recipient: str, type: str = "voice", offer: Any = None
    ) -> CallData:
        """Start a call to `recipient` and send it an offer."""
        if not recipient:
            raise ValidationError("Recipient required")
        if type not in CALL_TYPES:
            raise ValidationError(f"Invalid call type: {type}")
        if recipient == self.username:
            raise CallStateError("Cannot call yourself")

        with self._lock:
            if self._call is not None:
                if self._call.is_terminal:
                    raise CallStateError("Previous call is still clearing")
                raise CallStateError("Already in a call")
            call = CallData(
                caller=self.username,
                recipient=recipient,
                type=type,
                start_time=self._clock(),
            )
            self._send(
                recipient,
                {"callId": call.id, "callType": type, "sdp": offer},
                "offer",
            )
            self._commit(call)
            self._schedule("missed", self.missed_timeout, call.id, self._on_missed)
            if self.connect_delay is not None:
                self._schedule(
                    "connect", self.connect_delay, call.id, self._on_simulated_connect
                )
        self._notify(call)
        return call

    def receive_offer(self, message: SignalMessage) -> Optional[CallData]:
        """Ring for an incoming offer, or reply `busy` if already in a call."""
        signal = message.signal if isinstance(message.signal, dict) else {}
        with self._lock:
            if self._call is not None:
                logger.info("Busy, rejecting offer from %s", message.sender)
                self._send_quietly(
                    message.sender, {"callId": signal.get("callId")}, "busy"
                )
                return None
            call_type = signal.get("callType")
            call = CallData(
                caller=message.sender,
                recipient=self.username,
                type=call_type if call_type in CALL_TYPES else "voice",
                start_time=self._clock(),
            )
            if signal.get("callId"):
                call = replace(call, id=signal["callId"])
            self._commit(call)
            self._schedule("missed", self.missed_timeout, call.id, self._on_missed)
        self._notify(call)
        return call

    def answer(self, sdp: Any = None) -> CallData:
        """Accept the ringing incoming call."""
        with self._lock:
            call = self._require_incoming_ringing()
            self._send(call.caller, {"callId": call.id, "sdp": sdp}, "answer")
            call = self._commit(replace(call, status="connected"))
        self._notify(call)
        return call

    def decline(self) -> CallData:
        with self._lock:
            call = self._require_incoming_ringing()
            self._send(call.caller, {"callId": call.id}, "decline")
            call = self._commit(
                replace(call, status="declined", end_time=self._clock())
            )
        self._notify(call)
        return call

    def end(self) -> Optional[CallData]:
        """Hang up. A no-op when idle or when the call already finished."""
        with self._lock:
            call = self._call
            if call is None or call.is_terminal:
                return call
            ended = replace(call, status="ended", end_time=self._clock())
            self._send(call.peer_of(self.username), {"callId": call.id}, "hangup")
            # The peer has hung up once the signal is out; history is best effort.
            ended = self._commit(ended)
            self._record_quietly(ended)
        self._notify(ended)
        return ended

    def handle_signal(self, message: SignalMessage) -> bool:
        """Apply one mailbox message. Returns False when it was not for us."""
        if message.recipient != self.username:
            return False
        if message.type == "offer":
            return self.receive_offer(message) is not None

        with self._lock:
            call = self._call
            if call is None or call.is_terminal:
                return False
            if message.sender != call.peer_of(self.username):
                return False
            if isinstance(message.signal, dict):
                call_id = message.signal.get("callId")
                if call_id and call_id != call.id:
                    return False

            if message.type == "answer":
                if call.status != "calling" or call.caller != self.username:
                    return False
                updated = replace(call, status="connected")
            elif message.type in ("decline", "busy"):
                if call.status != "calling":
                    return False
                updated = replace(call, status="declined", end_time=self._clock())
            elif message.type == "hangup":
                updated = replace(call, status="ended", end_time=self._clock())
            else:
                return False

            logger.info("Call %s: %s from %s", call.id, message.type, message.sender)
            updated = self._commit(updated)
            if updated.is_terminal:
                self._record_quietly(updated)
        self._notify(updated)
        return True

    def poll(self) -> list[SignalMessage]:
        """
        Drain the local mailbox and apply every message in order.

        All drained messages are returned, including ones the tracker does not
        interpret (ICE candidates), so the media layer can consume them.
        """
        if self.transport is None:
            raise CallStateError("No signaling transport configured")
        messages = self.transport.fetch_signals(self.username)
        for message in messages:
            try:
                self.handle_signal(message)
            except Exception:
                # Drained messages cannot be redelivered; keep going.
                logger.exception(
                    "Failed to apply %s signal from %s", message.type, message.sender
                )
        return messages

    # Timer callbacks

    def _on_simulated_connect(self, call_id: str) -> None:
        with self._lock:
            call = self._call
            if call is None or call.id != call_id or call.status != "calling":
                return
            call = self._commit(replace(call, status="connected"))
        self._notify(call)

    def _on_missed(self, call_id: str) -> None:
        with self._lock:
            call = self._call
            if call is None or call.id != call_id or call.status != "calling":
                return
            logger.info("Call %s unanswered after %ss", call.id, self.missed_timeout)
            if call.caller == self.username:
                self._send_quietly(call.recipient, {"callId": call.id}, "hangup")
            call = self._commit(replace(call, status="missed", end_time=self._clock()))
            self._record_quietly(call)
        self._notify(call)

    def _on_clear(self, call_id: str) -> None:
        with self._lock:
            call = self._call
            if call is None or call.id != call_id or not call.is_terminal:
                return
            self.store.clear()
            self._call = None
        self._notify(None)

    # Internals

    def _require_incoming_ringing(self) -> CallData:
        call = self._call
        if call is None or call.status != "calling" or call.recipient != self.username:
            raise CallStateError("No incoming call to respond to")
        return call

    def _commit(self, call: CallData) -> CallData:
        """Persist `call` as the current state. Caller holds the lock."""
        self.store.save(call)
        self._call = call
        if call.status != "calling":
            self._cancel_timer("connect")
            self._cancel_timer("missed")
        if call.is_terminal:
            self._schedule("clear", self.clear_delay, call.id, self._on_clear)
        logger.debug("Call %s is now %s", call.id, call.status)
        return call

    def _schedule(
        self, name: str, delay: float, call_id: str, fn: Callable[[str], None]
    ) -> None:
        self._cancel_timer(name)
        self._timers[name] = self.scheduler.call_later(
            max(0.0, delay), lambda: fn(call_id)
        )

    def _cancel_timer(self, name: str) -> None:
        timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()

    def _rearm_timers(self, call: CallData) -> None:
        if call.is_terminal:
            self._schedule("clear", self.clear_delay, call.id, self._on_clear)
            return
        if call.status != "calling":
            return
        elapsed = (self._clock() - call.start_time) / 1000
        self._schedule(
            "missed", self.missed_timeout - elapsed, call.id, self._on_missed
        )
        if self.connect_delay is not None and call.caller == self.username:
            self._schedule(
                "connect",
                self.connect_delay - elapsed,
                call.id,
                self._on_simulated_connect,
            )

    def _send(self, to: str, signal: Any, type: str) -> None:
        if self.transport is None:
            return
        self.transport.send_signal(self.username, to, signal, type)

    def _send_quietly(self, to: str, signal: Any, type: str) -> None:
        try:
            self._send(to, signal, type)
        except Exception:
            logger.exception("Failed to send %s signal to %s", type, to)

    def _record_quietly(self, call: CallData) -> None:
        # The caller files the history record; the callee would duplicate it.
        if self.transport is None or call.caller != self.username:
            return
        try:
            self.transport.record_call(
                call.caller,
                call.recipient,
                call.type,
                duration=call.duration_seconds(),
                status=HISTORY_STATUS_FOR[call.status],
            )
        except Exception:
            logger.exception("Failed to record history for call %s", call.id)
