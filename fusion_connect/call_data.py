"""
Client-side record of the local user's active call.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from fusion_connect.db import new_call_id

CALL_STATUSES = ("calling", "connected", "ended", "declined", "missed")
TERMINAL_STATUSES = ("ended", "declined", "missed")

# Status a finished call is filed under in the call history.
HISTORY_STATUS_FOR = {
    "ended": "completed",
    "missed": "missed",
    "declined": "declined",
}


@dataclass(frozen=True)
class CallData:
    caller: str
    recipient: str
    type: str
    status: str = "calling"
    start_time: int = field(default_factory=lambda: int(time.time() * 1000))
    end_time: Optional[int] = None
    id: str = field(default_factory=new_call_id)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def peer_of(self, username: str) -> str:
        return self.recipient if self.caller == username else self.caller

    def duration_seconds(self) -> int:
        if self.end_time is None:
            return 0
        return max(0, (self.end_time - self.start_time) // 1000)

    @classmethod
    def from_dict(cls, data: dict) -> "CallData":
        return cls(
            id=data["id"],
            caller=data["caller"],
            recipient=data["recipient"],
            type=data["type"],
            status=data["status"],
            start_time=data["startTime"],
            end_time=data.get("endTime"),
        )

    def as_dict(self) -> dict:
        payload = {
            "id": self.id,
            "caller": self.caller,
            "recipient": self.recipient,
            "type": self.type,
            "status": self.status,
            "startTime": self.start_time,
        }
        if self.end_time is not None:
            payload["endTime"] = self.end_time
        return payload
