"""
Call history service: validates and stores records of finished calls.
"""

from __future__ import annotations

import logging
from typing import Optional

from fusion_connect.db import (
    CALL_TYPES,
    HISTORY_STATUSES,
    CallHistoryDb,
    CallHistoryRecord,
)
from fusion_connect.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CallHistoryService:
    def __init__(self, db: CallHistoryDb):
        self.db = db

    def record_call(
        self,
        caller: Optional[str],
        recipient: Optional[str],
        type: Optional[str],
        duration: Optional[int] = None,
        status: Optional[str] = None,
    ) -> CallHistoryRecord:
        if not caller or not recipient or not type:
            raise ValidationError("Missing required fields")
        if type not in CALL_TYPES:
            raise ValidationError(f"Invalid call type: {type}")
        status = status or "completed"
        if status not in HISTORY_STATUSES:
            raise ValidationError(f"Invalid call status: {status}")
        if duration is not None and duration < 0:
            raise ValidationError("Duration must not be negative")

        record = CallHistoryRecord(
            caller=caller,
            recipient=recipient,
            type=type,
            duration=duration or 0,
            status=status,
        )
        self.db.save_call(record)
        logger.info(
            "Recorded %s %s call %s -> %s (%ss)",
            record.status,
            record.type,
            record.caller,
            record.recipient,
            record.duration,
        )
        return record

    def get_call(self, call_id: str) -> CallHistoryRecord:
        record = self.db.get_call(call_id)
        if record is None:
            raise NotFoundError("Call not found")
        return record

    def calls_for(self, username: Optional[str]) -> list[CallHistoryRecord]:
        if not username:
            raise ValidationError("Username required")
        return self.db.list_calls_for(username)
