"""
Call history persistence for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from sqlalchemy import BigInteger, Column, Integer, String, create_engine, or_, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

CALL_TYPES = ("voice", "video")
HISTORY_STATUSES = ("completed", "missed", "declined")


def new_call_id() -> str:
    return f"call-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class CallHistoryRecord:
    caller: str
    recipient: str
    type: str
    duration: int = 0
    status: str = "completed"
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    id: str = field(default_factory=new_call_id)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "caller": self.caller,
            "recipient": self.recipient,
            "type": self.type,
            "duration": self.duration,
            "timestamp": self.timestamp,
            "status": self.status,
        }


class CallHistoryDb(Protocol):
    """Interface for call history access."""

    def save_call(self, record: CallHistoryRecord) -> None:
        ...

    def get_call(self, call_id: str) -> Optional[CallHistoryRecord]:
        ...

    def list_calls_for(self, username: str) -> list[CallHistoryRecord]:
        ...


class InMemoryCallHistoryDb:
    """Simple in-memory call history for development and tests."""

    def __init__(self):
        self.calls: Dict[str, CallHistoryRecord] = {}

    def save_call(self, record: CallHistoryRecord) -> None:
        self.calls[record.id] = record

    def get_call(self, call_id: str) -> Optional[CallHistoryRecord]:
        return self.calls.get(call_id)

    def list_calls_for(self, username: str) -> list[CallHistoryRecord]:
        matches = [
            call
            for call in self.calls.values()
            if call.caller == username or call.recipient == username
        ]
        return sorted(matches, key=lambda call: call.timestamp, reverse=True)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.calls.clear()


class SqlCallHistoryDb:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlCallHistoryDb")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "CallHistoryRow") -> CallHistoryRecord:
        return CallHistoryRecord(
            id=row.id,
            caller=row.caller,
            recipient=row.recipient,
            type=row.type,
            duration=row.duration,
            status=row.status,
            timestamp=row.timestamp,
        )

    def save_call(self, record: CallHistoryRecord) -> None:
        with self.Session() as session:
            session.add(
                CallHistoryRow(
                    id=record.id,
                    caller=record.caller,
                    recipient=record.recipient,
                    type=record.type,
                    duration=record.duration,
                    status=record.status,
                    timestamp=record.timestamp,
                )
            )
            session.commit()

    def get_call(self, call_id: str) -> Optional[CallHistoryRecord]:
        with self.Session() as session:
            row = session.get(CallHistoryRow, call_id)
            if not row:
                return None
            return self._to_record(row)

    def list_calls_for(self, username: str) -> list[CallHistoryRecord]:
        with self.Session() as session:
            stmt = (
                select(CallHistoryRow)
                .where(
                    or_(
                        CallHistoryRow.caller == username,
                        CallHistoryRow.recipient == username,
                    )
                )
                .order_by(CallHistoryRow.timestamp.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row) for row in rows]


Base = declarative_base()


class CallHistoryRow(Base):
    __tablename__ = "call_history"

    id = Column(String, primary_key=True)
    caller = Column(String, nullable=False, index=True)
    recipient = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    duration = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False)
    timestamp = Column(BigInteger, nullable=False, index=True)
