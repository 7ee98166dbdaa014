"""
Durable client-side storage for the active call record.

The JSON file store survives process restarts the way browser local storage
survives a page reload; the in-memory store is the test double.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from fusion_connect.call_data import CallData

logger = logging.getLogger(__name__)


class ActiveCallStore(Protocol):
    def load(self) -> Optional[CallData]:
        ...

    def save(self, call: CallData) -> None:
        ...

    def clear(self) -> None:
        ...


@dataclass
class InMemoryActiveCallStore:
    """Test double holding the serialized record, like the file store does."""

    stored: Optional[dict] = None

    def load(self) -> Optional[CallData]:
        if self.stored is None:
            return None
        return CallData.from_dict(self.stored)

    def save(self, call: CallData) -> None:
        self.stored = call.as_dict()

    def clear(self) -> None:
        self.stored = None


class JsonFileActiveCallStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Optional[CallData]:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return CallData.from_dict(payload)
        except (ValueError, KeyError) as exc:
            logger.warning("Discarding unreadable active call file %s: %s", self.path, exc)
            self.clear()
            return None

    def save(self, call: CallData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(call.as_dict(), handle)
        os.replace(tmp_name, self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
