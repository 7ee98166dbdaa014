"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fusion_connect.config import get_settings
from fusion_connect.db import CallHistoryDb, InMemoryCallHistoryDb, SqlCallHistoryDb
from fusion_connect.history import CallHistoryService
from fusion_connect.kv import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from fusion_connect.mailbox import SignalMailbox

_kv_store: KeyValueStore | None = None
_call_history_db: CallHistoryDb | None = None


def get_kv_store() -> KeyValueStore:
    """
    Return a singleton key-value store so mailboxes persist across requests.
    """
    global _kv_store
    if _kv_store:
        return _kv_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _kv_store = InMemoryKeyValueStore()
    else:
        _kv_store = RedisKeyValueStore(
            url=settings.redis_url,
            key_prefix=settings.redis_key_prefix,
        )
    return _kv_store


def get_call_history_db() -> CallHistoryDb:
    global _call_history_db
    if _call_history_db:
        return _call_history_db

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _call_history_db = InMemoryCallHistoryDb()
    else:
        _call_history_db = SqlCallHistoryDb(settings.database_url)
    return _call_history_db


def get_mailbox() -> SignalMailbox:
    return SignalMailbox(get_kv_store())


def get_call_history() -> CallHistoryService:
    return CallHistoryService(get_call_history_db())
