"""
HTTP routes for the signaling API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from fusion_connect.dependencies import get_call_history, get_mailbox
from fusion_connect.errors import FusionError, InternalError
from fusion_connect.history import CallHistoryService
from fusion_connect.mailbox import SignalMailbox
from fusion_connect.schemas import (
    CallListResponse,
    CallRequest,
    CallResponse,
    HealthResponse,
    SignalListResponse,
    SignalRequest,
    SignalResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.post("/signal", response_model=SignalResponse)
def post_signal(
    payload: SignalRequest, mailbox: SignalMailbox = Depends(get_mailbox)
):
    """
    Append a signaling payload to the recipient's mailbox.
    """
    try:
        mailbox.send(payload.sender, payload.to, payload.signal, payload.type)
    except FusionError:
        raise
    except Exception as exc:
        logger.exception("Error saving signal")
        raise InternalError("Failed to save signal") from exc
    return SignalResponse()


@router.get("/signal", response_model=SignalListResponse)
def get_signals(
    username: Optional[str] = Query(None),
    mailbox: SignalMailbox = Depends(get_mailbox),
):
    """
    Return and clear every pending signal for `username`.

    The read and the clear are one store operation, so two concurrent readers
    never both receive the same message. On failure the mailbox is untouched.
    """
    try:
        messages = mailbox.drain(username)
    except FusionError:
        raise
    except Exception as exc:
        logger.exception("Error retrieving signals")
        raise InternalError("Failed to retrieve signals") from exc
    return {"signals": [message.as_dict() for message in messages]}


@router.get("/calls", response_model=CallListResponse)
def list_calls(
    username: Optional[str] = Query(None),
    history: CallHistoryService = Depends(get_call_history),
):
    try:
        calls = history.calls_for(username)
    except FusionError:
        raise
    except Exception as exc:
        logger.exception("Error fetching call history")
        raise InternalError("Failed to fetch call history") from exc
    return {"calls": [call.as_dict() for call in calls]}


@router.post("/calls", response_model=CallResponse)
def create_call(
    payload: CallRequest, history: CallHistoryService = Depends(get_call_history)
):
    try:
        record = history.record_call(
            payload.caller,
            payload.recipient,
            payload.type,
            duration=payload.duration,
            status=payload.status,
        )
    except FusionError:
        raise
    except Exception as exc:
        logger.exception("Error creating call")
        raise InternalError("Failed to create call") from exc
    return {"call": record.as_dict()}


@router.get("/calls/{call_id}", response_model=CallResponse)
def get_call(
    call_id: str, history: CallHistoryService = Depends(get_call_history)
):
    try:
        record = history.get_call(call_id)
    except FusionError:
        raise
    except Exception as exc:
        logger.exception("Error fetching call %s", call_id)
        raise InternalError("Failed to fetch call") from exc
    return {"call": record.as_dict()}
