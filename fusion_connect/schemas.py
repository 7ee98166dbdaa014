"""
Pydantic schemas for the signaling API.

Request fields are optional at the schema level so that missing fields reach
the services and are rejected there with the same 400 body.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    signal: Any = None
    type: Optional[str] = None


class SignalResponse(BaseModel):
    success: Literal[True] = True


class SignalMessageModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(..., alias="from")
    to: str
    signal: Any
    type: str
    timestamp: int


class SignalListResponse(BaseModel):
    signals: list[SignalMessageModel]


class CallRequest(BaseModel):
    caller: Optional[str] = None
    recipient: Optional[str] = None
    type: Optional[str] = None
    duration: Optional[int] = None
    status: Optional[str] = None


class CallHistoryModel(BaseModel):
    id: str
    caller: str
    recipient: str
    type: Literal["voice", "video"]
    duration: int
    timestamp: int
    status: Literal["completed", "missed", "declined"]


class CallResponse(BaseModel):
    call: CallHistoryModel


class CallListResponse(BaseModel):
    calls: list[CallHistoryModel]


class HealthResponse(BaseModel):
    status: Literal["ok"]
