"""Schemas for the governed chat endpoint."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: Optional[str] = Field(default=None, description="User message; validated by the chat service.")
    chatHistory: List[ChatTurn] = Field(default_factory=list)


class ChatUsage(BaseModel):
    messageCount: int
    limit: Optional[int] = None
    remaining: Optional[int] = None


class ChatResponse(BaseModel):
    success: bool = True
    message: str
    maxResponseLength: int
    priorityClass: Literal["low", "medium", "high"]
    featureFlags: List[str]
    usage: ChatUsage


__all__ = ["ChatRequest", "ChatResponse", "ChatTurn", "ChatUsage"]
