# src/dealroom/schemas/message.py
"""Message-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dealroom.models import MessageStatus, MessageType


class MessageCreate(BaseModel):
    """Schema for a participant's free-form message."""

    body: str = Field(..., min_length=1, max_length=5000, description="Message text")
    attachments: list[Any] | None = Field(
        None, description="Attachment descriptors from the storage service"
    )


class MessageResponse(BaseModel):
    """Schema for message information returned by the API."""

    id: int
    conversation_id: int
    sender_id: int | None
    receiver_id: int | None
    body: str
    attachment_metadata: dict[str, Any] | None
    message_type: MessageType
    status: MessageStatus
    seen: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SeenResponse(BaseModel):
    updated: int
