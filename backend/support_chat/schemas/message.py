from typing import Optional, Any, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from ..models.message import MessageStatus


class AttachmentIn(BaseModel):
    """Attachment already stored by the file collaborator.

    Fields are deliberately lenient: a descriptor missing its URL must reach
    the store so the whole append is rejected as ``InvalidAttachment``.
    """

    name: Optional[str] = Field(default=None, max_length=255)
    type: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None

    model_config = {"extra": "ignore"}


class MessageCreate(BaseModel):
    content: Optional[str] = None
    audio_url: Optional[str] = None
    attachments: Optional[List[AttachmentIn]] = None
    # Used only when the request carries no caller identity
    sender_id: Optional[str] = Field(default=None, max_length=255)
    sender_name: Optional[str] = Field(default=None, max_length=255)
    sender_avatar: Optional[str] = None

    @field_validator("attachments", mode="before")
    @classmethod
    def drop_null_attachments(cls, v: Any):
        if v is None:
            return None
        if not isinstance(v, list):
            raise ValueError("attachments must be a list")
        return v


class AttachmentResponse(BaseModel):
    id: int
    name: str
    type: Literal["image", "document", "drawing"]
    url: str
    size: Optional[int] = None
    uploaded_at: datetime


class MessageResponse(BaseModel):
    id: int
    thread_id: int
    sender_id: str
    sender_name: str
    sender_avatar: Optional[str] = None
    content: str
    timestamp: datetime
    status: MessageStatus = MessageStatus.SENT
    audio_url: Optional[str] = None
    attachments: Optional[List[AttachmentResponse]] = None


class MessageEnvelope(BaseModel):
    success: bool = True
    data: MessageResponse


class MessageListResponse(BaseModel):
    success: bool = True
    data: List[MessageResponse]
    degraded: bool = False
