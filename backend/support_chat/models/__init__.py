from .base import BaseModel, utcnow
from .participant import Participant, ParticipantRole
from .thread import ChatThread, canonical_pair
from .message import ChatMessage, MessageAttachment, MessageStatus, AttachmentType

__all__ = [
    "BaseModel",
    "utcnow",
    "Participant",
    "ParticipantRole",
    "ChatThread",
    "canonical_pair",
    "ChatMessage",
    "MessageAttachment",
    "MessageStatus",
    "AttachmentType",
]
