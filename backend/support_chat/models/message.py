from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import enum

from ..database import Base
from .base import utcnow
from .types import CaseInsensitiveEnum


class MessageStatus(str, enum.Enum):
    """Delivery status of a message. Only ``sent`` is ever assigned here."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class AttachmentType(str, enum.Enum):
    """Coarse type tag of an attached file."""

    IMAGE = "image"
    DOCUMENT = "document"
    DRAWING = "drawing"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: object):
        """Accept MIME types (``image/png``) and fold anything else to ``other``."""
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
            if lowered.startswith("image/"):
                return cls.IMAGE
            return cls.OTHER
        return None


class ChatMessage(Base):
    """Immutable, append-only message inside one thread.

    Messages are totally ordered within a thread by ``(created_at, id)``; the
    autoincrement ``id`` is the monotonic insertion sequence that breaks
    timestamp ties. Sender name and avatar are snapshots taken at send time.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_thread_time", "thread_id", "created_at", "id"),
        Index("ix_chat_messages_thread_sender", "thread_id", "sender_id"),
    )

    id            = Column(Integer, primary_key=True, autoincrement=True)
    thread_id     = Column(Integer, ForeignKey("chat_threads.id", ondelete="CASCADE"), nullable=False)
    sender_id     = Column(String(255), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    sender_name   = Column(String(255), nullable=False)
    sender_avatar = Column(Text, nullable=True)
    content       = Column(Text, nullable=False, default="")
    status        = Column(
        CaseInsensitiveEnum(MessageStatus, name="messagestatus"),
        nullable=False,
        default=MessageStatus.SENT,
    )
    audio_url     = Column(Text, nullable=True)
    created_at    = Column(DateTime, nullable=False, default=utcnow)

    thread = relationship("ChatThread", back_populates="messages")
    attachments = relationship(
        "MessageAttachment",
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MessageAttachment.id",
    )

    def __repr__(self) -> str:
        return f"[{self.thread_id}] {self.sender_id}: {(self.content or '')[:30]}"


class MessageAttachment(Base):
    """Reference to an externally stored file, owned by exactly one message."""

    __tablename__ = "message_attachments"

    id          = Column(Integer, primary_key=True, autoincrement=True)
    message_id  = Column(
        Integer,
        ForeignKey("chat_messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name        = Column(String(255), nullable=False)
    type        = Column(
        CaseInsensitiveEnum(AttachmentType, name="attachmenttype"),
        nullable=False,
        default=AttachmentType.OTHER,
    )
    url         = Column(Text, nullable=False)
    size        = Column(BigInteger, nullable=True)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)

    message = relationship("ChatMessage", back_populates="attachments")
