from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Return the pair with the lexicographically smaller id first."""
    return (a, b) if a <= b else (b, a)


class ChatThread(BaseModel):
    """Conversation between exactly two distinct participants.

    The pair is always stored canonically (``participant_a_id`` is the smaller
    id), so the unique constraint on the two columns enforces at most one
    thread per unordered pair. ``initiator_id`` remembers who opened it.
    """

    __tablename__ = "chat_threads"
    __table_args__ = (
        UniqueConstraint("participant_a_id", "participant_b_id", name="uq_chat_threads_pair"),
        Index("ix_chat_threads_participant_a", "participant_a_id"),
        Index("ix_chat_threads_participant_b", "participant_b_id"),
        Index("ix_chat_threads_updated", "updated_at"),
    )

    id                 = Column(Integer, primary_key=True, index=True)
    participant_a_id   = Column(String(255), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    participant_b_id   = Column(String(255), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    initiator_id       = Column(String(255), nullable=False)
    # Display snapshot of "the other side" as supplied by whoever created or
    # last refreshed the thread.
    participant_name   = Column(String(255), nullable=False, default="User")
    participant_avatar = Column(Text, nullable=True)
    last_message       = Column(Text, nullable=True)
    last_message_at    = Column(DateTime, nullable=True)
    # Secondary key paired with last_message_at so concurrent appends resolve
    # to the latest message in the thread's total order.
    last_message_id    = Column(Integer, nullable=True)
    # Bumped atomically by every append; versions cached unread counts.
    message_count      = Column(Integer, nullable=False, default=0)
    # Cache only; compute_unread() is the source of truth.
    unread_count       = Column(Integer, nullable=False, default=0)
    is_online          = Column(Boolean, nullable=False, default=False)
    # Last activity, not last row write: only record_activity() moves it, so
    # presence pings and display refreshes do not reorder thread listings.
    updated_at         = Column(DateTime, nullable=False, default=utcnow)

    participant_a = relationship("Participant", foreign_keys=[participant_a_id])
    participant_b = relationship("Participant", foreign_keys=[participant_b_id])
    messages = relationship(
        "ChatMessage",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def pair(self) -> tuple[str, str]:
        return (self.participant_a_id, self.participant_b_id)

    def has_participant(self, participant_id: str) -> bool:
        return participant_id in self.pair

    def other_participant_id(self, viewer_id: str) -> str:
        """Return whichever of the pair is not ``viewer_id``."""
        if viewer_id == self.participant_a_id:
            return self.participant_b_id
        return self.participant_a_id

    def __repr__(self) -> str:
        return f"<ChatThread {self.id}: {self.participant_a_id} <-> {self.participant_b_id}>"
