from sqlalchemy import Column, String, Text, DateTime
import enum

from .base import BaseModel, utcnow
from .types import CaseInsensitiveEnum


class ParticipantRole(str, enum.Enum):
    """Role tag of a participant."""

    ORDINARY = "ordinary"
    SUPPORT = "support"

    @classmethod
    def _missing_(cls, value: object):
        """Map legacy role names ('user', 'admin') to current ones."""
        if isinstance(value, str):
            legacy = value.lower()
            if legacy == "user":
                return cls.ORDINARY
            if legacy == "admin":
                return cls.SUPPORT
        return None


class Participant(BaseModel):
    """A person (or the maintainer) who can send and receive messages.

    Rows are shared with the identity collaborator; this service only ever
    writes the denormalized display fields and activity timestamps.
    """

    __tablename__ = "participants"

    id             = Column(String(255), primary_key=True)
    name           = Column(String(255), nullable=False)
    email          = Column(String(255), nullable=True, index=True)
    avatar         = Column(Text, nullable=True)
    role           = Column(
        CaseInsensitiveEnum(ParticipantRole, name="participantrole"),
        nullable=False,
        default=ParticipantRole.ORDINARY,
    )
    last_active_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Participant {self.id} {self.name!r} {self.role}>"
