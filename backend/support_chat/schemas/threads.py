from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional


class ThreadCreate(BaseModel):
    initiator_id: str = Field(max_length=255)
    counterpart_id: str = Field(max_length=255)
    participant_name: Optional[str] = Field(default=None, max_length=255)
    participant_avatar: Optional[str] = None

    @model_validator(mode="after")
    def distinct_participants(self) -> "ThreadCreate":
        initiator = self.initiator_id.strip()
        counterpart = self.counterpart_id.strip()
        if not initiator or not counterpart:
            raise ValueError("initiator_id and counterpart_id are required")
        if initiator == counterpart:
            raise ValueError("A thread needs two distinct participants")
        self.initiator_id = initiator
        self.counterpart_id = counterpart
        return self


class PresenceUpdate(BaseModel):
    is_online: bool


class ThreadSummary(BaseModel):
    id: int
    participant_id: Optional[str] = None
    participant_name: str
    participant_avatar: Optional[str] = None
    last_message: str
    last_message_time: str  # relative label, e.g. "5 min ago"
    last_message_at: Optional[datetime] = None
    unread_count: int
    is_online: bool


class ThreadResponse(BaseModel):
    success: bool = True
    data: ThreadSummary


class ThreadListResponse(BaseModel):
    success: bool = True
    data: list[ThreadSummary]
    # True when the store could not be read and an empty list was served
    degraded: bool = False
