from typing import Optional
from pydantic import BaseModel, Field, field_validator


class CallerIdentity(BaseModel):
    """Identity tuple handed over by the upstream auth layer (trusted)."""

    id: str = Field(max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    avatar: Optional[str] = None

    @field_validator("id", "name", "email", "avatar", mode="before")
    @classmethod
    def strip_blank(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

