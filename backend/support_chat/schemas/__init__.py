from .participant import CallerIdentity
from .threads import (
    ThreadCreate,
    PresenceUpdate,
    ThreadSummary,
    ThreadResponse,
    ThreadListResponse,
)
from .message import (
    AttachmentIn,
    AttachmentResponse,
    MessageCreate,
    MessageResponse,
    MessageEnvelope,
    MessageListResponse,
)
