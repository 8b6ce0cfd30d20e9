from . import crud_participant
from . import crud_thread
from . import crud_message
from . import crud_attachment

from .crud_participant import ensure_participant, get_participant
from .crud_thread import (
    find_thread,
    get_or_create_thread,
    get_thread,
    list_threads_for,
    compute_unread,
    set_online,
)
from .crud_message import append_message, list_messages, get_message
from .crud_attachment import link_attachments
