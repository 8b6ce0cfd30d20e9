from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from .. import models
from ..utils.errors import InvalidAttachment

MAX_NAME_LENGTH = 255
# Largest value a BIGINT column holds
MAX_SIZE = 2**63 - 1


def _field(descriptor: Any, name: str) -> Any:
    if isinstance(descriptor, Mapping):
        return descriptor.get(name)
    return getattr(descriptor, name, None)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _size(value: Any, index: int) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        size = -1 if isinstance(value, bool) else int(value)
    except (TypeError, ValueError):
        size = -1
    if size < 0 or size > MAX_SIZE:
        raise InvalidAttachment(
            "Attachment size must be a byte count", index=index, field="size", reason="invalid"
        )
    return size


def link_attachments(
    db: Session,
    message: models.ChatMessage,
    descriptors: Iterable[Any],
) -> List[models.MessageAttachment]:
    """Attach already-stored files to ``message`` inside the caller's unit of work.

    Descriptors are mappings or objects exposing ``name``, ``type``, ``url``
    and ``size``. Every descriptor is validated before any row is added, and
    one malformed descriptor fails the whole call with ``InvalidAttachment``;
    the caller rolls back, so the message itself is never persisted without
    the files it referenced. Nothing is committed here.
    """
    prepared: List[models.MessageAttachment] = []
    for index, descriptor in enumerate(descriptors):
        if descriptor is None:
            raise InvalidAttachment("Attachment descriptor is empty", index=index)
        url = _text(_field(descriptor, "url"))
        if not url:
            raise InvalidAttachment("Attachment is missing its URL", index=index, field="url")
        name = _text(_field(descriptor, "name"))
        if not name:
            raise InvalidAttachment("Attachment is missing its name", index=index, field="name")
        if len(name) > MAX_NAME_LENGTH:
            raise InvalidAttachment(
                "Attachment name is too long", index=index, field="name", reason="too_long"
            )
        kind = _text(_field(descriptor, "type")) or models.AttachmentType.OTHER.value
        prepared.append(
            models.MessageAttachment(
                name=name,
                type=models.AttachmentType(kind),
                url=url,
                size=_size(_field(descriptor, "size"), index),
            )
        )

    for attachment in prepared:
        attachment.message_id = message.id
    db.add_all(prepared)
    return prepared
