from typing import Optional, Sequence


VOICE_MESSAGE_PREVIEW = "🎤 Voice message"
ATTACHMENT_PREVIEW = "Attachment"


def payload_summary(
    body: Optional[str],
    audio_url: Optional[str] = None,
    attachments: Optional[Sequence[object]] = None,
) -> str:
    """Return the text a thread shows as its last message.

    The literal body wins when it has any visible text; audio-only messages
    and attachment-only messages get a fixed placeholder.
    """
    if body and body.strip():
        return body
    if audio_url and audio_url.strip():
        return VOICE_MESSAGE_PREVIEW
    if attachments:
        return ATTACHMENT_PREVIEW
    return ""


def snippet(text: Optional[str], limit: int = 60) -> str:
    """Single-line preview of ``text`` capped at ``limit`` characters."""
    flat = (text or "").replace("\n", " ").strip()
    if len(flat) > limit:
        return flat[:limit] + "..."
    return flat
