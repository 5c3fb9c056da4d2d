import base64
import logging

from pricedrop.schemas.gmail import GmailMessage, GmailMessagePart

logger = logging.getLogger(__name__)


def decode_base64url(data: str) -> str:
    """Decode Gmail's base64url body data, tolerating missing padding."""
    padded = data + "=" * (-len(data) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    return raw.decode("utf-8", errors="replace")


def get_header(message: GmailMessage, name: str) -> str | None:
    wanted = name.lower()
    for header in message.payload.headers:
        if header.name.lower() == wanted:
            return header.value
    return None


def _find_part(part: GmailMessagePart, mime_type: str) -> GmailMessagePart | None:
    if part.mimeType == mime_type and part.body.data:
        return part
    for child in part.parts:
        found = _find_part(child, mime_type)
        if found:
            return found
    return None


def extract_body(message: GmailMessage) -> str:
    """Message body, preferring HTML over plain text, snippet as last resort."""
    for mime_type in ("text/html", "text/plain"):
        part = _find_part(message.payload, mime_type)
        if part and part.body.data:
            return decode_base64url(part.body.data)

    logger.debug("Message %s has no decodable body, using snippet", message.id)
    return message.snippet
