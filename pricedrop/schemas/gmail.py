from __future__ import annotations

from pydantic import BaseModel


class GmailHeader(BaseModel):
    name: str
    value: str


class GmailBody(BaseModel):
    size: int = 0
    data: str | None = None  # base64url
    attachmentId: str | None = None


class GmailMessagePart(BaseModel):
    partId: str | None = None
    mimeType: str = ""
    filename: str | None = None
    headers: list[GmailHeader] = []
    body: GmailBody = GmailBody()
    parts: list[GmailMessagePart] = []


class GmailMessage(BaseModel):
    id: str
    threadId: str | None = None
    snippet: str = ""
    payload: GmailMessagePart = GmailMessagePart()
    internalDate: str | None = None


class GmailMessageRef(BaseModel):
    id: str
    threadId: str | None = None
