from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_client_id() -> str:
    return f"provisional-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Attachment:
    name: str
    content: str
    type: str = "text/plain"


@dataclass(frozen=True)
class Message:
    """A confirmed transcript entry. Owned by the session store, never copied."""

    id: str
    session_id: str
    author_is_assistant: bool
    body: str
    timestamp: datetime = field(default_factory=utc_now)
    hidden: bool = False


@dataclass(frozen=True)
class ProvisionalMessage:
    """The user's own input, shown between submit and settlement."""

    client_id: str
    body: str
    timestamp: datetime = field(default_factory=utc_now)
    author_is_assistant: bool = False
    is_provisional: bool = True


TranscriptEntry = Union[Message, ProvisionalMessage]


@dataclass
class SessionIdentity:
    id: str
    is_active: bool = False
    title: Optional[str] = None


__all__ = [
    "Attachment",
    "Message",
    "ProvisionalMessage",
    "TranscriptEntry",
    "SessionIdentity",
    "utc_now",
    "new_client_id",
]
