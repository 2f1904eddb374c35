"""
Pydantic models for notifications sent by the relay to the client.

Each notification maps to one client-visible concern. Upstream protocol fields
are translated into these shapes before they reach the client, so nothing from
the upstream vocabulary leaks through untranslated.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


class Notification(BaseModel):
    """Base model for all outbound notifications."""

    type: str

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class Capabilities(BaseModel):
    """What the relay can do for this client."""

    files: str = "text_only"
    web_search: bool = False
    note: Optional[str] = None


class ConnectedNotification(Notification):
    type: Literal["connected"] = "connected"
    message: str = "Connected to OpenAI Realtime API"
    session_id: Optional[str] = None
    language: Optional[str] = None
    voice: Optional[str] = None
    capabilities: Optional[Capabilities] = None


class VadStartNotification(Notification):
    type: Literal["vad_start"] = "vad_start"


class VadStopNotification(Notification):
    type: Literal["vad_stop"] = "vad_stop"


class AudioNotification(Notification):
    """A chunk of assistant audio, passed through as base64."""

    type: Literal["audio"] = "audio"
    data: str
    format: Optional[str] = None


class TranscriptNotification(Notification):
    type: Literal["transcript"] = "transcript"
    role: Literal["user", "assistant"]
    text: str
    language: Optional[str] = None


class MutedNotification(Notification):
    type: Literal["muted"] = "muted"
    muted: bool


class ErrorNotification(Notification):
    type: Literal["error"] = "error"
    message: str = Field(..., description="Human readable error description")


class WarningNotification(Notification):
    type: Literal["warning"] = "warning"
    message: str


class AttachmentReceivedNotification(Notification):
    type: Literal["attachment_received"] = "attachment_received"
    filename: str


class LanguageSetNotification(Notification):
    type: Literal["language_set"] = "language_set"
    language: str


class ConversationClearedNotification(Notification):
    type: Literal["conversation_cleared"] = "conversation_cleared"


OutboundNotification = Union[
    ConnectedNotification,
    VadStartNotification,
    VadStopNotification,
    AudioNotification,
    TranscriptNotification,
    MutedNotification,
    ErrorNotification,
    WarningNotification,
    AttachmentReceivedNotification,
    LanguageSetNotification,
    ConversationClearedNotification,
]
