"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the server events the relay reacts
to, plus the response of the ephemeral session endpoint. Events are looked up
by their ``type`` tag; tags the relay does not know about parse to ``None`` so
new server events never break a live session.
"""

import logging
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from voice_relay.config.constants import (
    EVENT_AUDIO_DELTA,
    EVENT_AUDIO_TRANSCRIPT_DONE,
    EVENT_ERROR,
    EVENT_FUNCTION_CALL_ARGUMENTS_DONE,
    EVENT_INPUT_TRANSCRIPT_COMPLETED,
    EVENT_ITEM_CREATED,
    EVENT_ITEM_DELETED,
    EVENT_RESPONSE_CREATED,
    EVENT_RESPONSE_DONE,
    EVENT_SESSION_CREATED,
    EVENT_SESSION_UPDATED,
    EVENT_SPEECH_STARTED,
    EVENT_SPEECH_STOPPED,
    EVENT_TEXT_DONE,
    LOGGER_NAME,
    RESPONSE_STATUS_CANCELLED,
)

logger = logging.getLogger(LOGGER_NAME)


class RealtimeBaseEvent(BaseModel):
    """Base model for Realtime API server events."""

    model_config = ConfigDict(extra="ignore")

    type: str
    event_id: Optional[str] = None


class SessionCreatedEvent(RealtimeBaseEvent):
    session: Dict[str, Any] = Field(default_factory=dict)


class SessionUpdatedEvent(RealtimeBaseEvent):
    """The server applied a session.update."""

    session: Dict[str, Any] = Field(default_factory=dict)


class SpeechStartedEvent(RealtimeBaseEvent):
    audio_start_ms: Optional[int] = None
    item_id: Optional[str] = None


class SpeechStoppedEvent(RealtimeBaseEvent):
    audio_end_ms: Optional[int] = None
    item_id: Optional[str] = None


class AudioDeltaEvent(RealtimeBaseEvent):
    """A base64 chunk of assistant audio."""

    response_id: Optional[str] = None
    item_id: Optional[str] = None
    delta: str = ""


class InputTranscriptCompletedEvent(RealtimeBaseEvent):
    """Transcription of the user's spoken turn."""

    item_id: Optional[str] = None
    transcript: str = ""


class AudioTranscriptDoneEvent(RealtimeBaseEvent):
    """Full transcript of the assistant's spoken reply."""

    response_id: Optional[str] = None
    item_id: Optional[str] = None
    transcript: str = ""


class TextDoneEvent(RealtimeBaseEvent):
    """Full text of a text-only assistant reply."""

    response_id: Optional[str] = None
    text: str = ""


class ResponseCreatedEvent(RealtimeBaseEvent):
    response: Dict[str, Any] = Field(default_factory=dict)


class ResponseDoneEvent(RealtimeBaseEvent):
    """The response finished, was cancelled, or failed."""

    response: Dict[str, Any] = Field(default_factory=dict)

    @property
    def status(self) -> Optional[str]:
        return self.response.get("status")

    @property
    def cancelled(self) -> bool:
        return self.status == RESPONSE_STATUS_CANCELLED


class FunctionCallArgumentsDoneEvent(RealtimeBaseEvent):
    """The model finished streaming the arguments of a tool call."""

    response_id: Optional[str] = None
    item_id: Optional[str] = None
    call_id: str
    name: str
    arguments: str = "{}"


class ItemCreatedEvent(RealtimeBaseEvent):
    previous_item_id: Optional[str] = None
    item: Dict[str, Any] = Field(default_factory=dict)

    @property
    def item_id(self) -> Optional[str]:
        return self.item.get("id")

    @property
    def item_type(self) -> Optional[str]:
        return self.item.get("type")


class ItemDeletedEvent(RealtimeBaseEvent):
    item_id: str


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    code: Optional[str] = None
    message: str = "Unknown error"
    param: Optional[str] = None


class ErrorEvent(RealtimeBaseEvent):
    """Error reported by the Realtime API; the session stays open."""

    error: ErrorDetail = Field(default_factory=ErrorDetail)


UpstreamEvent = Union[
    SessionCreatedEvent,
    SessionUpdatedEvent,
    SpeechStartedEvent,
    SpeechStoppedEvent,
    AudioDeltaEvent,
    InputTranscriptCompletedEvent,
    AudioTranscriptDoneEvent,
    TextDoneEvent,
    ResponseCreatedEvent,
    ResponseDoneEvent,
    FunctionCallArgumentsDoneEvent,
    ItemCreatedEvent,
    ItemDeletedEvent,
    ErrorEvent,
]

UPSTREAM_EVENT_MODELS: Dict[str, Type[RealtimeBaseEvent]] = {
    EVENT_SESSION_CREATED: SessionCreatedEvent,
    EVENT_SESSION_UPDATED: SessionUpdatedEvent,
    EVENT_SPEECH_STARTED: SpeechStartedEvent,
    EVENT_SPEECH_STOPPED: SpeechStoppedEvent,
    EVENT_AUDIO_DELTA: AudioDeltaEvent,
    EVENT_INPUT_TRANSCRIPT_COMPLETED: InputTranscriptCompletedEvent,
    EVENT_AUDIO_TRANSCRIPT_DONE: AudioTranscriptDoneEvent,
    EVENT_TEXT_DONE: TextDoneEvent,
    EVENT_RESPONSE_CREATED: ResponseCreatedEvent,
    EVENT_RESPONSE_DONE: ResponseDoneEvent,
    EVENT_FUNCTION_CALL_ARGUMENTS_DONE: FunctionCallArgumentsDoneEvent,
    EVENT_ITEM_CREATED: ItemCreatedEvent,
    EVENT_ITEM_DELETED: ItemDeletedEvent,
    EVENT_ERROR: ErrorEvent,
}


def parse_upstream_event(data: Dict[str, Any]) -> Optional[UpstreamEvent]:
    """
    Classify a decoded server frame by its ``type`` tag.

    Args:
        data: The decoded JSON object received from the Realtime API

    Returns:
        The typed event, or None for unknown tags and malformed known events
    """
    event_type = data.get("type")
    model = UPSTREAM_EVENT_MODELS.get(event_type)
    if model is None:
        logger.debug(f"Ignoring unrecognized upstream event: {event_type}")
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Malformed upstream event {event_type}: {e}")
        return None


class ClientSecret(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: str = Field(..., min_length=1)
    expires_at: Optional[int] = None


class RealtimeSessionResponse(BaseModel):
    """Response from session creation endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    model: Optional[str] = None
    client_secret: ClientSecret
