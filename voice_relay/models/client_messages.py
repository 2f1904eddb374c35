"""
Pydantic models for messages sent by the client to the relay.

Every client frame is a JSON object with a ``type`` field. This module defines a
model per type, a lookup table from type to model and ``parse_client_message``
which turns a raw text frame into one of those models.
"""

import base64
import binascii
import json
from typing import Dict, List, Literal, Optional, Type, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from voice_relay.config.constants import (
    CLIENT_ATTACHMENT,
    CLIENT_AUDIO,
    CLIENT_CANCEL,
    CLIENT_CLEAR,
    CLIENT_MUTE,
    CLIENT_SET_LANGUAGE,
    CLIENT_TEXT_MESSAGE,
    CLIENT_UNMUTE,
)


class ClientBaseMessage(BaseModel):
    """Base model for all client messages."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str = Field(..., description="Message type identifier")


class ClientFile(BaseModel):
    """A file the client already extracted, sent along with a text message."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "filename"))
    text: Optional[str] = None
    content: Optional[str] = None
    content_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("contentType", "type", "mimeType")
    )
    url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or "File"

    @property
    def extracted_text(self) -> str:
        """Text content of the file, empty when nothing could be extracted."""
        return self.text or self.content or ""

    @property
    def has_text(self) -> bool:
        return bool(self.extracted_text.strip())


class MuteMessage(ClientBaseMessage):
    """Stop forwarding microphone audio upstream."""

    type: Literal["mute"]


class UnmuteMessage(ClientBaseMessage):
    """Resume forwarding microphone audio upstream."""

    type: Literal["unmute"]


class TextMessage(ClientBaseMessage):
    """Typed user input, optionally with extracted file contents."""

    type: Literal["text_message"]
    text: str = Field(..., min_length=1)
    files: List[ClientFile] = Field(default_factory=list)


class AudioMessage(ClientBaseMessage):
    """A chunk of already-encoded microphone audio."""

    type: Literal["audio"]
    data: str = Field(..., description="Base64-encoded audio data")

    @field_validator("data")
    def validate_data(cls, v):
        """Validate that the audio payload is non-empty base64."""
        if not v:
            raise ValueError("Audio data cannot be empty")
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Invalid base64 encoded audio data")
        return v


class AttachmentMessage(ClientBaseMessage):
    """A single file shared by the user."""

    type: Literal["attachment"]
    filename: str = Field(..., min_length=1)
    content: Optional[str] = Field(None, validation_alias=AliasChoices("content", "text"))
    url: Optional[str] = None
    content_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("contentType", "mimeType")
    )

    def as_file(self) -> ClientFile:
        return ClientFile(
            name=self.filename, content=self.content, contentType=self.content_type, url=self.url
        )


class CancelMessage(ClientBaseMessage):
    """Interrupt the response currently being generated."""

    type: Literal["cancel"]


class SetLanguageMessage(ClientBaseMessage):
    """Switch the transcription language."""

    type: Literal["set_language"]
    language: str = Field(..., min_length=1)


class ClearMessage(ClientBaseMessage):
    """Forget the conversation so far."""

    type: Literal["clear"]


ClientMessage = Union[
    MuteMessage,
    UnmuteMessage,
    TextMessage,
    AudioMessage,
    AttachmentMessage,
    CancelMessage,
    SetLanguageMessage,
    ClearMessage,
]

CLIENT_MESSAGE_MODELS: Dict[str, Type[ClientBaseMessage]] = {
    CLIENT_MUTE: MuteMessage,
    CLIENT_UNMUTE: UnmuteMessage,
    CLIENT_TEXT_MESSAGE: TextMessage,
    CLIENT_AUDIO: AudioMessage,
    CLIENT_ATTACHMENT: AttachmentMessage,
    CLIENT_CANCEL: CancelMessage,
    CLIENT_SET_LANGUAGE: SetLanguageMessage,
    CLIENT_CLEAR: ClearMessage,
}


def parse_client_message(raw: str) -> ClientMessage:
    """
    Parse a raw client text frame into a typed message.

    Args:
        raw: The JSON text received from the client

    Returns:
        The validated client message model

    Raises:
        ValueError: If the frame is not a JSON object or has an unknown type
        pydantic.ValidationError: If the fields do not match the message type
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Client message must be a JSON object")

    message_type = data.get("type")
    model = CLIENT_MESSAGE_MODELS.get(message_type)
    if model is None:
        raise ValueError(f"Unknown client message type: {message_type!r}")
    return model.model_validate(data)
