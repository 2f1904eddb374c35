import json

import pytest
from pydantic import ValidationError

from voice_relay.models.client_messages import (
    AttachmentMessage,
    AudioMessage,
    ClearMessage,
    SetLanguageMessage,
    TextMessage,
    parse_client_message,
)
from voice_relay.models.notifications import (
    Capabilities,
    ConnectedNotification,
    ConversationClearedNotification,
    ErrorNotification,
    TranscriptNotification,
)
from voice_relay.models.session_registry import SessionRegistry


@pytest.mark.parametrize("raw, expected", [
    ('{"type": "mute"}', "mute"),
    ('{"type": "unmute"}', "unmute"),
    ('{"type": "cancel"}', "cancel"),
    ('{"type": "clear"}', "clear"),
    ('{"type": "set_language", "language": "es"}', "set_language"),
    ('{"type": "audio", "data": "AAAA"}', "audio"),
])
def test_parse_known_types(raw, expected):
    assert parse_client_message(raw).type == expected


def test_parse_text_message_with_files():
    message = parse_client_message(json.dumps({
        "type": "text_message",
        "text": "Look at these",
        "files": [
            {"name": "a.txt", "text": "alpha", "type": "text/plain"},
            {"filename": "b.pdf", "mimeType": "application/pdf"},
        ],
        "extra": "ignored",
    }))

    assert isinstance(message, TextMessage)
    assert [f.display_name for f in message.files] == ["a.txt", "b.pdf"]
    assert message.files[0].content_type == "text/plain"
    assert message.files[0].has_text
    assert not message.files[1].has_text
    assert message.files[1].content_type == "application/pdf"


def test_parse_attachment_accepts_text_alias():
    message = parse_client_message(
        '{"type": "attachment", "filename": "notes.md", "text": "# Notes", "contentType": "text/markdown"}'
    )

    assert isinstance(message, AttachmentMessage)
    file = message.as_file()
    assert file.display_name == "notes.md"
    assert file.extracted_text == "# Notes"
    assert file.content_type == "text/markdown"


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"type": "teleport"}', '{"no_type": true}'])
def test_parse_rejects_unknown_frames(raw):
    with pytest.raises(ValueError):
        parse_client_message(raw)


@pytest.mark.parametrize("raw", [
    '{"type": "audio", "data": ""}',
    '{"type": "audio", "data": "not base64!"}',
    '{"type": "text_message", "text": ""}',
    '{"type": "set_language"}',
    '{"type": "attachment"}',
])
def test_parse_rejects_invalid_fields(raw):
    with pytest.raises(ValidationError):
        parse_client_message(raw)


def test_models_construct_directly():
    assert AudioMessage(type="audio", data="AAAA").data == "AAAA"
    assert SetLanguageMessage(type="set_language", language="ja").language == "ja"
    assert ClearMessage(type="clear").type == "clear"


def test_notification_json_omits_unset_fields():
    assert json.loads(ConversationClearedNotification().to_json()) == {"type": "conversation_cleared"}
    assert json.loads(ErrorNotification(message="boom").to_json()) == {"type": "error", "message": "boom"}

    transcript = json.loads(TranscriptNotification(role="assistant", text="Hi").to_json())
    assert transcript == {"type": "transcript", "role": "assistant", "text": "Hi"}


def test_connected_notification_json():
    notification = ConnectedNotification(
        message="Connected to OpenAI",
        session_id="abc123",
        language="en",
        voice="alloy",
        capabilities=Capabilities(web_search=False),
    )

    assert json.loads(notification.to_json()) == {
        "type": "connected",
        "message": "Connected to OpenAI",
        "session_id": "abc123",
        "language": "en",
        "voice": "alloy",
        "capabilities": {"files": "text_only", "web_search": False},
    }


def test_session_registry():
    registry = SessionRegistry()
    session = object()

    registry.add_session("abc", session)
    assert len(registry) == 1
    assert registry.active_sessions == {"abc": session}

    registry.remove_session("abc")
    registry.remove_session("abc")
    assert len(registry) == 0
    assert registry.active_sessions == {}
