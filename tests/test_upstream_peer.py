import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError

from voice_relay.bot.upstream_peer import UpstreamSessionPeer, build_session_config
from voice_relay.config.prompts import WEB_SEARCH_INSTRUCTIONS, WEB_SEARCH_TOOL
from voice_relay.config.settings import RelaySettings, VadSettings
from voice_relay.exceptions import UpstreamConnectionError
from voice_relay.models.openai_schemas import AudioDeltaEvent, SessionUpdatedEvent
from voice_relay.services.credentials import Credential


class FakeUpstreamSocket:
    """Minimal stand-in for a websockets client connection."""

    def __init__(self, frames=(), error=None, block=False):
        self.frames = list(frames)
        self.error = error
        self.block = block
        self.sent = []
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        if self.error is not None:
            raise self.error
        if self.block:
            await asyncio.Event().wait()

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True


@pytest.fixture
def credential():
    return Credential(value="ek_test")


def test_session_config_without_tools(settings):
    config = build_session_config(settings, "fr")

    assert config["type"] == "session.update"
    session = config["session"]
    assert session["modalities"] == ["text", "audio"]
    assert session["voice"] == "alloy"
    assert session["input_audio_format"] == "pcm16"
    assert session["output_audio_format"] == "pcm16"
    assert session["input_audio_transcription"] == {"model": "whisper-1", "language": "fr"}
    assert session["turn_detection"] == {
        "type": "server_vad",
        "threshold": 0.5,
        "prefix_padding_ms": 300,
        "silence_duration_ms": 2500,
    }
    assert session["temperature"] == 0.7
    assert session["instructions"] == settings.instructions
    assert "tools" not in session
    assert "tool_choice" not in session


def test_session_config_with_tools():
    settings = RelaySettings(
        api_key="test-api-key",
        voice="verse",
        temperature=0.9,
        vad=VadSettings(threshold=0.6, prefix_padding_ms=200, silence_duration_ms=1200),
    )

    session = build_session_config(settings, "en", [WEB_SEARCH_TOOL])["session"]

    assert session["tools"] == [WEB_SEARCH_TOOL]
    assert session["tool_choice"] == "auto"
    assert session["instructions"].endswith(WEB_SEARCH_INSTRUCTIONS)
    assert session["voice"] == "verse"
    assert session["temperature"] == 0.9
    assert session["turn_detection"]["silence_duration_ms"] == 1200


@pytest.mark.asyncio
async def test_connect_sends_credential_and_forwards_events(settings, credential):
    """Test that the peer authenticates with the credential and classifies incoming frames"""
    socket = FakeUpstreamSocket([
        json.dumps({"type": "session.updated", "session": {}}),
        json.dumps({"type": "rate_limits.updated"}),
        "not json",
        b"\x00\x01",
        json.dumps(["not", "an", "object"]),
        json.dumps({"type": "response.audio.delta", "delta": "AAAA"}),
    ])
    events = []
    closed = AsyncMock()

    async def on_event(event):
        events.append(event)

    peer = UpstreamSessionPeer(settings, "test")
    peer.set_handlers(on_event, closed)

    with patch("websockets.connect", AsyncMock(return_value=socket)) as mock_connect:
        await peer.connect(credential)
        await peer._recv_task

    url = mock_connect.call_args.args[0]
    assert url == "wss://api.openai.com/v1/realtime?model=gpt-4o-realtime-preview"
    headers = mock_connect.call_args.kwargs["additional_headers"]
    assert headers == {"Authorization": "Bearer ek_test", "OpenAI-Beta": "realtime=v1"}

    assert len(events) == 2
    assert isinstance(events[0], SessionUpdatedEvent)
    assert isinstance(events[1], AudioDeltaEvent)
    assert events[1].delta == "AAAA"

    closed.assert_awaited_once_with("Upstream connection closed")
    assert not peer.is_open


@pytest.mark.asyncio
async def test_connect_failure_raises(settings, credential):
    peer = UpstreamSessionPeer(settings)

    with patch("websockets.connect", AsyncMock(side_effect=OSError("refused"))):
        with pytest.raises(UpstreamConnectionError, match="refused"):
            await peer.connect(credential)

    assert not peer.is_open


@pytest.mark.asyncio
async def test_connect_timeout_raises(credential):
    settings = RelaySettings(api_key="test-api-key", connect_timeout=0.01)
    peer = UpstreamSessionPeer(settings)

    async def hang(*args, **kwargs):
        await asyncio.Event().wait()

    with patch("websockets.connect", side_effect=hang):
        with pytest.raises(UpstreamConnectionError, match="Timeout"):
            await peer.connect(credential)


@pytest.mark.asyncio
async def test_connection_lost_reported_once(settings, credential):
    socket = FakeUpstreamSocket(error=ConnectionClosedError(None, None))
    closed = AsyncMock()
    peer = UpstreamSessionPeer(settings)
    peer.set_handlers(AsyncMock(), closed)

    with patch("websockets.connect", AsyncMock(return_value=socket)):
        await peer.connect(credential)
        await peer._recv_task

    closed.assert_awaited_once_with("Upstream connection lost")


@pytest.mark.asyncio
async def test_local_close_does_not_report_closure(settings, credential):
    socket = FakeUpstreamSocket(block=True)
    closed = AsyncMock()
    peer = UpstreamSessionPeer(settings)
    peer.set_handlers(AsyncMock(), closed)

    with patch("websockets.connect", AsyncMock(return_value=socket)):
        await peer.connect(credential)

    assert peer.is_open
    await peer.close()
    await peer.close()

    assert socket.closed
    assert peer._recv_task.done()
    assert not peer.is_open
    closed.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_event_when_not_connected(settings):
    peer = UpstreamSessionPeer(settings)

    assert await peer.request_response() is False


@pytest.mark.asyncio
async def test_commands_are_serialised(settings, credential):
    socket = FakeUpstreamSocket(block=True)
    peer = UpstreamSessionPeer(settings)
    peer.set_handlers(AsyncMock())

    with patch("websockets.connect", AsyncMock(return_value=socket)):
        await peer.connect(credential)

    assert await peer.append_audio("AAAA")
    assert await peer.create_user_text_item("Hello")
    assert await peer.create_function_output("call_1", "done")
    assert await peer.delete_item("item_1")
    assert await peer.cancel_response()
    await peer.close()

    sent = [json.loads(frame) for frame in socket.sent]
    assert sent == [
        {"type": "input_audio_buffer.append", "audio": "AAAA"},
        {
            "type": "conversation.item.create",
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": "Hello"}],
            },
        },
        {
            "type": "conversation.item.create",
            "item": {"type": "function_call_output", "call_id": "call_1", "output": "done"},
        },
        {"type": "conversation.item.delete", "item_id": "item_1"},
        {"type": "response.cancel"},
    ]
