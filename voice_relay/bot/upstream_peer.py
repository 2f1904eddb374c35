import asyncio
import json
import logging
import time
import traceback
from typing import Any, Awaitable, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from voice_relay.config.constants import (
    COMMAND_AUDIO_APPEND,
    COMMAND_AUDIO_CLEAR,
    COMMAND_ITEM_CREATE,
    COMMAND_ITEM_DELETE,
    COMMAND_RESPONSE_CANCEL,
    COMMAND_RESPONSE_CREATE,
    COMMAND_SESSION_UPDATE,
    EVENT_AUDIO_DELTA,
    LOGGER_NAME,
    OPENAI_BETA_HEADER,
)
from voice_relay.config.prompts import WEB_SEARCH_INSTRUCTIONS
from voice_relay.config.settings import RelaySettings
from voice_relay.exceptions import UpstreamConnectionError
from voice_relay.models.openai_schemas import UpstreamEvent, parse_upstream_event
from voice_relay.services.credentials import Credential

logger = logging.getLogger(LOGGER_NAME)

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32
WS_PING_INTERVAL = 5
WS_PING_TIMEOUT = 10
SEND_TIMEOUT = 5.0

RESPONSE_MODALITIES = ["text", "audio"]

EventHandler = Callable[[UpstreamEvent], Awaitable[None]]
ClosedHandler = Callable[[Optional[str]], Awaitable[None]]


def build_session_config(settings: RelaySettings, language: str,
                         tools: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Build the session.update frame sent right after the upstream socket opens.

    Args:
        settings: Relay settings providing voice, prompt, audio formats, VAD and temperature
        language: Transcription language for the user's speech
        tools: Tool declarations to expose to the model

    Returns:
        dict: The complete session.update event
    """
    instructions = settings.instructions
    if tools:
        instructions = f"{instructions}\n\n{WEB_SEARCH_INSTRUCTIONS}"

    session: Dict[str, Any] = {
        "modalities": RESPONSE_MODALITIES,
        "instructions": instructions,
        "voice": settings.voice,
        "input_audio_format": settings.input_audio_format,
        "output_audio_format": settings.output_audio_format,
        "input_audio_transcription": {
            "model": settings.transcription_model,
            "language": language,
        },
        "turn_detection": {
            "type": "server_vad",
            "threshold": settings.vad.threshold,
            "prefix_padding_ms": settings.vad.prefix_padding_ms,
            "silence_duration_ms": settings.vad.silence_duration_ms,
        },
        "temperature": settings.temperature,
    }
    if tools:
        session["tools"] = tools
        session["tool_choice"] = "auto"
    return {"type": COMMAND_SESSION_UPDATE, "session": session}


class UpstreamSessionPeer:
    """
    Owns the WebSocket connection to the OpenAI Realtime API for one relay session.

    Outbound, it turns relay intents into Realtime API commands. Inbound, it
    classifies every server frame and hands the typed event to the session's
    event handler. Frames with unknown tags are dropped. Closure is reported
    once through the closed handler, unless ``close()`` was called locally.
    """

    def __init__(self, settings: RelaySettings, session_id: str = "-"):
        self.settings = settings
        self.session_id = session_id
        self.ws = None
        self._recv_task: Optional[asyncio.Task] = None
        self._connection_active = False
        self._is_closing = False
        self._event_handler: Optional[EventHandler] = None
        self._closed_handler: Optional[ClosedHandler] = None

    @property
    def is_open(self) -> bool:
        return self.ws is not None and self._connection_active and not self._is_closing

    def set_handlers(self, event_handler: EventHandler,
                     closed_handler: Optional[ClosedHandler] = None) -> None:
        """
        Register the callbacks for parsed events and for connection loss.

        Args:
            event_handler: Async function receiving each classified upstream event
            closed_handler: Async function called with a reason when the socket closes
        """
        self._event_handler = event_handler
        self._closed_handler = closed_handler

    async def connect(self, credential: Credential) -> None:
        """
        Open the upstream socket and start the receive loop.

        Args:
            credential: Ephemeral credential sent as the bearer token

        Raises:
            UpstreamConnectionError: If the connection cannot be established
        """
        if self._is_closing:
            raise UpstreamConnectionError("Cannot connect - peer is closing")

        url = f"{self.settings.realtime_url}?model={self.settings.model}"
        headers = {
            "Authorization": f"Bearer {credential.value}",
            "OpenAI-Beta": OPENAI_BETA_HEADER,
        }

        logger.info(f"[{self.session_id}] Connecting to OpenAI...")
        connection_start = time.time()
        try:
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=WS_PING_TIMEOUT,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=self.settings.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamConnectionError(
                f"Timeout while connecting to OpenAI Realtime API (after {self.settings.connect_timeout}s)"
            ) from e
        except Exception as e:
            logger.debug(f"[{self.session_id}] Connection error details: {traceback.format_exc()}")
            raise UpstreamConnectionError(f"Failed to connect to OpenAI Realtime API: {e}") from e

        self._connection_active = True
        logger.info(
            f"[{self.session_id}] Connected to OpenAI in {time.time() - connection_start:.2f} seconds"
        )
        self._recv_task = asyncio.create_task(self._recv_loop())

    async def send_event(self, event: Dict[str, Any]) -> bool:
        """
        Send one command to the Realtime API.

        Returns:
            bool: True if the command was written to the socket
        """
        if not self.is_open:
            logger.warning(f"[{self.session_id}] Cannot send {event.get('type')} - upstream not connected")
            return False

        try:
            await asyncio.wait_for(self.ws.send(json.dumps(event)), timeout=SEND_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"[{self.session_id}] Timeout while sending {event.get('type')}")
            return False
        except ConnectionClosed as e:
            logger.warning(f"[{self.session_id}] Connection closed while sending {event.get('type')}: {e}")
            self._connection_active = False
            return False

        if event.get("type") != COMMAND_AUDIO_APPEND:
            logger.debug(f"[{self.session_id}] Sent {event.get('type')}")
        return True

    async def configure(self, language: str, tools: Optional[List[Dict[str, Any]]] = None) -> bool:
        return await self.send_event(build_session_config(self.settings, language, tools))

    async def append_audio(self, audio_b64: str) -> bool:
        return await self.send_event({"type": COMMAND_AUDIO_APPEND, "audio": audio_b64})

    async def clear_audio_buffer(self) -> bool:
        return await self.send_event({"type": COMMAND_AUDIO_CLEAR})

    async def create_user_text_item(self, text: str) -> bool:
        return await self.send_event({
            "type": COMMAND_ITEM_CREATE,
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": text}],
            },
        })

    async def create_function_output(self, call_id: str, output: str) -> bool:
        return await self.send_event({
            "type": COMMAND_ITEM_CREATE,
            "item": {
                "type": "function_call_output",
                "call_id": call_id,
                "output": output,
            },
        })

    async def request_response(self) -> bool:
        return await self.send_event({
            "type": COMMAND_RESPONSE_CREATE,
            "response": {"modalities": RESPONSE_MODALITIES},
        })

    async def cancel_response(self) -> bool:
        return await self.send_event({"type": COMMAND_RESPONSE_CANCEL})

    async def update_transcription_language(self, language: str) -> bool:
        return await self.send_event({
            "type": COMMAND_SESSION_UPDATE,
            "session": {
                "input_audio_transcription": {
                    "model": self.settings.transcription_model,
                    "language": language,
                }
            },
        })

    async def delete_item(self, item_id: str) -> bool:
        return await self.send_event({"type": COMMAND_ITEM_DELETE, "item_id": item_id})

    async def _recv_loop(self) -> None:
        """
        Receive server frames until the socket closes, forwarding classified events.
        """
        reason = "Upstream connection closed"
        try:
            async for message in self.ws:
                if isinstance(message, bytes):
                    logger.debug(f"[{self.session_id}] Ignoring binary upstream frame ({len(message)} bytes)")
                    continue
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"[{self.session_id}] Received invalid JSON: {message[:100]}...")
                    continue
                if not isinstance(data, dict):
                    continue

                if data.get("type") != EVENT_AUDIO_DELTA:
                    logger.debug(f"[{self.session_id}] OpenAI: {data.get('type')}")

                event = parse_upstream_event(data)
                if event is not None and self._event_handler is not None:
                    await self._event_handler(event)
        except ConnectionClosedError as e:
            logger.warning(f"[{self.session_id}] Upstream connection closed unexpectedly: {e}")
            reason = "Upstream connection lost"
        except asyncio.CancelledError:
            self._connection_active = False
            raise
        except Exception as e:
            logger.error(f"[{self.session_id}] Error in upstream receive loop: {e}")
            logger.debug(f"[{self.session_id}] Receive loop error details: {traceback.format_exc()}")
            reason = f"Upstream receive failed: {e}"

        self._connection_active = False
        logger.info(f"[{self.session_id}] OpenAI connection closed")
        if not self._is_closing and self._closed_handler is not None:
            try:
                await self._closed_handler(reason)
            except Exception as e:
                logger.error(f"[{self.session_id}] Error in connection closed handler: {e}")

    async def close(self) -> None:
        """
        Close the WebSocket connection and cancel the receive task.
        """
        if self._is_closing:
            return
        logger.info(f"[{self.session_id}] Closing OpenAI Realtime peer")
        self._is_closing = True
        self._connection_active = False

        if self._recv_task and not self._recv_task.done():
            self._recv_task.cancel()
            await asyncio.gather(self._recv_task, return_exceptions=True)

        if self.ws:
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"[{self.session_id}] Error closing upstream WebSocket: {e}")
