"""
Handles the client side of a relay connection.

``ClientConnection`` wraps the FastAPI WebSocket of one client. It reads JSON
frames, validates them into client messages and hands the well-formed ones to
the relay session; malformed frames are logged and dropped without affecting
the session. In the other direction it serialises notifications back to the
client and tolerates the client having already gone away.
"""

import logging
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from voice_relay.config.constants import CLIENT_AUDIO, LOGGER_NAME
from voice_relay.models.client_messages import parse_client_message
from voice_relay.models.notifications import Notification

logger = logging.getLogger(LOGGER_NAME)


class ClientConnection:
    """
    Client-facing leg of a relay session.

    Args:
        websocket: The accepted FastAPI WebSocket connection
        session_id: Correlation token used in log lines
    """

    def __init__(self, websocket: WebSocket, session_id: str = "-"):
        self.websocket = websocket
        self.session_id = session_id
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, notification: Notification) -> bool:
        """
        Send a notification to the client.

        Returns:
            bool: True if the frame was written, False if the client is gone
        """
        if self._closed:
            return False
        try:
            await self.websocket.send_text(notification.to_json())
            return True
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"[{self.session_id}] Could not send {notification.type}: {e}")
            self._closed = True
            return False

    async def receive_frames(self, session) -> Optional[str]:
        """
        Read client frames until the client disconnects, forwarding valid messages.

        Binary frames are decoded as UTF-8 and parsed like text frames.

        Args:
            session: The relay session receiving ``submit_client_message`` calls

        Returns:
            The disconnect reason, if the client gave one
        """
        try:
            while True:
                frame = await self.websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    logger.info(f"[{self.session_id}] Client disconnected (code {frame.get('code', 1000)})")
                    self._closed = True
                    return frame.get("reason") or None

                data = frame.get("text")
                if data is None:
                    try:
                        data = (frame.get("bytes") or b"").decode("utf-8")
                    except UnicodeDecodeError:
                        logger.warning(f"[{self.session_id}] Dropping binary client frame that is not UTF-8")
                        continue

                try:
                    message = parse_client_message(data)
                except (ValueError, ValidationError, RecursionError) as e:
                    logger.warning(f"[{self.session_id}] Dropping malformed client message: {e}")
                    continue

                if message.type != CLIENT_AUDIO:
                    logger.debug(f"[{self.session_id}] Client: {message.type}")
                session.submit_client_message(message)
        except WebSocketDisconnect as e:
            logger.info(f"[{self.session_id}] Client disconnected (code {e.code})")
            self._closed = True
            return e.reason or None
        except RuntimeError as e:
            # raised by starlette when reading from a socket that is already closed
            logger.info(f"[{self.session_id}] Client connection no longer readable: {e}")
            self._closed = True
            return str(e)

    async def close(self, code: int = 1000) -> None:
        """Close the client socket; a no-op if it is already closed."""
        if self._closed:
            return
        self._closed = True
        try:
            await self.websocket.close(code=code)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"[{self.session_id}] Client socket already closed: {e}")
