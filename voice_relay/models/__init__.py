"""
Models module for data structures and state management in the voice relay.

Key components:
- client_messages: Pydantic models for the messages a client may send, and the
  parser that turns raw frames into them.
- notifications: Pydantic models for everything the relay sends back to the client.
- openai_schemas: Pydantic models for OpenAI Realtime API server events and the
  ephemeral session endpoint.
- session: The relay session state enum and the events fed into a session's inbox.
- session_registry: Bookkeeping of the sessions that are currently open.

Usage examples:
```python
from voice_relay.models.client_messages import parse_client_message
from voice_relay.models.notifications import MutedNotification

message = parse_client_message('{"type": "mute"}')
await websocket.send_text(MutedNotification(muted=True).to_json())
```
"""

from voice_relay.models.client_messages import (
    AttachmentMessage,
    AudioMessage,
    CancelMessage,
    ClearMessage,
    ClientFile,
    ClientMessage,
    MuteMessage,
    SetLanguageMessage,
    TextMessage,
    UnmuteMessage,
    parse_client_message,
)
from voice_relay.models.openai_schemas import UpstreamEvent, parse_upstream_event
from voice_relay.models.session import RelayState
from voice_relay.models.session_registry import SessionRegistry
