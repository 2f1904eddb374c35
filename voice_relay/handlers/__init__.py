"""
Handlers module for the client-facing WebSocket of the voice relay.

Key components:
- client_connection: Reads and validates client frames, forwards them to the
  relay session and writes notifications back to the client.

Usage examples:
```python
from voice_relay.handlers.client_connection import ClientConnection

connection = ClientConnection(websocket, session_id)
await connection.receive_frames(session)
```
"""
