"""
Bot module relaying client conversations to the OpenAI Realtime API.

Key components:
- RelaySession: per-connection state machine that negotiates the upstream session,
  queues client messages until it is ready, and routes messages in both directions.
- UpstreamSessionPeer: owns the upstream WebSocket, sends Realtime API commands and
  classifies server events.
- ToolBridge: runs the tools the upstream model calls mid-conversation.

Usage examples:
```python
from voice_relay.bot import RelaySession, UpstreamSessionPeer, build_tool_bridge

peer = UpstreamSessionPeer(settings, session_id)
session = RelaySession(session_id, settings, client, peer, credential_provider,
                       build_tool_bridge(settings))
await session.run()
```
"""

from voice_relay.bot.relay_session import RelaySession
from voice_relay.bot.tool_bridge import ToolBridge, build_tool_bridge
from voice_relay.bot.upstream_peer import UpstreamSessionPeer

__all__ = ["RelaySession", "ToolBridge", "UpstreamSessionPeer", "build_tool_bridge"]
