"""
Realtime Voice Relay - browser/telephony client to OpenAI Realtime API bridge

This application relays a simplified client-facing WebSocket protocol to the
OpenAI Realtime API. Each client connection gets its own relay session which
negotiates an upstream session, queues client messages until the upstream is
ready, forwards voice activity, audio and transcripts, and makes sure only one
upstream response is generated at a time.

Architecture Overview:
- FastAPI server exposing the client WebSocket endpoint and a few HTTP helpers
- One upstream WebSocket per client, authorised with an ephemeral credential
- A per-connection state machine serialising client and upstream events

Key Components:
- bot: relay session state machine, upstream peer and tool-call bridge
- config: constants, settings, prompts and logging setup
- handlers: client connection handling
- models: client messages, outbound notifications and upstream events
- services: credential acquisition and web search
- websocket_manager: listener that pairs client connections with relay sessions

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key (required)
   - PORT: Port to run the server on (default 3000)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Point the client at ws://your-server:3000/ws
"""

__version__ = "1.0.0"
