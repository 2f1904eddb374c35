import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from voice_relay.bot.relay_session import RelaySession
from voice_relay.bot.tool_bridge import ToolBridge
from voice_relay.bot.upstream_peer import UpstreamSessionPeer
from voice_relay.config.settings import RelaySettings
from voice_relay.models.openai_schemas import (
    ResponseCreatedEvent,
    ResponseDoneEvent,
    SessionUpdatedEvent,
)
from voice_relay.services.credentials import Credential, CredentialProvider


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class RecordingClient:
    """Stand-in for ClientConnection that keeps every notification it is given."""

    def __init__(self):
        self.notifications = []
        self.closed = False

    async def send(self, notification):
        self.notifications.append(notification)
        return True

    async def close(self, code=1000):
        self.closed = True

    def types(self):
        return [n.type for n in self.notifications]

    def of_type(self, notification_type):
        return [n for n in self.notifications if n.type == notification_type]


class RecordingPeer(UpstreamSessionPeer):
    """Upstream peer that records commands instead of writing them to a socket."""

    def __init__(self, settings, session_id="test"):
        super().__init__(settings, session_id)
        self.sent = []
        self.closed = False
        self.credential = None

    async def connect(self, credential):
        self.credential = credential
        self.ws = MagicMock()
        self._connection_active = True

    async def send_event(self, event):
        if not self.is_open:
            return False
        self.sent.append(event)
        return True

    async def close(self):
        self.closed = True
        self._is_closing = True
        self._connection_active = False

    def sent_types(self):
        return [event["type"] for event in self.sent]


@pytest.fixture
def settings():
    return RelaySettings(
        api_key="test-api-key",
        settle_delay=0,
        greeting_delay=0,
        tool_result_delay=0,
        close_timeout=1,
    )


@pytest.fixture
def credential_provider():
    provider = AsyncMock(spec=CredentialProvider)
    provider.acquire.return_value = Credential(value="ek_test", expires_at=1700000000)
    return provider


@pytest.fixture
def client():
    return RecordingClient()


@pytest.fixture
def peer(settings):
    return RecordingPeer(settings)


@pytest.fixture
def tool_bridge():
    return ToolBridge()


@pytest.fixture
def session(settings, client, peer, credential_provider, tool_bridge):
    return RelaySession("test", settings, client, peer, credential_provider, tool_bridge)


@pytest_asyncio.fixture
async def ready_session(session, client, peer):
    """A session that is READY with the greeting already answered."""
    assert await session.start()
    await session.handle_upstream_event(SessionUpdatedEvent(type="session.updated"))
    await session.handle_upstream_event(ResponseCreatedEvent(type="response.created"))
    await session.handle_upstream_event(
        ResponseDoneEvent(type="response.done", response={"status": "completed"})
    )
    peer.sent.clear()
    client.notifications.clear()
    return session
