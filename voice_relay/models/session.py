"""
Relay session state and the events that drive it.

A relay session is fed through a single inbox. The client reader, the upstream
receive loop and tool-call tasks each post one of the event types below, and
the session task consumes them one at a time, so session state only ever
changes on that task.

Legal state/flag combinations:

============  ======  =================  ==========================================
state         muted   awaiting_response  meaning
============  ======  =================  ==========================================
INITIALIZING  any     False              credential and upstream connect pending
NEGOTIATING   any     False              session.update sent, waiting for the ack
READY         any     True/False         routing; True while response.create is unacked
RESPONDING    any     False              upstream is generating a response
CLOSED        any     False              terminal, pending queue released
============  ======  =================  ==========================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from voice_relay.models.client_messages import ClientMessage
from voice_relay.models.openai_schemas import UpstreamEvent


class RelayState(str, Enum):
    """Lifecycle of a relay session."""

    INITIALIZING = "initializing"
    NEGOTIATING = "negotiating"
    READY = "ready"
    RESPONDING = "responding"
    CLOSED = "closed"


@dataclass(frozen=True)
class ClientInbound:
    """A validated message from the client."""

    message: ClientMessage


@dataclass(frozen=True)
class ClientDisconnected:
    """The client socket went away."""

    reason: Optional[str] = None


@dataclass(frozen=True)
class UpstreamInbound:
    """A classified event from the upstream service."""

    event: UpstreamEvent


@dataclass(frozen=True)
class UpstreamDisconnected:
    """The upstream socket closed or failed."""

    reason: Optional[str] = None


@dataclass(frozen=True)
class ToolCallFinished:
    """A tool invocation produced its output text."""

    call_id: str
    name: str
    output: str


SessionEvent = Union[
    ClientInbound,
    ClientDisconnected,
    UpstreamInbound,
    UpstreamDisconnected,
    ToolCallFinished,
]
