"""
Relay session: the per-connection state machine between a client and the Realtime API.

One ``RelaySession`` exists per client connection. It acquires an ephemeral
credential, opens the upstream peer, negotiates the upstream session and then
routes messages in both directions until either side goes away.

Everything that can change session state arrives through ``inbox``: validated
client messages, classified upstream events, socket closures and finished tool
calls. ``run()`` consumes the inbox on a single task, so handlers never race
each other and no locks are needed. The task only suspends while waiting for
I/O or the short settle delays that let earlier upstream writes apply before a
response is requested.

Lifecycle::

    INITIALIZING --credential + upstream open--> NEGOTIATING
    NEGOTIATING  --session.updated-------------> READY   (queued messages replayed, greeting)
    READY        --response.created------------> RESPONDING
    RESPONDING   --response.done / error-------> READY
    any          --either socket closes--------> CLOSED

While the upstream session is not ready, control messages are queued and replayed
in arrival order once it is. Microphone audio is dropped instead: stale speech
replayed after negotiation would only confuse the upstream turn detection, and
losing it costs nothing the user would notice.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from voice_relay.bot.tool_bridge import ToolBridge
from voice_relay.bot.upstream_peer import UpstreamSessionPeer
from voice_relay.config.constants import (
    CLIENT_ATTACHMENT,
    CLIENT_AUDIO,
    CLIENT_CANCEL,
    CLIENT_CLEAR,
    CLIENT_MUTE,
    CLIENT_SET_LANGUAGE,
    CLIENT_TEXT_MESSAGE,
    CLIENT_UNMUTE,
    EVENT_AUDIO_DELTA,
    EVENT_AUDIO_TRANSCRIPT_DONE,
    EVENT_ERROR,
    EVENT_FUNCTION_CALL_ARGUMENTS_DONE,
    EVENT_INPUT_TRANSCRIPT_COMPLETED,
    EVENT_ITEM_CREATED,
    EVENT_ITEM_DELETED,
    EVENT_RESPONSE_CREATED,
    EVENT_RESPONSE_DONE,
    EVENT_SESSION_CREATED,
    EVENT_SESSION_UPDATED,
    EVENT_SPEECH_STARTED,
    EVENT_SPEECH_STOPPED,
    EVENT_TEXT_DONE,
    LOGGER_NAME,
)
from voice_relay.config.prompts import WEB_SEARCH_TOOL_NAME
from voice_relay.config.settings import RelaySettings
from voice_relay.exceptions import CredentialError, UpstreamConnectionError
from voice_relay.models.client_messages import (
    AttachmentMessage,
    AudioMessage,
    ClientFile,
    ClientMessage,
    SetLanguageMessage,
    TextMessage,
)
from voice_relay.models.notifications import (
    AttachmentReceivedNotification,
    AudioNotification,
    Capabilities,
    ConnectedNotification,
    ConversationClearedNotification,
    ErrorNotification,
    LanguageSetNotification,
    MutedNotification,
    OutboundNotification,
    TranscriptNotification,
    VadStartNotification,
    VadStopNotification,
    WarningNotification,
)
from voice_relay.models.openai_schemas import (
    AudioDeltaEvent,
    AudioTranscriptDoneEvent,
    ErrorEvent,
    FunctionCallArgumentsDoneEvent,
    InputTranscriptCompletedEvent,
    ItemCreatedEvent,
    ItemDeletedEvent,
    ResponseDoneEvent,
    TextDoneEvent,
    UpstreamEvent,
)
from voice_relay.models.session import (
    ClientDisconnected,
    ClientInbound,
    RelayState,
    SessionEvent,
    ToolCallFinished,
    UpstreamDisconnected,
    UpstreamInbound,
)
from voice_relay.services.credentials import CredentialProvider

logger = logging.getLogger(LOGGER_NAME)

BUSY_WARNING = "Please wait for the current response to finish"


def describe_file(file: ClientFile) -> str:
    """Render one file for inclusion in a user text item."""
    if file.has_text:
        return f"\n\n[Content from {file.display_name}]:\n{file.extracted_text}"
    kind = file.content_type or "unknown type"
    return f"\n\n[Attached file {file.display_name} ({kind}) could not be processed as text]"


def build_composite_text(text: str, files: List[ClientFile]) -> str:
    """Append each file's text, or a placeholder for it, to the user's message."""
    return text + "".join(describe_file(file) for file in files)


class RelaySession:
    """
    State machine bridging one client connection to one upstream Realtime session.

    Args:
        session_id: Correlation token used in logs and the ``connected`` notification
        settings: Process-wide relay settings
        client: Client connection exposing ``send(notification)`` and ``close()``
        peer: Upstream peer for this session
        credential_provider: Source of the ephemeral upstream credential
        tool_bridge: Tools the upstream model may call
    """

    def __init__(self, session_id: str, settings: RelaySettings, client,
                 peer: UpstreamSessionPeer, credential_provider: CredentialProvider,
                 tool_bridge: Optional[ToolBridge] = None):
        self.session_id = session_id
        self.settings = settings
        self.client = client
        self.peer = peer
        self.credential_provider = credential_provider
        self.tool_bridge = tool_bridge if tool_bridge is not None else ToolBridge()

        self.state = RelayState.INITIALIZING
        self.muted = False
        self.language = settings.default_language
        self.pending: Deque[ClientMessage] = deque()
        self.inbox: "asyncio.Queue[SessionEvent]" = asyncio.Queue()

        self._awaiting_response = False
        self._continuation_pending = False
        self._conversation_items: List[str] = []
        self._tool_calls: Deque[FunctionCallArgumentsDoneEvent] = deque()
        self._tool_task: Optional[asyncio.Task] = None
        self._shut_down = False

        self._client_routes: Dict[str, Callable[[ClientMessage], Awaitable[None]]] = {
            CLIENT_MUTE: self._handle_mute,
            CLIENT_UNMUTE: self._handle_unmute,
            CLIENT_TEXT_MESSAGE: self._handle_text_message,
            CLIENT_ATTACHMENT: self._handle_attachment,
            CLIENT_AUDIO: self._handle_audio,
            CLIENT_CANCEL: self._handle_cancel,
            CLIENT_SET_LANGUAGE: self._handle_set_language,
            CLIENT_CLEAR: self._handle_clear,
        }
        self._upstream_routes: Dict[str, Callable[[UpstreamEvent], Awaitable[None]]] = {
            EVENT_SESSION_CREATED: self._on_session_created,
            EVENT_SESSION_UPDATED: self._on_session_updated,
            EVENT_SPEECH_STARTED: self._on_speech_started,
            EVENT_SPEECH_STOPPED: self._on_speech_stopped,
            EVENT_AUDIO_DELTA: self._on_audio_delta,
            EVENT_INPUT_TRANSCRIPT_COMPLETED: self._on_user_transcript,
            EVENT_AUDIO_TRANSCRIPT_DONE: self._on_assistant_transcript,
            EVENT_TEXT_DONE: self._on_assistant_transcript,
            EVENT_RESPONSE_CREATED: self._on_response_created,
            EVENT_RESPONSE_DONE: self._on_response_done,
            EVENT_FUNCTION_CALL_ARGUMENTS_DONE: self._on_function_call,
            EVENT_ITEM_CREATED: self._on_item_created,
            EVENT_ITEM_DELETED: self._on_item_deleted,
            EVENT_ERROR: self._on_error,
        }

    @property
    def upstream_connected(self) -> bool:
        return self.peer.is_open

    @property
    def responding(self) -> bool:
        return self.state is RelayState.RESPONDING

    @property
    def busy(self) -> bool:
        """True while a response is being generated or has been requested."""
        return self.responding or self._awaiting_response

    @property
    def is_ready(self) -> bool:
        return self.state in (RelayState.READY, RelayState.RESPONDING)

    @property
    def is_closed(self) -> bool:
        return self.state is RelayState.CLOSED

    def _transition(self, new_state: RelayState) -> None:
        if new_state is not self.state:
            logger.debug(f"[{self.session_id}] {self.state.value} -> {new_state.value}")
            self.state = new_state

    def submit_client_message(self, message: ClientMessage) -> None:
        """Queue a validated client message for the session task."""
        self.inbox.put_nowait(ClientInbound(message))

    def notify_client_closed(self, reason: Optional[str] = None) -> None:
        self.inbox.put_nowait(ClientDisconnected(reason))

    async def _on_upstream_event(self, event: UpstreamEvent) -> None:
        await self.inbox.put(UpstreamInbound(event))

    async def _on_upstream_closed(self, reason: Optional[str]) -> None:
        await self.inbox.put(UpstreamDisconnected(reason))

    async def run(self) -> None:
        """
        Drive the session until either leg closes.

        Sets up the upstream session, then processes inbox events one at a time.
        Both connections are closed on the way out, whatever the reason.
        """
        try:
            if await self.start():
                while not self.is_closed:
                    event = await self.inbox.get()
                    await self.handle_event(event)
        finally:
            await self.shutdown()

    async def start(self) -> bool:
        """
        Acquire a credential, open the upstream peer and send the session configuration.

        Returns:
            bool: True when the session reached NEGOTIATING, False if setup failed
        """
        logger.info(f"[{self.session_id}] Initializing relay session")
        try:
            credential = await self.credential_provider.acquire()
            self.peer.set_handlers(self._on_upstream_event, self._on_upstream_closed)
            await self.peer.connect(credential)
        except (CredentialError, UpstreamConnectionError) as e:
            logger.error(f"[{self.session_id}] Setup failed: {e}")
            await self._notify(ErrorNotification(message=f"Setup failed: {e}"))
            self._transition(RelayState.CLOSED)
            return False

        self._transition(RelayState.NEGOTIATING)
        await self.peer.configure(self.language, self.tool_bridge.declarations())

        web_search = WEB_SEARCH_TOOL_NAME in self.tool_bridge
        await self._notify(ConnectedNotification(
            message="Connected to OpenAI with web search capabilities" if web_search
            else "Connected to OpenAI",
            session_id=self.session_id,
            language=self.language,
            voice=self.settings.voice,
            capabilities=Capabilities(
                files="text_only",
                web_search=web_search,
                note="Can search for real-time weather, news, sports, and more" if web_search else None,
            ),
        ))
        return True

    async def handle_event(self, event: SessionEvent) -> None:
        """Dispatch one inbox event."""
        if isinstance(event, ClientInbound):
            await self.handle_client_message(event.message)
        elif isinstance(event, UpstreamInbound):
            await self.handle_upstream_event(event.event)
        elif isinstance(event, ToolCallFinished):
            await self._on_tool_call_finished(event)
        elif isinstance(event, ClientDisconnected):
            logger.info(f"[{self.session_id}] Client disconnected")
            self._transition(RelayState.CLOSED)
        elif isinstance(event, UpstreamDisconnected):
            if not self.is_closed:
                logger.warning(f"[{self.session_id}] {event.reason or 'Upstream connection closed'}")
                await self._notify(ErrorNotification(message=event.reason or "Upstream connection closed"))
                self._transition(RelayState.CLOSED)

    async def shutdown(self) -> None:
        """
        Close both legs and release the pending queue, tool calls and flags.
        """
        if self._shut_down:
            return
        self._shut_down = True
        self._transition(RelayState.CLOSED)

        dropped = len(self.pending)
        self.pending.clear()
        self._tool_calls.clear()
        self._awaiting_response = False
        self._continuation_pending = False
        if dropped:
            logger.info(f"[{self.session_id}] Dropped {dropped} queued message(s) on close")

        if self._tool_task is not None and not self._tool_task.done():
            self._tool_task.cancel()
            await asyncio.gather(self._tool_task, return_exceptions=True)
        self._tool_task = None

        await self.peer.close()
        await self.client.close()
        logger.info(f"[{self.session_id}] Relay session closed")

    async def handle_client_message(self, message: ClientMessage) -> None:
        """
        Route a client message, or queue it while the upstream session is not ready.
        """
        if self.is_closed:
            logger.debug(f"[{self.session_id}] Dropping {message.type} - session closed")
            return

        if not self.is_ready:
            if isinstance(message, AudioMessage):
                return
            self.pending.append(message)
            logger.info(f"[{self.session_id}] Queued: {message.type}")
            return

        await self._route(message)

    async def _route(self, message: ClientMessage) -> None:
        handler = self._client_routes.get(message.type)
        if handler is None:
            logger.warning(f"[{self.session_id}] Unhandled client message type: {message.type}")
            return
        await handler(message)

    async def _handle_mute(self, message: ClientMessage) -> None:
        self.muted = True
        logger.info(f"[{self.session_id}] Muted")
        await self._notify(MutedNotification(muted=True))

    async def _handle_unmute(self, message: ClientMessage) -> None:
        self.muted = False
        logger.info(f"[{self.session_id}] Unmuted")
        await self._notify(MutedNotification(muted=False))

    async def _handle_text_message(self, message: TextMessage) -> None:
        logger.info(f"[{self.session_id}] Text: \"{message.text[:100]}\"")
        if self.busy:
            await self._reject_busy(message)
            return

        if message.files:
            logger.info(f"[{self.session_id}] Processing {len(message.files)} file(s) as text")
        await self._submit_user_text(build_composite_text(message.text, message.files))
        await self._notify(TranscriptNotification(role="user", text=message.text, language=self.language))

    async def _handle_attachment(self, message: AttachmentMessage) -> None:
        logger.info(f"[{self.session_id}] Attachment: {message.filename}")
        if self.busy:
            await self._reject_busy(message)
            return

        file = message.as_file()
        if not file.has_text:
            await self._notify(ErrorNotification(
                message=f"Could not extract content from {message.filename}"
            ))
            return

        await self._notify(AttachmentReceivedNotification(filename=message.filename))
        text = f"The user shared a file named {message.filename}.{describe_file(file)}"
        await self._submit_user_text(text)

    async def _handle_audio(self, message: AudioMessage) -> None:
        if self.muted:
            return
        await self.peer.append_audio(message.data)

    async def _handle_cancel(self, message: ClientMessage) -> None:
        if not self.responding:
            logger.debug(f"[{self.session_id}] Cancel ignored - no response in progress")
            return
        logger.info(f"[{self.session_id}] Cancelling current response")
        await self.peer.cancel_response()

    async def _handle_set_language(self, message: SetLanguageMessage) -> None:
        logger.info(f"[{self.session_id}] Language change: {message.language}")
        self.language = message.language
        await self.peer.update_transcription_language(message.language)
        await self._notify(LanguageSetNotification(language=message.language))

    async def _handle_clear(self, message: ClientMessage) -> None:
        items = list(self._conversation_items)
        logger.info(f"[{self.session_id}] Clearing conversation ({len(items)} item(s))")
        self._conversation_items.clear()
        for item_id in items:
            await self.peer.delete_item(item_id)
        await self.peer.clear_audio_buffer()
        await self._notify(ConversationClearedNotification())

    async def _reject_busy(self, message: ClientMessage) -> None:
        logger.info(f"[{self.session_id}] Skipping {message.type} - response in progress")
        await self._notify(WarningNotification(message=BUSY_WARNING))

    async def _submit_user_text(self, text: str) -> None:
        """Add a user text item upstream and ask for a reply once it has settled."""
        await self.peer.clear_audio_buffer()
        await self.peer.create_user_text_item(text)
        await asyncio.sleep(self.settings.settle_delay)
        await self._request_response()

    async def _request_response(self) -> bool:
        """Send response.create unless a response is already requested or running."""
        if self.busy or not self.upstream_connected:
            logger.debug(f"[{self.session_id}] Not requesting response (busy={self.busy})")
            return False
        logger.info(f"[{self.session_id}] Creating response...")
        if await self.peer.request_response():
            self._awaiting_response = True
            return True
        return False

    async def handle_upstream_event(self, event: UpstreamEvent) -> None:
        """Translate one upstream event into state changes and client notifications."""
        if self.is_closed:
            return
        handler = self._upstream_routes.get(event.type)
        if handler is not None:
            await handler(event)

    async def _on_session_created(self, event: UpstreamEvent) -> None:
        logger.debug(f"[{self.session_id}] Upstream session created")

    async def _on_session_updated(self, event: UpstreamEvent) -> None:
        if self.state is not RelayState.NEGOTIATING:
            logger.debug(f"[{self.session_id}] Session configuration updated")
            return

        logger.info(f"[{self.session_id}] Session ready")
        self._transition(RelayState.READY)

        while self.pending and not self.is_closed:
            queued = self.pending.popleft()
            logger.info(f"[{self.session_id}] Processing queued: {queued.type}")
            await self._route(queued)

        await asyncio.sleep(self.settings.greeting_delay)
        if not self.is_closed and not self.busy:
            logger.info(f"[{self.session_id}] Sending greeting...")
            await self._request_response()

    async def _on_speech_started(self, event: UpstreamEvent) -> None:
        logger.info(f"[{self.session_id}] Speech started")
        await self._notify(VadStartNotification())

    async def _on_speech_stopped(self, event: UpstreamEvent) -> None:
        logger.info(f"[{self.session_id}] Speech stopped")
        await self._notify(VadStopNotification())

    async def _on_audio_delta(self, event: AudioDeltaEvent) -> None:
        if event.delta:
            await self._notify(AudioNotification(data=event.delta, format=self.settings.output_audio_format))

    async def _on_user_transcript(self, event: InputTranscriptCompletedEvent) -> None:
        logger.info(f"[{self.session_id}] User: \"{event.transcript}\"")
        await self._notify(TranscriptNotification(role="user", text=event.transcript, language=self.language))

    async def _on_assistant_transcript(self, event: UpstreamEvent) -> None:
        if isinstance(event, AudioTranscriptDoneEvent):
            text = event.transcript
        elif isinstance(event, TextDoneEvent):
            text = event.text
        else:
            return
        logger.info(f"[{self.session_id}] AI: \"{text}\"")
        await self._notify(TranscriptNotification(role="assistant", text=text, language=self.language))

    async def _on_response_created(self, event: UpstreamEvent) -> None:
        self._awaiting_response = False
        if self.state is RelayState.READY:
            self._transition(RelayState.RESPONDING)
        logger.info(f"[{self.session_id}] Response started")

    async def _on_response_done(self, event: ResponseDoneEvent) -> None:
        self._awaiting_response = False
        if self.state is RelayState.RESPONDING:
            self._transition(RelayState.READY)
        if event.cancelled:
            logger.info(f"[{self.session_id}] Response cancelled")
        else:
            logger.info(f"[{self.session_id}] Response completed - ready for next input")

        if self._continuation_pending and self._tool_task is None and not self._tool_calls:
            self._continuation_pending = False
            logger.info(f"[{self.session_id}] Triggering deferred response with tool results")
            await self._request_response()

    async def _on_item_created(self, event: ItemCreatedEvent) -> None:
        if event.item_id and event.item_id not in self._conversation_items:
            self._conversation_items.append(event.item_id)
        if event.item_type == "function_call_output":
            logger.info(f"[{self.session_id}] Function output created")

    async def _on_item_deleted(self, event: ItemDeletedEvent) -> None:
        if event.item_id in self._conversation_items:
            self._conversation_items.remove(event.item_id)

    async def _on_error(self, event: ErrorEvent) -> None:
        logger.error(f"[{self.session_id}] OpenAI error: {event.error.message}")
        self._awaiting_response = False
        if self.state is RelayState.RESPONDING:
            self._transition(RelayState.READY)
        await self._notify(ErrorNotification(message=event.error.message))

    async def _on_function_call(self, event: FunctionCallArgumentsDoneEvent) -> None:
        logger.info(f"[{self.session_id}] Function call: {event.name}")
        self._tool_calls.append(event)
        self._start_next_tool_call()

    def _start_next_tool_call(self) -> None:
        """Start the oldest queued tool call unless one is already running."""
        if self._tool_task is not None or not self._tool_calls:
            return
        call = self._tool_calls.popleft()
        self._tool_task = asyncio.create_task(self._run_tool_call(call))

    async def _run_tool_call(self, call: FunctionCallArgumentsDoneEvent) -> None:
        output = await self.tool_bridge.invoke(call.name, call.arguments)
        await self.inbox.put(ToolCallFinished(call_id=call.call_id, name=call.name, output=output))

    async def _on_tool_call_finished(self, result: ToolCallFinished) -> None:
        self._tool_task = None
        if self.is_closed:
            return

        logger.info(f"[{self.session_id}] Tool {result.name} completed, sending result back")
        await self.peer.create_function_output(result.call_id, result.output)

        if self._tool_calls:
            self._start_next_tool_call()
            return

        await asyncio.sleep(self.settings.tool_result_delay)
        if self.busy:
            self._continuation_pending = True
            return
        logger.info(f"[{self.session_id}] Triggering response with tool results")
        await self._request_response()

    async def _notify(self, notification: OutboundNotification) -> None:
        await self.client.send(notification)
