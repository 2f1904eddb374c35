"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol tags and defaults so the client-facing
and upstream vocabularies are spelled the same way everywhere.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_relay"

# Defaults for the OpenAI Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview"
DEFAULT_VOICE = "alloy"
DEFAULT_LANGUAGE = "en"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
OPENAI_API_BASE = "https://api.openai.com"
OPENAI_REALTIME_URL = "wss://api.openai.com/v1/realtime"
OPENAI_BETA_HEADER = "realtime=v1"

# Audio format constants
AUDIO_FORMAT_PCM16 = "pcm16"

# Client -> relay message types
CLIENT_MUTE = "mute"
CLIENT_UNMUTE = "unmute"
CLIENT_TEXT_MESSAGE = "text_message"
CLIENT_AUDIO = "audio"
CLIENT_ATTACHMENT = "attachment"
CLIENT_CANCEL = "cancel"
CLIENT_SET_LANGUAGE = "set_language"
CLIENT_CLEAR = "clear"

# Upstream event types (server -> relay)
EVENT_SESSION_CREATED = "session.created"
EVENT_SESSION_UPDATED = "session.updated"
EVENT_SPEECH_STARTED = "input_audio_buffer.speech_started"
EVENT_SPEECH_STOPPED = "input_audio_buffer.speech_stopped"
EVENT_AUDIO_DELTA = "response.audio.delta"
EVENT_INPUT_TRANSCRIPT_COMPLETED = "conversation.item.input_audio_transcription.completed"
EVENT_AUDIO_TRANSCRIPT_DONE = "response.audio_transcript.done"
EVENT_TEXT_DONE = "response.text.done"
EVENT_RESPONSE_CREATED = "response.created"
EVENT_RESPONSE_DONE = "response.done"
EVENT_FUNCTION_CALL_ARGUMENTS_DONE = "response.function_call_arguments.done"
EVENT_ITEM_CREATED = "conversation.item.created"
EVENT_ITEM_DELETED = "conversation.item.deleted"
EVENT_ERROR = "error"

# Upstream command types (relay -> server)
COMMAND_SESSION_UPDATE = "session.update"
COMMAND_AUDIO_APPEND = "input_audio_buffer.append"
COMMAND_AUDIO_CLEAR = "input_audio_buffer.clear"
COMMAND_ITEM_CREATE = "conversation.item.create"
COMMAND_ITEM_DELETE = "conversation.item.delete"
COMMAND_RESPONSE_CREATE = "response.create"
COMMAND_RESPONSE_CANCEL = "response.cancel"

# Response statuses reported in response.done
RESPONSE_STATUS_CANCELLED = "cancelled"
