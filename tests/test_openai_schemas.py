import pytest
from pydantic import ValidationError

from voice_relay.models.openai_schemas import (
    AudioDeltaEvent,
    ErrorEvent,
    FunctionCallArgumentsDoneEvent,
    ItemCreatedEvent,
    RealtimeSessionResponse,
    ResponseDoneEvent,
    SessionUpdatedEvent,
    parse_upstream_event,
)


def test_parse_known_events():
    assert isinstance(parse_upstream_event({"type": "session.updated", "session": {}}), SessionUpdatedEvent)

    delta = parse_upstream_event({"type": "response.audio.delta", "delta": "AAAA", "item_id": "x"})
    assert isinstance(delta, AudioDeltaEvent)
    assert delta.delta == "AAAA"


def test_parse_unknown_event_returns_none():
    assert parse_upstream_event({"type": "rate_limits.updated", "rate_limits": []}) is None
    assert parse_upstream_event({"no": "type"}) is None


def test_parse_malformed_known_event_returns_none():
    assert parse_upstream_event({"type": "response.function_call_arguments.done"}) is None


def test_function_call_event():
    event = parse_upstream_event({
        "type": "response.function_call_arguments.done",
        "call_id": "call_1",
        "name": "web_search",
        "arguments": '{"query": "news"}',
    })

    assert isinstance(event, FunctionCallArgumentsDoneEvent)
    assert event.call_id == "call_1"
    assert event.name == "web_search"


@pytest.mark.parametrize("status, cancelled", [("completed", False), ("cancelled", True), (None, False)])
def test_response_done_status(status, cancelled):
    response = {"status": status} if status else {}
    event = ResponseDoneEvent(type="response.done", response=response)
    assert event.status == status
    assert event.cancelled is cancelled


def test_item_created_accessors():
    event = ItemCreatedEvent(
        type="conversation.item.created", item={"id": "item_1", "type": "function_call_output"}
    )
    assert event.item_id == "item_1"
    assert event.item_type == "function_call_output"


def test_error_event_defaults():
    event = parse_upstream_event({"type": "error"})
    assert isinstance(event, ErrorEvent)
    assert event.error.message == "Unknown error"

    event = parse_upstream_event({"type": "error", "error": {"code": "rate_limited", "message": "Slow down"}})
    assert event.error.code == "rate_limited"
    assert event.error.message == "Slow down"


def test_session_response_requires_client_secret():
    response = RealtimeSessionResponse.model_validate({
        "id": "sess_1",
        "client_secret": {"value": "ek_1", "expires_at": 1},
        "voice": "alloy",
    })
    assert response.client_secret.value == "ek_1"

    with pytest.raises(ValidationError):
        RealtimeSessionResponse.model_validate({"id": "sess_1"})
