# tests/test_events.py
import json

import pytest

from errors import InvalidMessage
from events import AuthEvent, ChangeEvent, ExpiryMessage, TriggerKind, classify

from .fakes import sqs_record, stream_record


@pytest.mark.parametrize(
    "event, kind",
    [
        ({"Records": [stream_record("INSERT", {"task_id": "t"})]}, TriggerKind.STREAM),
        ({"Records": [sqs_record("{}")]}, TriggerKind.QUEUE),
        ({"triggerSource": "PostAuthentication_Authentication", "userName": "u"}, TriggerKind.POST_AUTH),
        ({"httpMethod": "GET", "path": "/tasks"}, TriggerKind.HTTP),
        ({"version": "2.0", "requestContext": {"http": {"method": "GET"}}}, TriggerKind.HTTP),
        ({"source": "aws.events"}, TriggerKind.UNKNOWN),
        ("not-a-dict", TriggerKind.UNKNOWN),
    ],
)
def test_classify(event, kind) -> None:
    assert classify(event) is kind


def test_change_event_decodes_typed_image() -> None:
    rec = stream_record("MODIFY", {"task_id": "t1", "owner_id": "u1", "deadline": 1234})
    change = ChangeEvent.from_stream_record(rec)

    assert change.event_kind == "MODIFY"
    assert change.after_image["task_id"] == "t1"
    assert change.after_image["deadline"] == 1234


def test_change_event_without_new_image() -> None:
    change = ChangeEvent.from_stream_record(stream_record("REMOVE"))
    assert change.after_image is None


def test_expiry_message_body_round_trip() -> None:
    msg = ExpiryMessage(task_id="t1", owner_id="u1", deadline=1_700_000_300_000)
    assert ExpiryMessage.from_body(msg.to_body()) == msg


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        json.dumps([1, 2]),
        json.dumps({"task_id": "t1"}),
        json.dumps({"task_id": "t1", "owner_id": "u1", "deadline": "soon"}),
    ],
)
def test_expiry_message_rejects_bad_bodies(body) -> None:
    with pytest.raises(InvalidMessage):
        ExpiryMessage.from_body(body)


def test_expiry_message_accepts_user_id_key() -> None:
    msg = ExpiryMessage.from_body(json.dumps({"task_id": "t1", "user_id": "u1"}))
    assert msg.owner_id == "u1"
    assert msg.deadline is None


def test_auth_event_from_cognito() -> None:
    event = {
        "triggerSource": "PostAuthentication_Authentication",
        "userName": "alice",
        "request": {"userAttributes": {"email": "alice@example.com"}},
    }
    assert AuthEvent.from_cognito(event) == AuthEvent(username="alice", email="alice@example.com")
