from __future__ import annotations

import json

import pytest

from ccmonitor import protocol
from ccmonitor.errors import MalformedMessageError


def test_parse_known_messages() -> None:
    message = protocol.parse_message(json.dumps({"type": "resize", "sessionId": "s", "cols": 90, "rows": 20}))
    assert isinstance(message, protocol.ResizeMessage)
    assert (message.session_id, message.cols, message.rows) == ("s", 90, 20)

    legacy = protocol.parse_message(json.dumps({"kind": "subscribe", "sessionId": "s"}))
    assert isinstance(legacy, protocol.SubscribeMessage)


def test_unknown_type_is_not_an_error() -> None:
    assert protocol.parse_message(json.dumps({"type": "ping"})) is None
    assert protocol.message_type(json.dumps({"type": "ping"})) == "ping"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps([1, 2]),
        json.dumps({"sessionId": "s"}),
        json.dumps({"type": "input", "sessionId": "s", "data": ""}),
        json.dumps({"type": "resize", "sessionId": "s", "cols": 0, "rows": 10}),
        json.dumps({"type": "subscribe"}),
    ],
)
def test_malformed_messages_raise(raw: str) -> None:
    with pytest.raises(MalformedMessageError):
        protocol.parse_message(raw)


def test_error_event_scopes_session_only_when_given() -> None:
    assert protocol.error("bad") == {"type": "error", "message": "bad"}
    assert protocol.error("bad", "s") == {"type": "error", "message": "bad", "sessionId": "s"}
