"""Observer connection protocol: inbound commands and outbound events."""

from __future__ import annotations

import json
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedMessageError


class _Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: str = Field(..., alias="sessionId", min_length=1)


class SubscribeMessage(_Inbound):
    type: Literal["subscribe"] = "subscribe"


class UnsubscribeMessage(_Inbound):
    type: Literal["unsubscribe"] = "unsubscribe"


class InputMessage(_Inbound):
    type: Literal["input"] = "input"
    data: str = Field(..., min_length=1)


class ResizeMessage(_Inbound):
    type: Literal["resize"] = "resize"
    cols: int = Field(..., gt=0)
    rows: int = Field(..., gt=0)


InboundMessage = Union[SubscribeMessage, UnsubscribeMessage, InputMessage, ResizeMessage]

_INBOUND_TYPES: dict[str, type[_Inbound]] = {
    "subscribe": SubscribeMessage,
    "unsubscribe": UnsubscribeMessage,
    "input": InputMessage,
    "resize": ResizeMessage,
}


def parse_message(raw: str | bytes) -> InboundMessage | None:
    """Parse one inbound frame.

    Returns ``None`` for a well-formed message of an unknown type and raises
    :class:`MalformedMessageError` for anything that cannot be parsed.
    """

    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedMessageError(f"Message is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise MalformedMessageError("Message must be a JSON object")

    tag = document.get("type", document.get("kind"))
    if not isinstance(tag, str):
        raise MalformedMessageError("Message has no type")

    model = _INBOUND_TYPES.get(tag)
    if model is None:
        return None
    payload = {key: value for key, value in document.items() if key not in {"type", "kind"}}
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise MalformedMessageError(f"Invalid {tag} message: {exc.errors()}") from exc


def message_type(raw: str | bytes) -> str | None:
    """Best-effort type tag of a frame, for logging ignored messages."""

    try:
        document = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if isinstance(document, dict):
        tag = document.get("type", document.get("kind"))
        return tag if isinstance(tag, str) else None
    return None


def session_created(session: dict[str, Any]) -> dict[str, Any]:
    return {"type": "session:created", "session": session}


def session_deleted(session_id: str) -> dict[str, Any]:
    return {"type": "session:deleted", "sessionId": session_id}


def session_data(session_id: str, data: str) -> dict[str, Any]:
    return {"type": "session:data", "sessionId": session_id, "data": data}


def session_exit(session_id: str, exit_code: int | None) -> dict[str, Any]:
    return {"type": "session:exit", "sessionId": session_id, "exitCode": exit_code}


def notification(session_id: str, notify_type: str, status: str) -> dict[str, Any]:
    return {
        "type": "notification",
        "sessionId": session_id,
        "notifyType": notify_type,
        "status": status,
    }


def error(message: str, session_id: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": "error", "message": message}
    if session_id is not None:
        payload["sessionId"] = session_id
    return payload


__all__ = [
    "InboundMessage",
    "InputMessage",
    "ResizeMessage",
    "SubscribeMessage",
    "UnsubscribeMessage",
    "error",
    "message_type",
    "notification",
    "parse_message",
    "session_created",
    "session_data",
    "session_deleted",
    "session_exit",
]
