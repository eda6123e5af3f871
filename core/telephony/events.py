"""
Typed Telnyx webhook events.

Incoming envelopes look like ``{"data": {"event_type": ..., "payload": {...}}}``.
``parse_event`` turns one into exactly one of the frozen dataclasses below;
event types the back office does not act on become ``UnhandledEvent``.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union


class MalformedEventError(ValueError):
    """Raised when an envelope has no usable ``data.event_type``."""


@dataclass(frozen=True)
class CallInitiated:
    call_control_id: str
    from_number: str
    to_number: str
    direction: str
    event_type: str = "call.initiated"

    @property
    def is_incoming(self) -> bool:
        return self.direction == "incoming"


@dataclass(frozen=True)
class CallAnswered:
    call_control_id: str
    from_number: str
    to_number: str
    event_type: str = "call.answered"


@dataclass(frozen=True)
class CallHangup:
    call_control_id: str
    from_number: str
    to_number: str
    hangup_cause: Optional[str]
    duration_seconds: Optional[int]
    event_type: str = "call.hangup"

    @property
    def unanswered(self) -> bool:
        return self.hangup_cause == "unanswered"


@dataclass(frozen=True)
class RecordingSaved:
    call_control_id: str
    from_number: str
    to_number: str
    recording_url: Optional[str]
    duration_seconds: int
    event_type: str = "call.recording.saved"


@dataclass(frozen=True)
class GatherEnded:
    call_control_id: str
    from_number: str
    to_number: str
    digits: str
    client_state: Optional[str]
    event_type: str = "call.gather.ended"


@dataclass(frozen=True)
class MessageReceived:
    message_id: str
    from_number: str
    to_number: str
    text: str
    media_urls: Tuple[str, ...] = ()
    event_type: str = "message.received"


@dataclass(frozen=True)
class MessageFinalized:
    message_id: str
    status: str
    event_type: str = "message.finalized"


@dataclass(frozen=True)
class UnhandledEvent:
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


TelnyxEvent = Union[
    CallInitiated, CallAnswered, CallHangup, RecordingSaved, GatherEnded,
    MessageReceived, MessageFinalized, UnhandledEvent,
]


def encode_client_state(value: str) -> str:
    """Telnyx expects client_state as base64."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_client_state(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        # Already plain text
        return value


def _number(value: Any) -> str:
    # Call events carry plain strings, message events carry {"phone_number": ...}
    # or a list of them for recipients
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("phone_number")
    return value or ""


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _message_status(payload: Dict[str, Any]) -> str:
    status = payload.get("status")
    if status:
        return status
    recipients = payload.get("to")
    if isinstance(recipients, list) and recipients and isinstance(recipients[0], dict):
        return recipients[0].get("status") or ""
    return ""


def parse_event(envelope: Any) -> TelnyxEvent:
    """Build the typed event for a webhook envelope."""
    if not isinstance(envelope, dict) or not isinstance(envelope.get("data"), dict):
        raise MalformedEventError("Webhook body has no 'data' object")

    data = envelope["data"]
    event_type = data.get("event_type")
    if not event_type:
        raise MalformedEventError("Webhook body has no 'data.event_type'")

    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        raise MalformedEventError("Webhook 'data.payload' must be an object")

    call_control_id = payload.get("call_control_id") or ""
    from_number = _number(payload.get("from"))
    to_number = _number(payload.get("to"))

    if event_type == "call.initiated":
        return CallInitiated(
            call_control_id=call_control_id,
            from_number=from_number,
            to_number=to_number,
            direction=payload.get("direction") or data.get("direction") or "",
        )
    if event_type == "call.answered":
        return CallAnswered(call_control_id, from_number, to_number)
    if event_type == "call.hangup":
        return CallHangup(
            call_control_id=call_control_id,
            from_number=from_number,
            to_number=to_number,
            hangup_cause=payload.get("hangup_cause"),
            duration_seconds=_int_or_none(payload.get("duration_seconds")),
        )
    if event_type == "call.recording.saved":
        urls = payload.get("recording_urls") or {}
        duration = payload.get("recording_duration_sec", payload.get("duration_seconds"))
        return RecordingSaved(
            call_control_id=call_control_id,
            from_number=from_number,
            to_number=to_number,
            recording_url=urls.get("mp3") if isinstance(urls, dict) else None,
            duration_seconds=_int_or_none(duration) or 0,
        )
    if event_type == "call.gather.ended":
        return GatherEnded(
            call_control_id=call_control_id,
            from_number=from_number,
            to_number=to_number,
            digits=payload.get("digits") or payload.get("digit") or "",
            client_state=decode_client_state(payload.get("client_state")),
        )
    if event_type == "message.received":
        media = payload.get("media") or []
        return MessageReceived(
            message_id=payload.get("id") or "",
            from_number=from_number,
            to_number=to_number,
            text=payload.get("text") or "",
            media_urls=tuple(m["url"] for m in media if isinstance(m, dict) and m.get("url")),
        )
    if event_type == "message.finalized":
        return MessageFinalized(
            message_id=payload.get("id") or "",
            status=_message_status(payload),
        )
    return UnhandledEvent(event_type=event_type, payload=payload)
