"""
Protocol Serializer

Converts between channel control messages and the JSON text frames sent over
the WebSocket. Pure functions, no state.

Outbound wire format (control envelope):
  {"event":"pusher:subscribe","data":{"channel":"feed","resume_after":"42"}}

Inbound wire format (application event):
  {"event":"price","channel":"feed","id":"43","data":"<opaque string>"}

The inbound "data" field is left as a string; only control events that need
its fields (subscription success) decode it a second time via decode_data().
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from .types import ProtocolDecodeError

SUBSCRIBE_EVENT = "pusher:subscribe"
UNSUBSCRIBE_EVENT = "pusher:unsubscribe"
CONNECTION_ESTABLISHED_EVENT = "pusher:connection_established"
ERROR_EVENT = "pusher:error"

INTERNAL_EVENT_PREFIX = "pusher_internal:"
SUBSCRIPTION_SUCCEEDED_EVENT = "pusher_internal:subscription_succeeded"

_SEPARATORS = (",", ":")


@dataclass(frozen=True)
class InboundMessage:
    """Outer envelope of a received frame."""

    event: Optional[str]
    data: Optional[str | dict[str, Any]] = None
    id: Optional[str] = None
    channel: Optional[str] = None


def _encode(event: str, data: dict[str, Any]) -> str:
    return json.dumps({"event": event, "data": data}, separators=_SEPARATORS)


def encode_subscribe(channel: str, resume_after: Optional[str] = None) -> str:
    """
    Build the subscribe envelope for a channel.

    resume_after is included only when a token is supplied, so a first-time
    subscribe never carries the field.
    """
    data: dict[str, Any] = {"channel": channel}
    if resume_after is not None:
        data["resume_after"] = resume_after
    return _encode(SUBSCRIBE_EVENT, data)


def encode_unsubscribe(channel: str) -> str:
    """Build the unsubscribe envelope for a channel."""
    return _encode(UNSUBSCRIBE_EVENT, {"channel": channel})


def _optional_str(envelope: dict[str, Any], key: str, raw: str) -> Optional[str]:
    value = envelope.get(key)
    if value is not None and not isinstance(value, str):
        raise ProtocolDecodeError(
            f"Malformed envelope — '{key}' must be a string, got {type(value).__name__}",
            raw=raw,
        )
    return value


def _data_field(envelope: dict[str, Any], raw: str) -> Optional[str | dict[str, Any]]:
    # Control events may carry data as an already-decoded object.
    value = envelope.get("data")
    if isinstance(value, dict):
        return value
    return _optional_str(envelope, "data", raw)


def decode(raw: str | bytes) -> InboundMessage:
    """
    Decode a received text frame into its outer envelope.

    Raises ProtocolDecodeError if the frame is not JSON, is not an object, or
    carries a non-string event/channel/id field or a data field that is
    neither a string nor an object.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolDecodeError(f"Frame is not valid UTF-8: {exc}", raw=raw) from exc
    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolDecodeError(f"Failed to decode envelope: {exc}", raw=raw) from exc

    if not isinstance(envelope, dict):
        raise ProtocolDecodeError(
            f"Malformed envelope — expected a JSON object, got {type(envelope).__name__}",
            raw=raw,
        )

    return InboundMessage(
        event=_optional_str(envelope, "event", raw),
        data=_data_field(envelope, raw),
        id=_optional_str(envelope, "id", raw),
        channel=_optional_str(envelope, "channel", raw),
    )


def decode_data(data: Optional[str | dict[str, Any]]) -> dict[str, Any]:
    """
    Decode the nested data of a control event.

    Accepts the JSON string form or an object that the outer decode already
    parsed. A missing data field decodes to an empty dict.
    """
    if data is None:
        return {}
    if isinstance(data, dict):
        return dict(data)
    try:
        decoded = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ProtocolDecodeError(f"Failed to decode event data: {exc}", raw=data) from exc
    if not isinstance(decoded, dict):
        raise ProtocolDecodeError(
            f"Malformed event data — expected a JSON object, got {type(decoded).__name__}",
            raw=data,
        )
    return decoded
