"""Wire messages of the gossip and client protocol and their JSON forms.

Enumerations are encoded externally tagged: a variant without fields is its
name as a string, any other variant is an object with the name as its only key.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from rexstore.kvstore import VersionedValue


class ProtocolError(ValueError):
    """Raised when a JSON document is not a valid protocol message."""


@dataclass
class UpdateMessage:
    """Entries pushed to a peer."""

    updates: dict[str, VersionedValue] = field(default_factory=dict)


@dataclass
class SyncRequestMessage:
    """Request for a peer's full data set."""


@dataclass
class SyncResponseMessage:
    """A peer's full data set."""

    data: dict[str, VersionedValue] = field(default_factory=dict)


@dataclass
class PingMessage:
    """Liveness probe."""

    sender: str


@dataclass
class PongMessage:
    """Answer to a ping, listing the responder's active peers."""

    sender: str
    members: list[str] = field(default_factory=list)


Message = Union[UpdateMessage, SyncRequestMessage, SyncResponseMessage, PingMessage, PongMessage]


@dataclass
class GossipCommand:
    """Carries a gossip message."""

    message: Message


@dataclass
class GetCommand:
    key: str


@dataclass
class SetCommand:
    key: str
    value: str
    node_id: str


@dataclass
class GetPeersCommand:
    pass


@dataclass
class HealthCommand:
    pass


Command = Union[GossipCommand, GetCommand, SetCommand, GetPeersCommand, HealthCommand]


@dataclass
class ValueData:
    key: str
    value: str | None
    found: bool


@dataclass
class SetResultData:
    key: str
    value: str
    timestamp: int


@dataclass
class GossipMessageData:
    message: Message


@dataclass
class PeerListData:
    peers: list[str] = field(default_factory=list)


@dataclass
class HealthInfoData:
    status: str
    node_id: str
    endpoint: str


ResponseData = Union[ValueData, SetResultData, GossipMessageData, PeerListData, HealthInfoData]


@dataclass
class OkResponse:
    data: ResponseData | None = None


@dataclass
class ErrorResponse:
    message: str


Response = Union[OkResponse, ErrorResponse]


_NO_BODY = object()


def _split_variant(obj: Any, what: str) -> tuple[str, Any]:
    if isinstance(obj, str):
        return obj, _NO_BODY
    if isinstance(obj, Mapping) and len(obj) == 1:
        ((tag, body),) = obj.items()
        if isinstance(tag, str):
            return tag, body
    raise ProtocolError(f"invalid {what}: {obj!r}")


def _unit(tag: str, body: Any) -> None:
    if body is not _NO_BODY and body is not None:
        raise ProtocolError(f"variant {tag!r} takes no fields")


def _fields(tag: str, body: Any) -> Mapping[str, Any]:
    if not isinstance(body, Mapping):
        raise ProtocolError(f"variant {tag!r} needs an object of fields")
    return body


def _require(fields: Mapping[str, Any], name: str, tag: str) -> Any:
    try:
        return fields[name]
    except KeyError:
        raise ProtocolError(f"variant {tag!r} is missing field {name!r}") from None


def _str(fields: Mapping[str, Any], name: str, tag: str) -> str:
    value = _require(fields, name, tag)
    if not isinstance(value, str):
        raise ProtocolError(f"field {name!r} of {tag!r} must be a string")
    return value


def _optional_str(fields: Mapping[str, Any], name: str, tag: str) -> str | None:
    value = fields.get(name)
    if value is not None and not isinstance(value, str):
        raise ProtocolError(f"field {name!r} of {tag!r} must be a string or null")
    return value


def _bool(fields: Mapping[str, Any], name: str, tag: str) -> bool:
    value = _require(fields, name, tag)
    if not isinstance(value, bool):
        raise ProtocolError(f"field {name!r} of {tag!r} must be a boolean")
    return value


def _uint(fields: Mapping[str, Any], name: str, tag: str) -> int:
    value = _require(fields, name, tag)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ProtocolError(f"field {name!r} of {tag!r} must be a non-negative integer")
    return value


def _str_list(fields: Mapping[str, Any], name: str, tag: str) -> list[str]:
    value = _require(fields, name, tag)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ProtocolError(f"field {name!r} of {tag!r} must be a list of strings")
    return list(value)


def _values(fields: Mapping[str, Any], name: str, tag: str) -> dict[str, VersionedValue]:
    value = _require(fields, name, tag)
    if not isinstance(value, Mapping):
        raise ProtocolError(f"field {name!r} of {tag!r} must be an object")
    try:
        return {str(key): VersionedValue.from_dict(item) for key, item in value.items()}
    except ValueError as exc:
        raise ProtocolError(f"field {name!r} of {tag!r}: {exc}") from exc


def _values_to_json(values: Mapping[str, VersionedValue]) -> dict[str, Any]:
    return {key: item.to_dict() for key, item in values.items()}


def message_to_json(message: Message) -> Any:
    """Return the JSON-ready form of a gossip message."""
    match message:
        case UpdateMessage(updates=updates):
            return {"Update": {"updates": _values_to_json(updates)}}
        case SyncRequestMessage():
            return "SyncRequest"
        case SyncResponseMessage(data=data):
            return {"SyncResponse": {"data": _values_to_json(data)}}
        case PingMessage(sender=sender):
            return {"Ping": {"sender": sender}}
        case PongMessage(sender=sender, members=members):
            return {"Pong": {"sender": sender, "members": list(members)}}
    raise TypeError(f"not a gossip message: {message!r}")


def message_from_json(obj: Any) -> Message:
    """Parse a gossip message from its JSON form."""
    tag, body = _split_variant(obj, "gossip message")
    match tag:
        case "SyncRequest":
            _unit(tag, body)
            return SyncRequestMessage()
        case "Update":
            return UpdateMessage(updates=_values(_fields(tag, body), "updates", tag))
        case "SyncResponse":
            return SyncResponseMessage(data=_values(_fields(tag, body), "data", tag))
        case "Ping":
            return PingMessage(sender=_str(_fields(tag, body), "sender", tag))
        case "Pong":
            fields = _fields(tag, body)
            return PongMessage(
                sender=_str(fields, "sender", tag), members=_str_list(fields, "members", tag)
            )
    raise ProtocolError(f"unknown gossip message variant {tag!r}")


def command_to_json(command: Command) -> Any:
    """Return the JSON-ready form of a command."""
    match command:
        case GossipCommand(message=message):
            return {"Gossip": message_to_json(message)}
        case GetCommand(key=key):
            return {"Get": {"key": key}}
        case SetCommand(key=key, value=value, node_id=node_id):
            return {"Set": {"key": key, "value": value, "node_id": node_id}}
        case GetPeersCommand():
            return "GetPeers"
        case HealthCommand():
            return "Health"
    raise TypeError(f"not a command: {command!r}")


def command_from_json(obj: Any) -> Command:
    """Parse a command from its JSON form."""
    tag, body = _split_variant(obj, "command")
    match tag:
        case "Gossip":
            if body is _NO_BODY:
                raise ProtocolError("variant 'Gossip' needs a message")
            return GossipCommand(message=message_from_json(body))
        case "Get":
            return GetCommand(key=_str(_fields(tag, body), "key", tag))
        case "Set":
            fields = _fields(tag, body)
            return SetCommand(
                key=_str(fields, "key", tag),
                value=_str(fields, "value", tag),
                node_id=_str(fields, "node_id", tag),
            )
        case "GetPeers":
            _unit(tag, body)
            return GetPeersCommand()
        case "Health":
            _unit(tag, body)
            return HealthCommand()
    raise ProtocolError(f"unknown command variant {tag!r}")


def _data_to_json(data: ResponseData) -> Any:
    match data:
        case ValueData(key=key, value=value, found=found):
            return {"Value": {"key": key, "value": value, "found": found}}
        case SetResultData(key=key, value=value, timestamp=timestamp):
            return {"SetResult": {"key": key, "value": value, "timestamp": timestamp}}
        case GossipMessageData(message=message):
            return {"GossipMessage": message_to_json(message)}
        case PeerListData(peers=peers):
            return {"PeerList": {"peers": list(peers)}}
        case HealthInfoData(status=status, node_id=node_id, endpoint=endpoint):
            return {"HealthInfo": {"status": status, "node_id": node_id, "endpoint": endpoint}}
    raise TypeError(f"not response data: {data!r}")


def _data_from_json(obj: Any) -> ResponseData:
    tag, body = _split_variant(obj, "response data")
    match tag:
        case "Value":
            fields = _fields(tag, body)
            return ValueData(
                key=_str(fields, "key", tag),
                value=_optional_str(fields, "value", tag),
                found=_bool(fields, "found", tag),
            )
        case "SetResult":
            fields = _fields(tag, body)
            return SetResultData(
                key=_str(fields, "key", tag),
                value=_str(fields, "value", tag),
                timestamp=_uint(fields, "timestamp", tag),
            )
        case "GossipMessage":
            if body is _NO_BODY:
                raise ProtocolError("variant 'GossipMessage' needs a message")
            return GossipMessageData(message=message_from_json(body))
        case "PeerList":
            return PeerListData(peers=_str_list(_fields(tag, body), "peers", tag))
        case "HealthInfo":
            fields = _fields(tag, body)
            return HealthInfoData(
                status=_str(fields, "status", tag),
                node_id=_str(fields, "node_id", tag),
                endpoint=_str(fields, "endpoint", tag),
            )
    raise ProtocolError(f"unknown response data variant {tag!r}")


def response_to_json(response: Response) -> Any:
    """Return the JSON-ready form of a response."""
    match response:
        case OkResponse(data=None):
            return {"Ok": None}
        case OkResponse(data=data):
            return {"Ok": _data_to_json(data)}
        case ErrorResponse(message=message):
            return {"Error": {"message": message}}
    raise TypeError(f"not a response: {response!r}")


def response_from_json(obj: Any) -> Response:
    """Parse a response from its JSON form."""
    tag, body = _split_variant(obj, "response")
    match tag:
        case "Ok":
            if body is _NO_BODY:
                raise ProtocolError("variant 'Ok' needs a value")
            return OkResponse(data=None if body is None else _data_from_json(body))
        case "Error":
            return ErrorResponse(message=_str(_fields(tag, body), "message", tag))
    raise ProtocolError(f"unknown response variant {tag!r}")