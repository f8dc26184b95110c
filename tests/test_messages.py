import json

import pytest

from rexstore.kvstore import VersionedValue
from rexstore.messages import (
    ErrorResponse,
    GetCommand,
    GetPeersCommand,
    GossipCommand,
    GossipMessageData,
    HealthCommand,
    HealthInfoData,
    OkResponse,
    PeerListData,
    PingMessage,
    PongMessage,
    ProtocolError,
    SetCommand,
    SetResultData,
    SyncRequestMessage,
    SyncResponseMessage,
    UpdateMessage,
    ValueData,
    command_from_json,
    command_to_json,
    message_from_json,
    message_to_json,
    response_from_json,
    response_to_json,
)

MESSAGES = [
    UpdateMessage(updates={"gossip-key": VersionedValue("gossip-value", 1000, "gossip-node")}),
    UpdateMessage(),
    SyncRequestMessage(),
    SyncResponseMessage(
        data={
            "sync-key1": VersionedValue("sync-value1", 1000, "node1"),
            "sync-key2": VersionedValue("sync-value2", 2000, "node2"),
        }
    ),
    PingMessage(sender="127.0.0.1:9000"),
    PongMessage(sender="127.0.0.1:9000", members=["127.0.0.1:9001"]),
]

COMMANDS = [
    GossipCommand(message=PingMessage(sender="client")),
    GossipCommand(message=SyncRequestMessage()),
    GetCommand(key="server-key"),
    SetCommand(key="client-key", value="client-value", node_id="client-node"),
    GetPeersCommand(),
    HealthCommand(),
]

RESPONSES = [
    OkResponse(),
    OkResponse(ValueData(key="test-key", value="test-value", found=True)),
    OkResponse(ValueData(key="non-existent", value=None, found=False)),
    OkResponse(SetResultData(key="test-set-key", value="test-set-value", timestamp=1)),
    OkResponse(GossipMessageData(PongMessage("127.0.0.1:8000", ["127.0.0.1:8001"]))),
    OkResponse(PeerListData(peers=["127.0.0.1:8001", "127.0.0.1:8002"])),
    OkResponse(HealthInfoData(status="ok", node_id="test-health-node", endpoint="127.0.0.1:8003")),
    ErrorResponse(message="Gossip actor error"),
]


@pytest.mark.parametrize("message", MESSAGES)
def test_message_round_trip_through_json_text(message):
    text = json.dumps(message_to_json(message))
    assert message_from_json(json.loads(text)) == message


@pytest.mark.parametrize("command", COMMANDS)
def test_command_round_trip_through_json_text(command):
    text = json.dumps(command_to_json(command))
    assert command_from_json(json.loads(text)) == command


@pytest.mark.parametrize("response", RESPONSES)
def test_response_round_trip_through_json_text(response):
    text = json.dumps(response_to_json(response))
    assert response_from_json(json.loads(text)) == response


def test_unit_variants_encode_as_bare_names():
    assert message_to_json(SyncRequestMessage()) == "SyncRequest"
    assert command_to_json(GetPeersCommand()) == "GetPeers"
    assert command_to_json(HealthCommand()) == "Health"


def test_client_command_shapes():
    assert command_to_json(GetCommand(key="k")) == {"Get": {"key": "k"}}
    assert command_to_json(SetCommand(key="k", value="v", node_id="client")) == {
        "Set": {"key": "k", "value": "v", "node_id": "client"}
    }
    assert command_to_json(GossipCommand(PingMessage(sender="client"))) == {
        "Gossip": {"Ping": {"sender": "client"}}
    }


def test_ok_without_data_encodes_null():
    assert response_to_json(OkResponse()) == {"Ok": None}


def test_missing_value_encodes_null():
    encoded = response_to_json(OkResponse(ValueData(key="k", value=None, found=False)))
    assert encoded["Ok"]["Value"]["value"] is None


def test_update_carries_versioned_values():
    encoded = message_to_json(UpdateMessage({"k": VersionedValue("v", 7, "n")}))
    assert encoded == {"Update": {"updates": {"k": {"value": "v", "timestamp": 7, "node_id": "n"}}}}


def test_unit_variant_accepts_object_with_null():
    assert message_from_json({"SyncRequest": None}) == SyncRequestMessage()
    assert command_from_json({"Health": None}) == HealthCommand()


def test_unknown_fields_are_ignored():
    parsed = command_from_json({"Get": {"key": "k", "extra": 1}})
    assert parsed == GetCommand(key="k")


def test_optional_value_may_be_absent():
    parsed = response_from_json({"Ok": {"Value": {"key": "k", "found": False}}})
    assert parsed == OkResponse(ValueData(key="k", value=None, found=False))


@pytest.mark.parametrize(
    "obj",
    [
        "Bogus",
        {"Ping": {}},
        {"Ping": {"sender": 5}},
        "Ping",
        {"Ping": {"sender": "a"}, "Pong": {"sender": "b", "members": []}},
        {"Pong": {"sender": "a", "members": "b"}},
        {"Update": {"updates": {"k": {"value": "v", "timestamp": -1, "node_id": "n"}}}},
        {"SyncRequest": {"x": 1}},
        42,
    ],
)
def test_malformed_messages_are_rejected(obj):
    with pytest.raises(ProtocolError):
        message_from_json(obj)


@pytest.mark.parametrize(
    "obj",
    [
        "Gossip",
        {"Gossip": "Nope"},
        {"Set": {"key": "k", "value": "v"}},
        {"Get": "k"},
        ["Get", {"key": "k"}],
        "Shutdown",
    ],
)
def test_malformed_commands_are_rejected(obj):
    with pytest.raises(ProtocolError):
        command_from_json(obj)


@pytest.mark.parametrize(
    "obj",
    [
        "Ok",
        {"Error": {}},
        {"Ok": {"SetResult": {"key": "k", "value": "v", "timestamp": True}}},
        {"Ok": {"Value": {"key": "k", "value": None, "found": "no"}}},
        {"Ok": {"Unknown": {}}},
        {"Maybe": None},
    ],
)
def test_malformed_responses_are_rejected(obj):
    with pytest.raises(ProtocolError):
        response_from_json(obj)


def test_protocol_error_is_a_value_error():
    with pytest.raises(ValueError):
        command_from_json({})


def test_encoding_non_message_raises_type_error():
    with pytest.raises(TypeError):
        message_to_json(GetCommand(key="k"))
    with pytest.raises(TypeError):
        command_to_json(PingMessage(sender="s"))
    with pytest.raises(TypeError):
        response_to_json(GetCommand(key="k"))