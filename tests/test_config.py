import pytest

from rexstore.config import Config


def test_endpoint_joins_host_and_port():
    config = Config(node_id="test-health-node", host="127.0.0.1", port=8003)
    assert config.endpoint() == "127.0.0.1:8003"


def test_peers_default_to_empty():
    config = Config(node_id="n", host="127.0.0.1", port=8000)
    assert config.peers == frozenset()


def test_peers_are_collected_into_a_set():
    peers = ["127.0.0.1:8001", "127.0.0.1:8002", "127.0.0.1:8001"]
    config = Config(node_id="n", host="127.0.0.1", port=8000, peers=peers)
    assert config.peers == {"127.0.0.1:8001", "127.0.0.1:8002"}
    assert len(config.peers) == 2


def test_endpoint_is_not_among_own_peers():
    config = Config(node_id="n", host="localhost", port=9000, peers={"localhost:9001"})
    assert config.endpoint() not in config.peers


@pytest.mark.parametrize("port", [-1, 70000])
def test_port_out_of_range_is_rejected(port):
    with pytest.raises(ValueError):
        Config(node_id="n", host="127.0.0.1", port=port)


def test_port_must_be_an_integer():
    with pytest.raises(TypeError):
        Config(node_id="n", host="127.0.0.1", port="8000")


def test_config_is_immutable():
    config = Config(node_id="n", host="127.0.0.1", port=8000)
    with pytest.raises(AttributeError):
        config.port = 1
    assert config.port == 8000
    assert config.endpoint() == "127.0.0.1:8000"