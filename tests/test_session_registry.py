import pytest

from rulewheel.services.session_registry import SessionRegistry


def test_bind_and_lookup_both_directions():
    registry = SessionRegistry()
    registry.register_player("p1", "L1")
    registry.bind_connection("c1", "p1")

    assert registry.player_for_connection("c1") == "p1"
    assert registry.connection_for_player("p1") == "c1"
    assert registry.lobby_for_player("p1") == "L1"
    assert registry.connections_for_lobby("L1") == ["c1"]


def test_new_connection_replaces_previous_binding():
    registry = SessionRegistry()
    registry.register_player("p1", "L1")
    registry.bind_connection("c1", "p1")
    registry.bind_connection("c2", "p1")

    assert registry.player_for_connection("c1") is None
    assert registry.connections_for_lobby("L1") == ["c2"]


def test_binding_unknown_player_fails():
    registry = SessionRegistry()
    with pytest.raises(KeyError):
        registry.bind_connection("c1", "ghost")


def test_unbind_keeps_player_in_lobby():
    registry = SessionRegistry()
    registry.register_player("p1", "L1")
    registry.bind_connection("c1", "p1")

    assert registry.unbind_connection("c1") == "p1"
    assert registry.unbind_connection("c1") is None
    assert registry.lobby_for_player("p1") == "L1"
    assert registry.connections_for_lobby("L1") == []


def test_stale_unbind_does_not_detach_newer_connection():
    registry = SessionRegistry()
    registry.register_player("p1", "L1")
    registry.bind_connection("c1", "p1")
    registry.bind_connection("c2", "p1")

    assert registry.unbind_connection("c1") is None
    assert registry.connection_for_player("p1") == "c2"


def test_accept_sequence_drops_replays_per_connection():
    registry = SessionRegistry()

    assert registry.accept_sequence("c1", 1) is True
    assert registry.accept_sequence("c1", 1) is False
    assert registry.accept_sequence("c1", 0) is False
    assert registry.accept_sequence("c1", 2) is True
    assert registry.accept_sequence("c2", 1) is True


def test_forget_lobby_returns_bound_connections():
    registry = SessionRegistry()
    for player_id, connection_id in (("p1", "c1"), ("p2", "c2"), ("p3", None)):
        registry.register_player(player_id, "L1")
        if connection_id:
            registry.bind_connection(connection_id, player_id)

    assert registry.forget_lobby("L1") == ["c1", "c2"]
    assert registry.players_in_lobby("L1") == []
    assert registry.stats() == {"players": 0, "connections": 0, "lobbies": 0}
