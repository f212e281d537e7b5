import pytest

from rulewheel.config.settings import Settings
from rulewheel.services.errors import LobbyCodeUnavailable
from rulewheel.services.lobby_directory import LobbyDirectory


class ScriptedRng:
    """Tire les lettres d'une chaîne fixée à l'avance."""

    def __init__(self, letters):
        self._letters = iter(letters)

    def choice(self, seq):
        return next(self._letters)


def test_create_indexes_lobby_by_id_and_code():
    directory = LobbyDirectory(Settings())
    state = directory.create("h", "Host")

    assert len(state.code) == 4
    assert state.code.isalpha() and state.code.isupper()
    assert directory.get(state.id) is directory.find_by_code(state.code)
    assert directory.find_by_code(f"  {state.code.lower()} ") is state
    assert state.players[0].is_host is True
    assert state.players[0].points == 20


def test_colliding_code_is_redrawn():
    directory = LobbyDirectory(Settings(), rng=ScriptedRng("AAAA" "AAAA" "BBBB"))
    first = directory.create("h1", "Host one")
    second = directory.create("h2", "Host two")

    assert first.code == "AAAA"
    assert second.code == "BBBB"
    assert len(directory) == 2


def test_code_space_exhaustion_raises():
    settings = Settings(LOBBY_CODE_MAX_ATTEMPTS=3)
    directory = LobbyDirectory(settings, rng=ScriptedRng("A" * 64))
    directory.create("h1", "Host one")

    with pytest.raises(LobbyCodeUnavailable):
        directory.create("h2", "Host two")


def test_put_keeps_both_indices_on_the_same_version():
    directory = LobbyDirectory(Settings())
    state = directory.create("h", "Host")
    updated = state.model_copy(update={"round_number": 3})
    directory.put(state.id, updated)

    assert directory.get(state.id) is updated
    assert directory.find_by_code(state.code) is updated


def test_put_rejects_mismatched_id():
    directory = LobbyDirectory(Settings())
    state = directory.create("h", "Host")

    with pytest.raises(ValueError):
        directory.put("other-id", state)


def test_remove_drops_both_indices():
    directory = LobbyDirectory(Settings())
    state = directory.create("h", "Host")

    assert directory.remove(state.id) is state
    assert directory.get(state.id) is None
    assert directory.find_by_code(state.code) is None
    assert directory.remove(state.id) is None
