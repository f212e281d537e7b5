from rulewheel.models.actions import (
    AddPlayer,
    AddPrompt,
    AddRule,
    AdvanceToNextPlayer,
    AssignRule,
    CreateWheelSegments,
    EndGame,
    RemovePlayer,
    RemoveWheelLayer,
    SetActivePlayer,
    SetHost,
    SetWheelSpinning,
    StartGame,
    UnknownAction,
    UpdatePoints,
    dump_action,
    parse_action,
)
from rulewheel.models.game import Plaque, Player, new_game_state
from rulewheel.services.reducer import END_SEGMENT_ID, MODIFIERS, build_wheel_segments, reduce, reduce_all


def _lobby(*names):
    state = new_game_state("L1", "ABCD", "h", "Host")
    for i, name in enumerate(names, start=1):
        state = reduce(state, AddPlayer(player=Player(id=f"p{i}", name=name)))
    return state


def _rule(rule_id, text="No phones at the table", author="p1", **extra):
    return Plaque(id=rule_id, type="rule", text=text, author_id=author, **extra)


def _prompt(prompt_id, text="Sing a song", author="p1", **extra):
    return Plaque(id=prompt_id, type="prompt", text=text, author_id=author, **extra)


def _hosts(state):
    return [p.id for p in state.players if p.is_host]


def test_add_player_never_creates_a_second_host():
    state = _lobby("Alice")
    state = reduce(state, AddPlayer(player=Player(id="p9", name="Mallory", is_host=True)))

    assert _hosts(state) == ["h"]
    assert [p.id for p in state.players] == ["h", "p1", "p9"]


def test_input_state_is_not_mutated():
    before = _lobby("Alice")
    after = reduce(before, AddPlayer(player=Player(id="p2", name="Bob")))

    assert len(before.players) == 2
    assert len(after.players) == 3


def test_removing_host_promotes_first_remaining_player():
    state = reduce(_lobby("Alice", "Bob"), RemovePlayer(player_id="h"))

    assert _hosts(state) == ["p1"]
    assert [p.id for p in state.players] == ["p1", "p2"]


def test_removing_unknown_player_returns_same_state():
    state = _lobby("Alice")
    assert reduce(state, RemovePlayer(player_id="ghost")) is state


def test_removing_player_returns_their_rules_to_the_pot():
    state = _lobby("Alice", "Bob")
    state = reduce(state, AddRule(rule=_rule("r1")))
    state = reduce(state, AssignRule(rule_id="r1", player_id="p2"))
    state = reduce(state, RemovePlayer(player_id="p2"))

    assert state.rules[0].assigned_to is None


def test_set_host_moves_the_flag_and_keeps_player_order():
    state = reduce(_lobby("Alice", "Bob"), SetHost(player_id="p2"))

    assert _hosts(state) == ["p2"]
    assert [p.id for p in state.players] == ["h", "p1", "p2"]
    assert reduce(state, SetHost(player_id="p2")).players == state.players


def test_set_host_to_unknown_player_returns_same_state():
    state = _lobby("Alice")
    assert reduce(state, SetHost(player_id="ghost")) is state


def test_exactly_one_host_across_player_churn():
    state = new_game_state("L1", "ABCD", "h", "Host")
    log = [
        AddPlayer(player=Player(id="p1", name="Alice")),
        AddPlayer(player=Player(id="p2", name="Bob", is_host=True)),
        SetHost(player_id="p2"),
        RemovePlayer(player_id="p2"),
        AddPlayer(player=Player(id="p3", name="Carol")),
        SetHost(player_id="ghost"),
        RemovePlayer(player_id="h"),
        SetHost(player_id="p3"),
        RemovePlayer(player_id="p1"),
        AddPlayer(player=Player(id="p4", name="Dave", is_host=True)),
    ]
    for action in log:
        state = reduce(state, action)
        assert len(_hosts(state)) == 1, action

    assert _hosts(state) == ["p3"]
    assert [p.id for p in state.players] == ["p3", "p4"]


def test_unknown_action_is_ignored():
    state = _lobby("Alice")
    action = parse_action({"type": "SYNC_WHEEL_SEGMENTS", "wheelSegments": []})

    assert isinstance(action, UnknownAction)
    assert reduce(state, action) is state


def test_start_game_activates_first_non_host():
    state = reduce(_lobby("Alice", "Bob"), StartGame())

    assert state.is_game_started is True
    assert state.round_number == 1
    assert state.active_player == "p1"
    assert reduce(state, StartGame()) is state


def test_start_game_without_other_players_is_noop():
    state = _lobby()
    assert reduce(state, StartGame()) is state


def test_advance_rotates_over_non_hosts_in_order():
    state = reduce(_lobby("Alice", "Bob", "Carol"), StartGame())
    seen = []
    for _ in range(4):
        state = reduce(state, AdvanceToNextPlayer())
        seen.append(state.active_player)

    assert seen == ["p2", "p3", "p1", "p2"]


def test_advance_after_active_player_left_goes_to_first_non_host():
    state = reduce(_lobby("Alice", "Bob", "Carol"), StartGame())
    state = reduce(state, SetActivePlayer(player_id="p2"))
    state = reduce(state, RemovePlayer(player_id="p2"))
    state = reduce(state, AdvanceToNextPlayer())

    assert state.active_player == "p1"


def test_advance_without_non_hosts_clears_active_player():
    state = reduce(_lobby("Alice"), StartGame())
    state = reduce(state, RemovePlayer(player_id="p1"))
    state = reduce(state, AdvanceToNextPlayer())

    assert state.active_player is None


def test_wheel_has_one_segment_per_plaque_and_ends_with_end_segment():
    rules = [_rule("r1"), _rule("r2", text="Speak in rhymes")]
    prompts = [_prompt("q1")]
    segments = build_wheel_segments(rules, prompts)

    assert len(segments) == 3 + len(MODIFIERS) + 1
    assert [s.layers[0].plaque_id for s in segments[:3]] == ["r1", "r2", "q1"]
    assert [layer.type for layer in segments[2].layers] == ["prompt", "modifier"]
    assert [s.layers[1].text for s in segments[:3]] == list(MODIFIERS[:3])
    assert [s.id for s in segments[3:-1]] == [f"segment-{m.lower()}" for m in MODIFIERS]
    assert segments[-1].id == END_SEGMENT_ID
    assert segments[-1].layers[0].type == "end"


def test_wheel_ignores_inactive_plaques():
    rules = [_rule("r1", is_active=False), _rule("r2")]
    segments = build_wheel_segments(rules, [])

    assert segments[0].layers[0].plaque_id == "r2"
    assert len(segments) == 1 + len(MODIFIERS) + 1


def test_remove_wheel_layer_only_moves_forward_and_clamps():
    state = _lobby("Alice")
    state = reduce(state, AddRule(rule=_rule("r1")))
    state = reduce(state, AddPrompt(prompt=_prompt("q1")))
    state = reduce(state, CreateWheelSegments())

    indices = []
    for _ in range(4):
        state = reduce(state, RemoveWheelLayer(segment_id="segment-0"))
        indices.append(state.wheel_segments[0].current_layer_index)

    assert indices == [1, 1, 1, 1]


def test_remove_wheel_layer_on_unknown_segment_is_noop():
    state = reduce(_lobby("Alice"), CreateWheelSegments())
    assert reduce(state, RemoveWheelLayer(segment_id="segment-42")) is state


def test_set_wheel_spinning_to_current_value_is_noop():
    state = _lobby("Alice")
    assert reduce(state, SetWheelSpinning(spinning=False)) is state
    assert reduce(state, SetWheelSpinning(spinning=True)).is_wheel_spinning is True


def test_end_game_records_winner_and_stops_wheel():
    state = reduce(_lobby("Alice"), SetWheelSpinning(spinning=True))
    winner = state.players[1]
    state = reduce(state, EndGame(winner=winner))

    assert state.game_ended is True
    assert state.winner == winner
    assert state.is_wheel_spinning is False


def test_replaying_the_action_log_gives_the_same_state():
    initial = new_game_state("L1", "ABCD", "h", "Host")
    log = [
        AddPlayer(player=Player(id="p1", name="Alice")),
        AddPlayer(player=Player(id="p2", name="Bob")),
        StartGame(),
        AddRule(rule=_rule("r1")),
        AddPrompt(prompt=_prompt("q1", author="p2")),
        CreateWheelSegments(),
        UpdatePoints(player_id="p2", points=25),
        AdvanceToNextPlayer(),
        RemoveWheelLayer(segment_id="segment-0"),
    ]
    decoded = [parse_action(dump_action(action)) for action in log]

    assert reduce_all(initial, log) == reduce_all(initial, decoded)
    assert reduce_all(initial, log).active_player == "p2"
