"""
Service: reducer.py
Rôle:
- Fonction pure `reduce(state, action) -> state'`, seul point de mutation du
  document `GameState` d'un lobby.
- Aucune I/O, aucun aléa, aucun état caché : l'entrée n'est jamais modifiée,
  une nouvelle instance est renvoyée (ou la MÊME instance si rien ne change,
  ce qui permet au dispatcher de sauter la diffusion).

Notes:
- Tag inconnu → état inchangé (jamais d'exception), pour tolérer l'évolution
  du protocole.
- Aucune validation métier ici (bornes de points, existence des cibles,
  autorisations) : c'est le rôle de `game_service.py`.
- Exception assumée : l'invariant « exactement un hôte » est normalisé par
  ADD_PLAYER / REMOVE_PLAYER pour qu'aucune séquence d'actions ne produise
  zéro ou deux hôtes.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from rulewheel.models.actions import Action
from rulewheel.models.game import (
    DEFAULT_PLAQUE_COLOR,
    GameState,
    Plaque,
    WheelLayer,
    WheelSegment,
    non_host_players,
)

# Modificateurs fixes de la roue (un segment chacun)
MODIFIERS = ("Clone", "Flip", "Up", "Down", "Swap", "Shred")
MODIFIER_COLORS = ("#28a745", "#ffc107", "#17a2b8", "#6f42c1", "#fd7e14", "#dc3545")

# Palette tournante des segments de contenu (répartition équilibrée)
SEGMENT_COLORS = (
    "#ff6b6b", "#4ecdc4", "#45b7d1", "#96ceb4", "#feca57",
    "#ff9ff3", "#54a0ff", "#5f27cd", "#00d2d3", "#ff9f43",
)
END_SEGMENT_ID = "segment-end"
END_SEGMENT_COLOR = "#dc3545"
END_TEXT = "END GAME"

Handler = Callable[[GameState, Action], GameState]
_HANDLERS: Dict[str, Handler] = {}


def _on(tag: str) -> Callable[[Handler], Handler]:
    def register(fn: Handler) -> Handler:
        _HANDLERS[tag] = fn
        return fn
    return register


def reduce(state: GameState, action: Action) -> GameState:
    """Applique `action` à `state` et renvoie l'état suivant."""
    handler = _HANDLERS.get(action.type)
    if handler is None:
        return state
    return handler(state, action)


def reduce_all(state: GameState, actions: Iterable[Action]) -> GameState:
    """Rejoue une séquence d'actions (journal) à partir de `state`."""
    for action in actions:
        state = reduce(state, action)
    return state


# -----------------------------
# Joueurs
# -----------------------------
@_on("ADD_PLAYER")
def _add_player(state: GameState, action) -> GameState:
    has_host = any(p.is_host for p in state.players)
    player = action.player.model_copy(update={"is_host": not has_host})
    return state.model_copy(update={"players": [*state.players, player]})


@_on("REMOVE_PLAYER")
def _remove_player(state: GameState, action) -> GameState:
    leaving = [p for p in state.players if p.id == action.player_id]
    if not leaving:
        return state
    remaining = [p for p in state.players if p.id != action.player_id]
    if leaving[0].is_host and remaining:
        remaining = [
            p.model_copy(update={"is_host": i == 0}) for i, p in enumerate(remaining)
        ]
    rules = [
        r.model_copy(update={"assigned_to": None}) if r.assigned_to == action.player_id else r
        for r in state.rules
    ]
    return state.model_copy(update={"players": remaining, "rules": rules})


@_on("SET_HOST")
def _set_host(state: GameState, action) -> GameState:
    if not any(p.id == action.player_id for p in state.players):
        return state
    players = [
        p if p.is_host == (p.id == action.player_id)
        else p.model_copy(update={"is_host": p.id == action.player_id})
        for p in state.players
    ]
    return state.model_copy(update={"players": players})


def _update_player(state: GameState, player_id: str, **changes) -> GameState:
    if not any(p.id == player_id for p in state.players):
        return state
    players = [
        p.model_copy(update=changes) if p.id == player_id else p
        for p in state.players
    ]
    return state.model_copy(update={"players": players})


@_on("MARK_RULES_COMPLETED")
def _mark_rules_completed(state: GameState, action) -> GameState:
    return _update_player(state, action.player_id, rules_completed=True)


@_on("MARK_PROMPTS_COMPLETED")
def _mark_prompts_completed(state: GameState, action) -> GameState:
    return _update_player(state, action.player_id, prompts_completed=True)


@_on("UPDATE_POINTS")
def _update_points(state: GameState, action) -> GameState:
    # valeur absolue, pas de bornage : l'appelant valide
    return _update_player(state, action.player_id, points=action.points)


# -----------------------------
# Plaques
# -----------------------------
def _replace_by_id(items: List[Plaque], replacement: Plaque) -> Optional[List[Plaque]]:
    if not any(item.id == replacement.id for item in items):
        return None
    return [replacement if item.id == replacement.id else item for item in items]


@_on("ADD_RULE")
def _add_rule(state: GameState, action) -> GameState:
    return state.model_copy(update={"rules": [*state.rules, action.rule]})


@_on("ADD_PROMPT")
def _add_prompt(state: GameState, action) -> GameState:
    return state.model_copy(update={"prompts": [*state.prompts, action.prompt]})


@_on("UPDATE_RULE")
def _update_rule(state: GameState, action) -> GameState:
    rules = _replace_by_id(state.rules, action.rule)
    return state if rules is None else state.model_copy(update={"rules": rules})


@_on("UPDATE_PROMPT")
def _update_prompt(state: GameState, action) -> GameState:
    prompts = _replace_by_id(state.prompts, action.prompt)
    return state if prompts is None else state.model_copy(update={"prompts": prompts})


@_on("ASSIGN_RULE")
def _assign_rule(state: GameState, action) -> GameState:
    if not any(r.id == action.rule_id for r in state.rules):
        return state
    rules = [
        r.model_copy(update={"assigned_to": action.player_id}) if r.id == action.rule_id else r
        for r in state.rules
    ]
    return state.model_copy(update={"rules": rules})


@_on("SET_NUM_RULES")
def _set_num_rules(state: GameState, action) -> GameState:
    return state.model_copy(update={"num_rules": action.value})


@_on("SET_NUM_PROMPTS")
def _set_num_prompts(state: GameState, action) -> GameState:
    return state.model_copy(update={"num_prompts": action.value})


# -----------------------------
# Déroulé
# -----------------------------
@_on("START_GAME")
def _start_game(state: GameState, action) -> GameState:
    candidates = non_host_players(state)
    if state.is_game_started or not candidates:
        return state
    return state.model_copy(
        update={"is_game_started": True, "round_number": 1, "active_player": candidates[0].id}
    )


@_on("SET_ACTIVE_PLAYER")
def _set_active_player(state: GameState, action) -> GameState:
    return state.model_copy(update={"active_player": action.player_id})


@_on("ADVANCE_TO_NEXT_PLAYER")
def _advance_to_next_player(state: GameState, action) -> GameState:
    order = [p.id for p in non_host_players(state)]
    if not order:
        return state.model_copy(update={"active_player": None})
    if state.active_player in order:
        position = order.index(state.active_player)
        next_id = order[(position + 1) % len(order)]
    else:
        # joueur actif retiré (ou jamais défini) → premier non-hôte
        next_id = order[0]
    return state.model_copy(update={"active_player": next_id})


@_on("SET_WHEEL_SPINNING")
def _set_wheel_spinning(state: GameState, action) -> GameState:
    if state.is_wheel_spinning == action.spinning:
        return state
    return state.model_copy(update={"is_wheel_spinning": action.spinning})


@_on("END_GAME")
def _end_game(state: GameState, action) -> GameState:
    return state.model_copy(
        update={"game_ended": True, "winner": action.winner, "is_wheel_spinning": False}
    )


# -----------------------------
# Roue
# -----------------------------
def _plaque_layer(plaque: Plaque) -> WheelLayer:
    return WheelLayer(
        type=plaque.type,
        text=plaque.text,
        plaque_id=plaque.id,
        plaque_color=plaque.plaque_color or DEFAULT_PLAQUE_COLOR,
    )


def _modifier_layer(index: int) -> WheelLayer:
    return WheelLayer(type="modifier", text=MODIFIERS[index % len(MODIFIERS)])


def build_wheel_segments(rules: List[Plaque], prompts: List[Plaque]) -> List[WheelSegment]:
    """
    Construit la roue de façon déterministe.

    - Un segment par règle active, puis un par prompt actif : le segment de
      contenu i porte [plaque_i, modificateur_(i mod 6)].
    - Puis un segment mono-couche par modificateur, puis UN segment de fin.
    - Les identifiants dérivent de la position : un rejeu donne la même roue.
    """
    content = [r for r in rules if r.is_active] + [p for p in prompts if p.is_active]
    segments: List[WheelSegment] = [
        WheelSegment(
            id=f"segment-{i}",
            layers=[_plaque_layer(plaque), _modifier_layer(i)],
            segment_color=SEGMENT_COLORS[i % len(SEGMENT_COLORS)],
        )
        for i, plaque in enumerate(content)
    ]

    for i, name in enumerate(MODIFIERS):
        segments.append(
            WheelSegment(
                id=f"segment-{name.lower()}",
                layers=[_modifier_layer(i)],
                segment_color=MODIFIER_COLORS[i],
            )
        )

    segments.append(
        WheelSegment(
            id=END_SEGMENT_ID,
            layers=[WheelLayer(type="end", text=END_TEXT)],
            segment_color=END_SEGMENT_COLOR,
        )
    )
    return segments


@_on("CREATE_WHEEL_SEGMENTS")
def _create_wheel_segments(state: GameState, action) -> GameState:
    return state.model_copy(
        update={"wheel_segments": build_wheel_segments(state.rules, state.prompts)}
    )


@_on("REMOVE_WHEEL_LAYER")
def _remove_wheel_layer(state: GameState, action) -> GameState:
    if not any(s.id == action.segment_id for s in state.wheel_segments):
        return state
    segments = []
    for segment in state.wheel_segments:
        if segment.id == action.segment_id:
            # avance d'un cran, jamais en arrière, bornée à la dernière couche
            last = max(len(segment.layers) - 1, 0)
            current = segment.current_layer_index
            index = max(current, min(current + 1, last))
            segment = segment.model_copy(update={"current_layer_index": index})
        segments.append(segment)
    return state.model_copy(update={"wheel_segments": segments})
