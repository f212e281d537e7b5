"""
Models / game.py
Rôle:
- Définir le document d'état d'un lobby (`GameState`) et ses entités (joueurs,
  plaques, segments de roue) en Pydantic.
- Ce document est l'unique source de vérité : il n'est modifié que par le
  reducer (`services/reducer.py`) et diffusé tel quel aux clients.

Sérialisation:
- Champs snake_case côté Python, camelCase côté fil (`isHost`, `wheelSegments`…).
- `to_wire()` produit le dict JSON-compatible envoyé dans `game_updated`.

Phases (grossières):
- Lobby (non démarré) → Authoring (démarré, roue vide) → Playing (roue
  construite) → Ended (`game_ended`).
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PlaqueType = Literal["rule", "prompt"]
LayerType = Literal["rule", "prompt", "modifier", "end"]

DEFAULT_PLAQUE_COLOR = "#fff"


class WireModel(BaseModel):
    """Base commune : alias camelCase, construction par nom ou par alias."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Player(WireModel):
    id: str
    name: str
    points: int = 20
    is_host: bool = False
    rules_completed: bool = False  # écriture des règles terminée
    prompts_completed: bool = False  # écriture des prompts terminée


class Plaque(WireModel):
    """Règle ou prompt écrit par un joueur."""

    id: str
    type: PlaqueType
    text: str
    author_id: str
    plaque_color: str = DEFAULT_PLAQUE_COLOR
    is_active: bool = True
    assigned_to: Optional[str] = None  # player_id porteur de la règle
    is_flipped: bool = False


class WheelLayer(WireModel):
    type: LayerType
    text: str
    plaque_id: Optional[str] = None  # None pour les modificateurs et la fin
    plaque_color: str = DEFAULT_PLAQUE_COLOR


class WheelSegment(WireModel):
    id: str
    layers: List[WheelLayer] = Field(default_factory=list)
    current_layer_index: int = 0
    segment_color: str = DEFAULT_PLAQUE_COLOR

    def current_layer(self) -> Optional[WheelLayer]:
        if not self.layers:
            return None
        return self.layers[min(self.current_layer_index, len(self.layers) - 1)]


class GameState(WireModel):
    id: str
    code: str
    players: List[Player] = Field(default_factory=list)
    rules: List[Plaque] = Field(default_factory=list)
    prompts: List[Plaque] = Field(default_factory=list)
    wheel_segments: List[WheelSegment] = Field(default_factory=list)
    active_player: Optional[str] = None
    is_game_started: bool = False
    is_wheel_spinning: bool = False
    round_number: int = 0
    num_rules: int = 3
    num_prompts: int = 3
    game_ended: bool = False
    winner: Optional[Player] = None
    created_at: float = 0.0


def new_game_state(
    lobby_id: str,
    code: str,
    host_id: str,
    host_name: str,
    *,
    starting_points: int = 20,
    num_rules: int = 3,
    num_prompts: int = 3,
    created_at: float = 0.0,
) -> GameState:
    """Document initial d'un lobby : l'hôte seul, aucune plaque, partie non démarrée."""
    host = Player(id=host_id, name=host_name, points=starting_points, is_host=True)
    return GameState(
        id=lobby_id,
        code=code,
        players=[host],
        num_rules=num_rules,
        num_prompts=num_prompts,
        created_at=created_at,
    )


# -----------------------------
# Lectures utilitaires (pures)
# -----------------------------
def find_player(state: GameState, player_id: Optional[str]) -> Optional[Player]:
    if not player_id:
        return None
    for player in state.players:
        if player.id == player_id:
            return player
    return None


def find_rule(state: GameState, rule_id: Optional[str]) -> Optional[Plaque]:
    for rule in state.rules:
        if rule.id == rule_id:
            return rule
    return None


def find_segment(state: GameState, segment_id: Optional[str]) -> Optional[WheelSegment]:
    for segment in state.wheel_segments:
        if segment.id == segment_id:
            return segment
    return None


def non_host_players(state: GameState) -> List[Player]:
    """Joueurs non-hôtes dans l'ordre d'arrivée (ordre de rotation des tours)."""
    return [p for p in state.players if not p.is_host]


def current_host(state: GameState) -> Optional[Player]:
    for player in state.players:
        if player.is_host:
            return player
    return None


def rules_assigned_to(state: GameState, player_id: str) -> List[Plaque]:
    return [r for r in state.rules if r.assigned_to == player_id]
