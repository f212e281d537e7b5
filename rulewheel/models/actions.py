"""
Models / actions.py
Rôle:
- Définir l'ensemble fermé des actions acceptées par le reducer.
- Chaque action est un modèle Pydantic figé portant un tag littéral `type`;
  l'union discriminée `Action` sert au décodage (journal d'actions, rejeu).

Notes:
- Les identifiants (joueurs, plaques) sont TOUJOURS générés par l'appelant
  avant la construction de l'action : le reducer reste pur et déterministe.
- Un tag inconnu est décodé en `UnknownAction`, que le reducer ignore
  (compatibilité ascendante du protocole).
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from rulewheel.models.game import Plaque, Player


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Joueurs ---
class AddPlayer(_Action):
    type: Literal["ADD_PLAYER"] = "ADD_PLAYER"
    player: Player


class RemovePlayer(_Action):
    type: Literal["REMOVE_PLAYER"] = "REMOVE_PLAYER"
    player_id: str


class SetHost(_Action):
    type: Literal["SET_HOST"] = "SET_HOST"
    player_id: str


# --- Écriture des plaques ---
class AddRule(_Action):
    type: Literal["ADD_RULE"] = "ADD_RULE"
    rule: Plaque


class AddPrompt(_Action):
    type: Literal["ADD_PROMPT"] = "ADD_PROMPT"
    prompt: Plaque


class UpdateRule(_Action):
    type: Literal["UPDATE_RULE"] = "UPDATE_RULE"
    rule: Plaque


class UpdatePrompt(_Action):
    type: Literal["UPDATE_PROMPT"] = "UPDATE_PROMPT"
    prompt: Plaque


class MarkRulesCompleted(_Action):
    type: Literal["MARK_RULES_COMPLETED"] = "MARK_RULES_COMPLETED"
    player_id: str


class MarkPromptsCompleted(_Action):
    type: Literal["MARK_PROMPTS_COMPLETED"] = "MARK_PROMPTS_COMPLETED"
    player_id: str


class SetNumRules(_Action):
    type: Literal["SET_NUM_RULES"] = "SET_NUM_RULES"
    value: int


class SetNumPrompts(_Action):
    type: Literal["SET_NUM_PROMPTS"] = "SET_NUM_PROMPTS"
    value: int


# --- Déroulé de partie ---
class StartGame(_Action):
    type: Literal["START_GAME"] = "START_GAME"


class SetActivePlayer(_Action):
    type: Literal["SET_ACTIVE_PLAYER"] = "SET_ACTIVE_PLAYER"
    player_id: Optional[str] = None


class AdvanceToNextPlayer(_Action):
    type: Literal["ADVANCE_TO_NEXT_PLAYER"] = "ADVANCE_TO_NEXT_PLAYER"


class SetWheelSpinning(_Action):
    type: Literal["SET_WHEEL_SPINNING"] = "SET_WHEEL_SPINNING"
    spinning: bool = True


class CreateWheelSegments(_Action):
    type: Literal["CREATE_WHEEL_SEGMENTS"] = "CREATE_WHEEL_SEGMENTS"


class RemoveWheelLayer(_Action):
    type: Literal["REMOVE_WHEEL_LAYER"] = "REMOVE_WHEEL_LAYER"
    segment_id: str


class UpdatePoints(_Action):
    type: Literal["UPDATE_POINTS"] = "UPDATE_POINTS"
    player_id: str
    points: int


class AssignRule(_Action):
    type: Literal["ASSIGN_RULE"] = "ASSIGN_RULE"
    rule_id: str
    player_id: Optional[str] = None  # None = la règle retourne au pot


class EndGame(_Action):
    type: Literal["END_GAME"] = "END_GAME"
    winner: Optional[Player] = None


class UnknownAction(_Action):
    """Tag non reconnu : conservé tel quel, ignoré par le reducer."""

    type: str
    payload: Any = None


KnownAction = Annotated[
    Union[
        AddPlayer,
        RemovePlayer,
        SetHost,
        AddRule,
        AddPrompt,
        UpdateRule,
        UpdatePrompt,
        MarkRulesCompleted,
        MarkPromptsCompleted,
        SetNumRules,
        SetNumPrompts,
        StartGame,
        SetActivePlayer,
        AdvanceToNextPlayer,
        SetWheelSpinning,
        CreateWheelSegments,
        RemoveWheelLayer,
        UpdatePoints,
        AssignRule,
        EndGame,
    ],
    Field(discriminator="type"),
]

Action = Union[KnownAction, UnknownAction]

_KNOWN_ADAPTER: TypeAdapter = TypeAdapter(KnownAction)

ACTION_TYPES = frozenset(
    model.model_fields["type"].default
    for model in (
        AddPlayer, RemovePlayer, SetHost, AddRule, AddPrompt, UpdateRule, UpdatePrompt,
        MarkRulesCompleted, MarkPromptsCompleted, SetNumRules, SetNumPrompts, StartGame,
        SetActivePlayer, AdvanceToNextPlayer, SetWheelSpinning, CreateWheelSegments,
        RemoveWheelLayer, UpdatePoints, AssignRule, EndGame,
    )
)


def parse_action(data: Dict[str, Any]) -> Action:
    """Décode une action sérialisée (dict) ; tag inconnu → `UnknownAction`."""
    tag = data.get("type")
    if tag in ACTION_TYPES:
        return _KNOWN_ADAPTER.validate_python(data)
    rest = {k: v for k, v in data.items() if k != "type"}
    return UnknownAction(type=str(tag), payload=rest or None)


def dump_action(action: Action) -> Dict[str, Any]:
    return action.model_dump(mode="json")
