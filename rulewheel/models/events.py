"""
Models / events.py
Rôle:
- Schémas Pydantic des payloads client → serveur reçus sur `/ws`.
- Clés camelCase côté fil (`playerName`, `ruleId`…), snake_case côté Python.

Notes:
- Les clés inconnues sont ignorées (clients plus récents tolérés).
- Les contrôles dépendant de l'état (hôte, joueur actif, bornes de points)
  ne sont PAS ici : ils vivent dans `services/game_service.py`.
"""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CreateLobbyPayload(EventPayload):
    player_name: str = Field(min_length=1)


class JoinLobbyPayload(EventPayload):
    code: str = Field(min_length=1)
    player_name: str = Field(min_length=1)


class RejoinLobbyPayload(EventPayload):
    player_id: str


class PlaqueDraft(EventPayload):
    """Plaque telle qu'envoyée par le client (création ou édition partielle)."""

    id: Optional[str] = None
    type: Optional[Literal["rule", "prompt"]] = None
    text: Optional[str] = None
    plaque_color: Optional[str] = None
    is_active: Optional[bool] = None
    is_flipped: Optional[bool] = None


class PlaquePayload(EventPayload):
    # `plaqueObject` : nom historique utilisé par add_rule/add_prompt
    plaque: Optional[PlaqueDraft] = None
    plaque_object: Optional[PlaqueDraft] = None

    def draft(self) -> PlaqueDraft:
        return self.plaque or self.plaque_object or PlaqueDraft()


class RuleTargetPayload(EventPayload):
    rule_id: str
    player_id: str


class RulePayload(EventPayload):
    rule_id: str


class SwapRulesPayload(EventPayload):
    player1_id: str = Field(alias="player1Id")
    player2_id: str = Field(alias="player2Id")


class SegmentPayload(EventPayload):
    segment_id: str


class UpdatePointsPayload(EventPayload):
    player_id: str
    points: int


class GameSettingsPayload(EventPayload):
    num_rules: Optional[int] = None
    num_prompts: Optional[int] = None


class WheelSpinPayload(EventPayload):
    final_index: int
    scroll_amount: float
    duration: float


class NavigatePayload(EventPayload):
    screen: str = Field(min_length=1)
    params: Optional[Dict[str, Any]] = None


class CloneRulePayload(EventPayload):
    rule_id: str
    target_player_id: str
