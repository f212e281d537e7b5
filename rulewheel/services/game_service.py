"""
Service: game_service.py
Rôle:
- Couche applicative entre le hub WebSocket et le dispatcher : chaque
  intention client devient un « plan » `plan(state) -> [actions]` exécuté
  sous le verrou du lobby (autorisation + validation atomiques avec la
  mutation).
- Génère TOUS les identifiants (joueurs, plaques) avant de construire les
  actions : le reducer reste pur.
- Porte les règles métier que le reducer ignore : hôte seul, joueur actif
  seul, bornes de points, quotas d'écriture, calcul du gagnant.

Déconnexion:
- Retrait du joueur, promotion du premier joueur restant si l'hôte part,
  passage du tour si le partant (ou le nouvel hôte) était actif. Le tout en
  UN lot : aucune diffusion ne montre un lobby sans hôte.
- `RECONNECT_GRACE_SECONDS > 0` : le retrait est différé, un `rejoin_lobby`
  dans le délai l'annule.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from rulewheel.config.settings import Settings, settings as default_settings
from rulewheel.models.actions import (
    Action,
    AddPlayer,
    AddPrompt,
    AddRule,
    AdvanceToNextPlayer,
    AssignRule,
    CreateWheelSegments,
    EndGame,
    MarkPromptsCompleted,
    MarkRulesCompleted,
    RemovePlayer,
    RemoveWheelLayer,
    SetHost,
    SetNumPrompts,
    SetNumRules,
    SetWheelSpinning,
    StartGame,
    UpdatePoints,
    UpdatePrompt,
    UpdateRule,
)
from rulewheel.models.events import PlaqueDraft
from rulewheel.models.game import (
    GameState,
    Plaque,
    Player,
    find_player,
    find_rule,
    find_segment,
    non_host_players,
    rules_assigned_to,
)
from rulewheel.services.dispatcher import ActionDispatcher
from rulewheel.services.errors import (
    GameAlreadyStarted,
    LobbyNotFound,
    NotInLobby,
    Unauthorized,
    ValidationFailed,
)
from rulewheel.services.lobby_directory import LobbyDirectory
from rulewheel.services.reducer import reduce
from rulewheel.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

# Couleurs des plaques écrites (bleu, jaune, rouge), réparties équitablement
PLAQUE_COLORS = ("#6bb9d3", "#f6d170", "#ed5c5d")


# -----------------------------
# Règles pures
# -----------------------------
def compute_winner(players: Iterable[Player]) -> Optional[Player]:
    """Premier non-hôte au score maximal (ordre de la liste en cas d'égalité)."""
    winner: Optional[Player] = None
    for player in players:
        if player.is_host:
            continue
        if winner is None or player.points > winner.points:
            winner = player
    return winner


def authoring_complete(state: GameState) -> bool:
    """Tous les non-hôtes ont terminé règles ET prompts (au moins un non-hôte)."""
    others = non_host_players(state)
    return bool(others) and all(p.rules_completed and p.prompts_completed for p in others)


def next_plaque_color(plaques: Iterable[Plaque]) -> str:
    """Couleur la moins utilisée de la palette (la première en cas d'égalité)."""
    counts = {color: 0 for color in PLAQUE_COLORS}
    for plaque in plaques:
        if plaque.plaque_color in counts:
            counts[plaque.plaque_color] += 1
    return min(PLAQUE_COLORS, key=lambda color: counts[color])


def disconnect_actions(state: GameState, player_id: str) -> List[Action]:
    """Cascade de retrait d'un joueur (voir docstring du module)."""
    leaving = find_player(state, player_id)
    if leaving is None:
        return []
    actions: List[Action] = [RemovePlayer(player_id=player_id)]
    remaining = [p for p in state.players if p.id != player_id]
    new_host_id = None
    if leaving.is_host and remaining:
        new_host_id = remaining[0].id
        actions.append(SetHost(player_id=new_host_id))
    if state.active_player is not None and state.active_player in (player_id, new_host_id):
        actions.append(AdvanceToNextPlayer())
    return actions


class GameService:
    def __init__(
        self,
        directory: LobbyDirectory,
        sessions: SessionRegistry,
        dispatcher: ActionDispatcher,
        settings: Settings = default_settings,
        id_factory=lambda: str(uuid4()),
    ) -> None:
        self.directory = directory
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.settings = settings
        self.id_factory = id_factory
        # player_id -> tâche de retrait différé (délai de grâce)
        self._pending_removals: Dict[str, asyncio.Task] = {}

    # -----------------------------
    # Résolution & garde-fous
    # -----------------------------
    def locate(self, connection_id: str) -> Tuple[str, str]:
        """(player_id, lobby_id) de la connexion, sinon `NotInLobby`."""
        player_id = self.sessions.player_for_connection(connection_id)
        lobby_id = self.sessions.lobby_for_player(player_id) if player_id else None
        if not player_id or not lobby_id:
            raise NotInLobby()
        return player_id, lobby_id

    def _clean_name(self, name: Optional[str]) -> str:
        cleaned = " ".join((name or "").split())
        if not cleaned:
            raise ValidationFailed("Player name is required")
        if len(cleaned) > self.settings.PLAYER_NAME_MAX_LENGTH:
            raise ValidationFailed(
                f"Player name must be at most {self.settings.PLAYER_NAME_MAX_LENGTH} characters"
            )
        return cleaned

    def _clean_text(self, text: Optional[str]) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationFailed("Plaque text is required")
        if len(cleaned) > self.settings.PLAQUE_MAX_LENGTH:
            raise ValidationFailed(
                f"Plaque text must be at most {self.settings.PLAQUE_MAX_LENGTH} characters"
            )
        return cleaned

    @staticmethod
    def _member(state: GameState, player_id: str) -> Player:
        player = find_player(state, player_id)
        if player is None:
            raise NotInLobby()
        return player

    def require_host(self, state: GameState, player_id: str) -> Player:
        player = self._member(state, player_id)
        if not player.is_host:
            raise Unauthorized("Only the host can do that")
        return player

    def _require_host_or_active(self, state: GameState, player_id: str) -> Player:
        player = self._member(state, player_id)
        if not player.is_host and state.active_player != player_id:
            raise Unauthorized("Only the host or the active player can do that")
        return player

    @staticmethod
    def _require_started(state: GameState) -> None:
        if not state.is_game_started:
            raise ValidationFailed("The game has not started yet")
        if state.game_ended:
            raise ValidationFailed("The game has ended")

    @staticmethod
    def _require_rule(state: GameState, rule_id: str) -> Plaque:
        rule = find_rule(state, rule_id)
        if rule is None:
            raise ValidationFailed("Rule not found")
        return rule

    @staticmethod
    def _require_target(state: GameState, player_id: str) -> Player:
        player = find_player(state, player_id)
        if player is None:
            raise ValidationFailed("Player not found")
        return player

    async def _apply(self, connection_id: str, plan, *, batch: bool = False) -> GameState:
        """Exécute un plan pour le lobby de la connexion ; le plan reçoit (state, player_id)."""
        player_id, lobby_id = self.locate(connection_id)
        return await self.dispatcher.apply(
            lobby_id, lambda state: plan(state, player_id), batch=batch
        )

    # -----------------------------
    # Cycle de vie des lobbies
    # -----------------------------
    async def create_lobby(self, connection_id: str, player_name: str) -> Tuple[str, GameState]:
        """Crée un lobby dont l'émetteur est l'hôte ; renvoie (player_id, state)."""
        name = self._clean_name(player_name)
        await self.leave_lobby(connection_id, quiet=True)
        player_id = self.id_factory()
        state = self.directory.create(player_id, name)
        self.sessions.register_player(player_id, state.id)
        self.sessions.bind_connection(connection_id, player_id)
        return player_id, state

    async def join_lobby(
        self, connection_id: str, code: str, player_name: str
    ) -> Tuple[str, GameState]:
        name = self._clean_name(player_name)
        found = self.directory.find_by_code(code)
        if found is None:
            raise LobbyNotFound()
        if found.is_game_started:
            raise GameAlreadyStarted()

        await self.leave_lobby(connection_id, quiet=True)
        player_id = self.id_factory()
        # rattaché AVANT la diffusion pour que le nouveau joueur la reçoive aussi
        self.sessions.register_player(player_id, found.id)
        self.sessions.bind_connection(connection_id, player_id)

        def plan(state: GameState) -> List[Action]:
            if state.is_game_started:
                raise GameAlreadyStarted()
            player = Player(id=player_id, name=name, points=self.settings.STARTING_POINTS)
            return [AddPlayer(player=player)]

        try:
            state = await self.dispatcher.apply(found.id, plan)
        except Exception:
            self.sessions.forget_player(player_id)
            raise
        logger.info("player %s joined lobby %s", player_id, state.code)
        return player_id, state

    async def rejoin_lobby(self, connection_id: str, player_id: str) -> GameState:
        """Rattache une nouvelle connexion à un joueur toujours présent."""
        lobby_id = self.sessions.lobby_for_player(player_id)
        state = self.directory.get(lobby_id)
        if state is None or find_player(state, player_id) is None:
            raise LobbyNotFound()
        # la connexion portait un autre joueur : il quitte son lobby d'abord
        if self.sessions.player_for_connection(connection_id) not in (None, player_id):
            await self.leave_lobby(connection_id, quiet=True)
            state = self.directory.get(lobby_id)
            if state is None or find_player(state, player_id) is None:
                raise LobbyNotFound()
        pending = self._pending_removals.pop(player_id, None)
        if pending is not None:
            pending.cancel()
        self.sessions.bind_connection(connection_id, player_id)
        logger.info("player %s rejoined lobby %s", player_id, state.code)
        return state

    async def leave_lobby(self, connection_id: str, *, quiet: bool = False) -> Optional[str]:
        """Départ volontaire ; renvoie l'id du lobby quitté."""
        try:
            player_id, lobby_id = self.locate(connection_id)
        except NotInLobby:
            if quiet:
                return None
            raise
        await self.remove_player(lobby_id, player_id)
        return lobby_id

    async def disconnect(self, connection_id: str) -> None:
        """Fermeture de socket : retrait immédiat ou différé selon le délai de grâce."""
        player_id = self.sessions.unbind_connection(connection_id)
        if player_id is None:
            return
        lobby_id = self.sessions.lobby_for_player(player_id)
        if lobby_id is None:
            return
        grace = self.settings.RECONNECT_GRACE_SECONDS
        if grace > 0:
            previous = self._pending_removals.pop(player_id, None)
            if previous is not None:
                previous.cancel()
            self._pending_removals[player_id] = asyncio.create_task(
                self._remove_after(grace, lobby_id, player_id)
            )
            logger.info("player %s disconnected, removal in %.1fs", player_id, grace)
            return
        await self.remove_player(lobby_id, player_id)

    async def _remove_after(self, delay: float, lobby_id: str, player_id: str) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        self._pending_removals.pop(player_id, None)
        if self.sessions.connection_for_player(player_id) is not None:
            return
        await self.remove_player(lobby_id, player_id)

    async def remove_player(self, lobby_id: str, player_id: str) -> None:
        try:
            await self.dispatcher.apply(
                lobby_id, lambda state: disconnect_actions(state, player_id), batch=True
            )
            logger.info("player %s removed from lobby %s", player_id, lobby_id)
        except LobbyNotFound:
            logger.info("lobby %s already gone while removing %s", lobby_id, player_id)
        finally:
            self.sessions.forget_player(player_id)

    async def close_lobby(self, lobby_id: str) -> List[str]:
        """Évince un lobby (admin) ; renvoie les connexions à prévenir."""
        state = await self.dispatcher.evict(lobby_id)
        if state is None:
            raise LobbyNotFound()
        for player in state.players:
            pending = self._pending_removals.pop(player.id, None)
            if pending is not None:
                pending.cancel()
        return self.sessions.forget_lobby(lobby_id)

    async def shutdown(self) -> None:
        tasks = list(self._pending_removals.values())
        self._pending_removals.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # -----------------------------
    # Écriture des plaques
    # -----------------------------
    async def add_plaque(self, connection_id: str, draft: PlaqueDraft, kind: Optional[str] = None):
        kind = kind or draft.type
        if kind not in ("rule", "prompt"):
            raise ValidationFailed("Plaque type must be 'rule' or 'prompt'")
        text = self._clean_text(draft.text)
        plaque_id = self.id_factory()

        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            self._require_started(state)
            existing = state.rules if kind == "rule" else state.prompts
            quota = state.num_rules if kind == "rule" else state.num_prompts
            authored = sum(1 for p in existing if p.author_id == player_id)
            if authored >= quota:
                raise ValidationFailed(f"You already wrote {quota} {kind}s")
            plaque = Plaque(
                id=plaque_id,
                type=kind,
                text=text,
                author_id=player_id,
                plaque_color=draft.plaque_color or next_plaque_color([*state.rules, *state.prompts]),
            )
            if kind == "rule":
                return [AddRule(rule=plaque)]
            return [AddPrompt(prompt=plaque)]

        return await self._apply(connection_id, plan)

    async def update_plaque(
        self, connection_id: str, draft: PlaqueDraft, kind: Optional[str] = None
    ):
        kind = kind or draft.type
        if kind not in ("rule", "prompt"):
            raise ValidationFailed("Plaque type must be 'rule' or 'prompt'")
        if not draft.id:
            raise ValidationFailed("Plaque id is required")
        changes = {}
        if draft.text is not None:
            changes["text"] = self._clean_text(draft.text)
        if draft.plaque_color is not None:
            changes["plaque_color"] = draft.plaque_color
        if draft.is_active is not None:
            changes["is_active"] = draft.is_active
        if draft.is_flipped is not None:
            changes["is_flipped"] = draft.is_flipped

        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            items = state.rules if kind == "rule" else state.prompts
            current = next((p for p in items if p.id == draft.id), None)
            if current is None:
                raise ValidationFailed(f"{kind.capitalize()} not found")
            updated = current.model_copy(update=changes)
            if kind == "rule":
                return [UpdateRule(rule=updated)]
            return [UpdatePrompt(prompt=updated)]

        return await self._apply(connection_id, plan)

    async def mark_completed(self, connection_id: str, kind: str) -> GameState:
        """Marque règles ou prompts terminés ; construit la roue quand tout le monde a fini."""

        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            # écriture après START_GAME : plus aucun joueur ne peut rejoindre
            self._require_started(state)
            if kind == "rules":
                mark: Action = MarkRulesCompleted(player_id=player_id)
            else:
                mark = MarkPromptsCompleted(player_id=player_id)
            actions: List[Action] = [mark]
            projected = reduce(state, mark)
            if not projected.wheel_segments and authoring_complete(projected):
                actions.append(CreateWheelSegments())
            return actions

        return await self._apply(connection_id, plan, batch=True)

    # -----------------------------
    # Déroulé
    # -----------------------------
    async def start_game(self, connection_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            self.require_host(state, player_id)
            if state.is_game_started:
                raise GameAlreadyStarted()
            if not non_host_players(state):
                raise ValidationFailed("At least one other player is needed to start")
            return [StartGame()]

        return await self._apply(connection_id, plan)

    async def spin_wheel(self, connection_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            player = self._member(state, player_id)
            self._require_started(state)
            if player.is_host:
                raise Unauthorized("Host players cannot spin the wheel")
            if not authoring_complete(state):
                raise ValidationFailed(
                    "All players must complete rules and prompts before spinning the wheel"
                )
            if not state.wheel_segments:
                raise ValidationFailed("The wheel is not ready yet")
            if state.active_player != player_id:
                raise Unauthorized("It is not your turn to spin")
            if state.is_wheel_spinning:
                raise ValidationFailed("The wheel is already spinning")
            return [SetWheelSpinning(spinning=True)]

        return await self._apply(connection_id, plan)

    async def complete_wheel_spin(self, connection_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            self._require_host_or_active(state, player_id)
            return [SetWheelSpinning(spinning=False)]

        return await self._apply(connection_id, plan)

    def check_spin_relay(self, state: GameState, player_id: str) -> None:
        """Seul le joueur actif (non hôte) diffuse l'animation de la roue."""
        player = self._member(state, player_id)
        if player.is_host:
            raise Unauthorized("Host players cannot spin the wheel")
        if state.active_player != player_id:
            raise Unauthorized("It is not your turn to spin")

    async def advance_to_next_player(self, connection_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            self._require_host_or_active(state, player_id)
            self._require_started(state)
            return [AdvanceToNextPlayer()]

        return await self._apply(connection_id, plan)

    async def remove_wheel_layer(self, connection_id: str, segment_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            self._require_host_or_active(state, player_id)
            if find_segment(state, segment_id) is None:
                raise ValidationFailed("Wheel segment not found")
            return [RemoveWheelLayer(segment_id=segment_id)]

        return await self._apply(connection_id, plan)

    async def end_game(self, connection_id: str) -> GameState:
        """Fin de partie (hôte seul) ; le gagnant est calculé ici, pas par le client."""

        def plan(state: GameState, player_id: str) -> List[Action]:
            self.require_host(state, player_id)
            if state.game_ended:
                raise ValidationFailed("The game has already ended")
            return [EndGame(winner=compute_winner(state.players))]

        return await self._apply(connection_id, plan)

    # -----------------------------
    # Règles en jeu
    # -----------------------------
    async def assign_rule(self, connection_id: str, rule_id: str, target_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            self._require_rule(state, rule_id)
            self._require_target(state, target_id)
            return [AssignRule(rule_id=rule_id, player_id=target_id)]

        return await self._apply(connection_id, plan)

    async def assign_rule_to_current_player(self, connection_id: str, rule_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            self._require_host_or_active(state, player_id)
            if state.active_player is None:
                raise ValidationFailed("There is no active player")
            self._require_rule(state, rule_id)
            return [AssignRule(rule_id=rule_id, player_id=state.active_player)]

        return await self._apply(connection_id, plan)

    async def swap_rules(self, connection_id: str, first_id: str, second_id: str) -> GameState:
        """Échange les règles portées par deux joueurs (une seule diffusion)."""

        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            if first_id == second_id:
                raise ValidationFailed("Cannot swap rules with the same player")
            self._require_target(state, first_id)
            self._require_target(state, second_id)
            actions: List[Action] = [
                AssignRule(rule_id=r.id, player_id=second_id)
                for r in rules_assigned_to(state, first_id)
            ]
            actions.extend(
                AssignRule(rule_id=r.id, player_id=first_id)
                for r in rules_assigned_to(state, second_id)
            )
            return actions

        return await self._apply(connection_id, plan, batch=True)

    async def clone_rule_to_player(
        self, connection_id: str, rule_id: str, target_id: str
    ) -> GameState:
        clone_id = self.id_factory()

        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            rule = self._require_rule(state, rule_id)
            self._require_target(state, target_id)
            clone = rule.model_copy(update={"id": clone_id, "assigned_to": target_id})
            return [AddRule(rule=clone)]

        return await self._apply(connection_id, plan)

    async def shred_rule(self, connection_id: str, rule_id: str) -> GameState:
        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            rule = self._require_rule(state, rule_id)
            shredded = rule.model_copy(update={"is_active": False, "assigned_to": None})
            return [UpdateRule(rule=shredded)]

        return await self._apply(connection_id, plan)

    # -----------------------------
    # Score & réglages
    # -----------------------------
    async def update_points(self, connection_id: str, target_id: str, points: int) -> GameState:
        low, high = self.settings.POINTS_MIN, self.settings.POINTS_MAX
        if isinstance(points, bool) or not isinstance(points, int) or not low <= points <= high:
            raise ValidationFailed(f"Points must be between {low} and {high}")

        def plan(state: GameState, player_id: str) -> List[Action]:
            self._member(state, player_id)
            self._require_target(state, target_id)
            return [UpdatePoints(player_id=target_id, points=points)]

        return await self._apply(connection_id, plan)

    async def update_game_settings(
        self,
        connection_id: str,
        num_rules: Optional[int] = None,
        num_prompts: Optional[int] = None,
    ) -> GameState:
        if num_rules is None and num_prompts is None:
            raise ValidationFailed("Nothing to update")
        ceiling = self.settings.MAX_PLAQUES_PER_PLAYER
        for value in (num_rules, num_prompts):
            if value is not None and not 1 <= value <= ceiling:
                raise ValidationFailed(f"Counts must be between 1 and {ceiling}")

        def plan(state: GameState, player_id: str) -> List[Action]:
            self.require_host(state, player_id)
            if state.is_game_started:
                raise GameAlreadyStarted()
            actions: List[Action] = []
            if num_rules is not None:
                actions.append(SetNumRules(value=num_rules))
            if num_prompts is not None:
                actions.append(SetNumPrompts(value=num_prompts))
            return actions

        return await self._apply(connection_id, plan, batch=True)
