"""
Service: hub.py
Rôle:
- Point d'entrée des trames WebSocket `{"type", "payload", "seq"?}`.
- Décode le payload (Pydantic), route vers `GameService`, répond à
  l'émetteur, relaie les événements éphémères (animation de roue,
  navigation, fin de partie) au lobby.
- Abonné du dispatcher : chaque état effectif part en `game_updated` vers
  TOUTES les connexions liées du lobby.

Erreurs:
- `GameError` / payload invalide → une trame `error {message}` à la seule
  connexion émettrice ; rien n'est diffusé.
- Exception inattendue → journalisée avec trace, `error` générique ; la
  connexion et le lobby continuent.

Livraison au plus une fois:
- Une trame portant un `seq` entier inférieur ou égal au dernier accepté
  sur cette connexion est ignorée (doublon).
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

import orjson
from pydantic import BaseModel, ValidationError

from rulewheel.config.settings import Settings, settings as default_settings
from rulewheel.models.events import (
    CloneRulePayload,
    CreateLobbyPayload,
    GameSettingsPayload,
    JoinLobbyPayload,
    NavigatePayload,
    PlaquePayload,
    RejoinLobbyPayload,
    RulePayload,
    RuleTargetPayload,
    SegmentPayload,
    SwapRulesPayload,
    UpdatePointsPayload,
    WheelSpinPayload,
)
from rulewheel.models.game import GameState
from rulewheel.services.dispatcher import ActionDispatcher
from rulewheel.services.errors import GameError, LobbyNotFound
from rulewheel.services.game_service import GameService
from rulewheel.services.lobby_directory import LobbyDirectory
from rulewheel.services.session_registry import SessionRegistry
from rulewheel.services.ws_manager import ConnectionManager

logger = logging.getLogger(__name__)

Handler = Callable[["GameHub", str, Any], Awaitable[None]]
# event -> (modèle du payload ou None, handler)
EVENTS: Dict[str, Tuple[Optional[Type[BaseModel]], Handler]] = {}


def on_event(name: str, model: Optional[Type[BaseModel]] = None):
    def register(fn: Handler) -> Handler:
        EVENTS[name] = (model, fn)
        return fn
    return register


class GameHub:
    def __init__(
        self,
        settings: Settings = default_settings,
        directory: Optional[LobbyDirectory] = None,
    ) -> None:
        self.settings = settings
        self.connections = ConnectionManager()
        self.sessions = SessionRegistry()
        self.directory = directory or LobbyDirectory(settings)
        self.dispatcher = ActionDispatcher(self.directory)
        self.service = GameService(self.directory, self.sessions, self.dispatcher, settings)
        self.dispatcher.subscribe(self._broadcast_state)

    # -----------------------------
    # Connexions
    # -----------------------------
    async def connect(self, ws) -> str:
        return await self.connections.connect(ws)

    async def disconnect(self, connection_id: str) -> None:
        await self.connections.disconnect(connection_id)
        await self.service.disconnect(connection_id)

    async def shutdown(self) -> None:
        await self.service.shutdown()
        await self.connections.close_all()

    def stats(self) -> dict:
        registry = self.sessions.stats()
        return {
            "lobbies": len(self.directory),
            "players": registry["players"],
            "connections": self.connections.stats()["connections"],
        }

    # -----------------------------
    # Envois
    # -----------------------------
    async def _broadcast_state(self, lobby_id: str, state: GameState) -> None:
        targets = self.sessions.connections_for_lobby(lobby_id)
        await self.connections.send_type_many(targets, "game_updated", state.to_wire())

    async def send(self, connection_id: str, event_type: str, payload: Any = None) -> None:
        await self.connections.send_type(connection_id, event_type, payload)

    async def send_error(self, connection_id: str, message: str) -> None:
        await self.send(connection_id, "error", {"message": message})

    async def relay(self, lobby_id: str, event_type: str, payload: Any = None) -> int:
        targets = self.sessions.connections_for_lobby(lobby_id)
        return await self.connections.send_type_many(targets, event_type, payload)

    async def close_lobby(self, lobby_id: str) -> int:
        """Évince un lobby et prévient ses connexions (`lobby_closed`)."""
        state = self.directory.get(lobby_id)
        if state is None:
            raise LobbyNotFound()
        targets = await self.service.close_lobby(lobby_id)
        return await self.connections.send_type_many(
            targets, "lobby_closed", {"lobbyId": lobby_id, "code": state.code}
        )

    # -----------------------------
    # Réception
    # -----------------------------
    async def handle_message(self, connection_id: str, raw: str) -> None:
        try:
            message = orjson.loads(raw)
        except orjson.JSONDecodeError:
            await self.send_error(connection_id, "Malformed message")
            return
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            await self.send_error(connection_id, "Malformed message")
            return

        seq = message.get("seq")
        if isinstance(seq, int) and not isinstance(seq, bool):
            if not self.sessions.accept_sequence(connection_id, seq):
                logger.info("duplicate frame seq=%s on %s dropped", seq, connection_id)
                return

        event = message["type"]
        entry = EVENTS.get(event)
        if entry is None:
            await self.send_error(connection_id, f"Unknown event: {event}")
            return

        model, handler = entry
        raw_payload = message.get("payload")
        try:
            payload = model.model_validate(raw_payload or {}) if model else raw_payload
        except ValidationError:
            await self.send_error(connection_id, f"Invalid payload for {event}")
            return

        try:
            await handler(self, connection_id, payload)
        except GameError as exc:
            logger.debug("%s rejected for %s: %s", event, connection_id, exc.message)
            await self.send_error(connection_id, exc.message)
        except Exception:
            logger.exception("handler %s failed for %s", event, connection_id)
            await self.send_error(connection_id, "Internal server error")


# =====================================================
# Handlers d'événements client → serveur
# =====================================================
@on_event("ping")
async def _ping(hub: GameHub, cid: str, payload: Any) -> None:
    await hub.send(cid, "pong", payload)


@on_event("create_lobby", CreateLobbyPayload)
async def _create_lobby(hub: GameHub, cid: str, payload: CreateLobbyPayload) -> None:
    player_id, state = await hub.service.create_lobby(cid, payload.player_name)
    await hub.send(cid, "lobby_created", {"playerId": player_id, "game": state.to_wire()})


@on_event("join_lobby", JoinLobbyPayload)
async def _join_lobby(hub: GameHub, cid: str, payload: JoinLobbyPayload) -> None:
    player_id, state = await hub.service.join_lobby(cid, payload.code, payload.player_name)
    await hub.send(cid, "joined_lobby", {"playerId": player_id, "game": state.to_wire()})


@on_event("rejoin_lobby", RejoinLobbyPayload)
async def _rejoin_lobby(hub: GameHub, cid: str, payload: RejoinLobbyPayload) -> None:
    state = await hub.service.rejoin_lobby(cid, payload.player_id)
    await hub.send(cid, "rejoined_lobby", {"playerId": payload.player_id, "game": state.to_wire()})


@on_event("leave_lobby")
async def _leave_lobby(hub: GameHub, cid: str, payload: Any) -> None:
    lobby_id = await hub.service.leave_lobby(cid)
    await hub.send(cid, "left_lobby", {"lobbyId": lobby_id})


# --- écriture ---
@on_event("add_plaque", PlaquePayload)
async def _add_plaque(hub: GameHub, cid: str, payload: PlaquePayload) -> None:
    await hub.service.add_plaque(cid, payload.draft())


@on_event("add_rule", PlaquePayload)
async def _add_rule(hub: GameHub, cid: str, payload: PlaquePayload) -> None:
    await hub.service.add_plaque(cid, payload.draft(), "rule")


@on_event("add_prompt", PlaquePayload)
async def _add_prompt(hub: GameHub, cid: str, payload: PlaquePayload) -> None:
    await hub.service.add_plaque(cid, payload.draft(), "prompt")


@on_event("update_plaque", PlaquePayload)
async def _update_plaque(hub: GameHub, cid: str, payload: PlaquePayload) -> None:
    await hub.service.update_plaque(cid, payload.draft())


@on_event("update_rule", PlaquePayload)
async def _update_rule(hub: GameHub, cid: str, payload: PlaquePayload) -> None:
    await hub.service.update_plaque(cid, payload.draft(), "rule")


@on_event("update_prompt", PlaquePayload)
async def _update_prompt(hub: GameHub, cid: str, payload: PlaquePayload) -> None:
    await hub.service.update_plaque(cid, payload.draft(), "prompt")


@on_event("rules_completed")
async def _rules_completed(hub: GameHub, cid: str, payload: Any) -> None:
    await hub.service.mark_completed(cid, "rules")


@on_event("prompts_completed")
async def _prompts_completed(hub: GameHub, cid: str, payload: Any) -> None:
    await hub.service.mark_completed(cid, "prompts")


# --- déroulé ---
@on_event("start_game")
async def _start_game(hub: GameHub, cid: str, payload: Any) -> None:
    state = await hub.service.start_game(cid)
    await hub.relay(state.id, "game_started", {})


@on_event("update_game_settings", GameSettingsPayload)
async def _update_game_settings(hub: GameHub, cid: str, payload: GameSettingsPayload) -> None:
    await hub.service.update_game_settings(cid, payload.num_rules, payload.num_prompts)


@on_event("spin_wheel")
async def _spin_wheel(hub: GameHub, cid: str, payload: Any) -> None:
    await hub.service.spin_wheel(cid)


@on_event("complete_wheel_spin")
async def _complete_wheel_spin(hub: GameHub, cid: str, payload: Any) -> None:
    await hub.service.complete_wheel_spin(cid)


@on_event("synchronized_wheel_spin", WheelSpinPayload)
async def _synchronized_wheel_spin(hub: GameHub, cid: str, payload: WheelSpinPayload) -> None:
    player_id, lobby_id = hub.service.locate(cid)
    state = hub.directory.get(lobby_id)
    if state is None:
        raise LobbyNotFound()
    hub.service.check_spin_relay(state, player_id)
    await hub.relay(
        lobby_id,
        "synchronized_wheel_spin",
        {
            "spinningPlayerId": player_id,
            "finalIndex": payload.final_index,
            "scrollAmount": payload.scroll_amount,
            "duration": payload.duration,
        },
    )


@on_event("advance_to_next_player")
async def _advance_to_next_player(hub: GameHub, cid: str, payload: Any) -> None:
    await hub.service.advance_to_next_player(cid)


@on_event("remove_wheel_layer", SegmentPayload)
async def _remove_wheel_layer(hub: GameHub, cid: str, payload: SegmentPayload) -> None:
    await hub.service.remove_wheel_layer(cid, payload.segment_id)


# --- règles en jeu ---
@on_event("assign_rule", RuleTargetPayload)
async def _assign_rule(hub: GameHub, cid: str, payload: RuleTargetPayload) -> None:
    await hub.service.assign_rule(cid, payload.rule_id, payload.player_id)


@on_event("assign_rule_to_current_player", RulePayload)
async def _assign_rule_to_current(hub: GameHub, cid: str, payload: RulePayload) -> None:
    await hub.service.assign_rule_to_current_player(cid, payload.rule_id)


@on_event("swap_rules", SwapRulesPayload)
async def _swap_rules(hub: GameHub, cid: str, payload: SwapRulesPayload) -> None:
    await hub.service.swap_rules(cid, payload.player1_id, payload.player2_id)


@on_event("clone_rule_to_player", CloneRulePayload)
async def _clone_rule(hub: GameHub, cid: str, payload: CloneRulePayload) -> None:
    await hub.service.clone_rule_to_player(cid, payload.rule_id, payload.target_player_id)


@on_event("shred_rule", RulePayload)
async def _shred_rule(hub: GameHub, cid: str, payload: RulePayload) -> None:
    await hub.service.shred_rule(cid, payload.rule_id)


@on_event("update_points", UpdatePointsPayload)
async def _update_points(hub: GameHub, cid: str, payload: UpdatePointsPayload) -> None:
    await hub.service.update_points(cid, payload.player_id, payload.points)


# --- relais éphémères ---
@on_event("navigate_to_screen", NavigatePayload)
async def _navigate_to_screen(hub: GameHub, cid: str, payload: NavigatePayload) -> None:
    _, lobby_id = hub.service.locate(cid)
    await hub.relay(lobby_id, "navigate_to_screen", {"screen": payload.screen, "params": payload.params})


@on_event("end_game_continue")
async def _end_game_continue(hub: GameHub, cid: str, payload: Any) -> None:
    player_id, lobby_id = hub.service.locate(cid)
    state = hub.directory.get(lobby_id)
    if state is None:
        raise LobbyNotFound()
    hub.service.require_host(state, player_id)
    await hub.relay(lobby_id, "end_game_continue", payload if isinstance(payload, dict) else {})


@on_event("end_game_end")
async def _end_game_end(hub: GameHub, cid: str, payload: Any) -> None:
    state = await hub.service.end_game(cid)
    winner = state.winner.to_wire() if state.winner else None
    await hub.relay(state.id, "end_game_end", {"winner": winner})
