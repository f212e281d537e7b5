"""
Service: dispatcher.py
Rôle:
- Unique chemin de mutation d'un lobby : charge l'état depuis le
  `LobbyDirectory`, applique le reducer, stocke le résultat, notifie les
  abonnés (diffusion `game_updated`).
- Sérialise les dispatches PAR LOBBY (un `asyncio.Lock` par lobby) : le
  lire-réduire-écrire n'est jamais entrelacé pour un même lobby, les lobbies
  distincts avancent en parallèle.

API:
- `dispatch(lobby_id, action)` : une action, une diffusion.
- `apply(lobby_id, plan, batch=False)` : `plan(state) -> [actions]` est
  exécuté sous le verrou (validation + autorisation atomiques avec la
  mutation). Une diffusion par action effective, ou une seule si `batch`.
- `subscribe(listener)` : `listener(lobby_id, state)` coroutine.

Cycle de vie:
- Un lobby dont la liste de joueurs devient vide est évincé du directory.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from rulewheel.models.actions import Action
from rulewheel.models.game import GameState
from rulewheel.services.errors import LobbyNotFound
from rulewheel.services.lobby_directory import LobbyDirectory
from rulewheel.services.reducer import reduce

logger = logging.getLogger(__name__)

Listener = Callable[[str, GameState], Awaitable[None]]
Plan = Callable[[GameState], Sequence[Action]]


class ActionDispatcher:
    def __init__(self, directory: LobbyDirectory) -> None:
        self.directory = directory
        self._locks: Dict[str, asyncio.Lock] = {}
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _lock_for(self, lobby_id: str) -> asyncio.Lock:
        lock = self._locks.get(lobby_id)
        if lock is None:
            lock = self._locks[lobby_id] = asyncio.Lock()
        return lock

    def forget(self, lobby_id: str) -> None:
        self._locks.pop(lobby_id, None)

    async def dispatch(self, lobby_id: str, action: Action) -> GameState:
        return await self.apply(lobby_id, lambda _state: [action])

    async def apply(self, lobby_id: str, plan: Plan, *, batch: bool = False) -> GameState:
        async with self._lock_for(lobby_id):
            state = self.directory.get(lobby_id)
            if state is None:
                raise LobbyNotFound()

            # Les GameError levées par le plan remontent telles quelles (aucune mutation).
            actions = plan(state)

            snapshots: List[GameState] = []
            current = state
            for action in actions:
                following = reduce(current, action)
                if following is current:
                    continue
                current = following
                snapshots.append(current)

            if current is state:
                return state

            if current.players:
                self.directory.put(lobby_id, current)
            else:
                self.directory.remove(lobby_id)
                self.forget(lobby_id)
                return current

            if batch:
                snapshots = snapshots[-1:]
            for snapshot in snapshots:
                await self._notify(lobby_id, snapshot)
            return current

    async def evict(self, lobby_id: str) -> Optional[GameState]:
        """Retire un lobby (route admin) sous son verrou."""
        async with self._lock_for(lobby_id):
            state = self.directory.remove(lobby_id)
        self.forget(lobby_id)
        return state

    async def _notify(self, lobby_id: str, state: GameState) -> None:
        for listener in list(self._listeners):
            try:
                await listener(lobby_id, state)
            except Exception:
                # Une diffusion ratée ne doit pas casser le lobby (ni les autres).
                logger.exception("broadcast listener failed for lobby %s", lobby_id)
