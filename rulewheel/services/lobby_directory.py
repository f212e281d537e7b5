"""
Lobby directory
===============

Registre en mémoire des documents `GameState`, indexés à la fois par
identifiant interne (`id`) et par code de lobby (4 lettres).

- `create()` tire un code unique parmi les lobbies actifs (nouveau tirage en
  cas de collision, nombre d'essais borné).
- `put()` met à jour les DEUX index vers le même objet : un lecteur par code
  ne voit jamais une version plus ancienne qu'un lecteur par id.
- Aucune persistance disque : un redémarrage vide les lobbies.
"""
from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass, field
from threading import RLock
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from rulewheel.config.settings import Settings, settings as default_settings
from rulewheel.models.game import GameState, new_game_state
from rulewheel.services.errors import LobbyCodeUnavailable

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


@dataclass
class LobbyDirectory:
    settings: Settings = field(default_factory=lambda: default_settings)
    rng: random.Random = field(default_factory=random.Random)
    id_factory: Callable[[], str] = field(default=lambda: str(uuid4()))
    clock: Callable[[], float] = field(default=time.time)
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    _by_id: Dict[str, GameState] = field(default_factory=dict, init=False, repr=False)
    _by_code: Dict[str, GameState] = field(default_factory=dict, init=False, repr=False)

    # -----------------------------
    # Codes
    # -----------------------------
    def _draw_code(self) -> str:
        length = self.settings.LOBBY_CODE_LENGTH
        return "".join(self.rng.choice(CODE_ALPHABET) for _ in range(length))

    def _unique_code_nolock(self) -> str:
        for _ in range(self.settings.LOBBY_CODE_MAX_ATTEMPTS):
            code = self._draw_code()
            if code not in self._by_code:
                return code
        raise LobbyCodeUnavailable()

    # -----------------------------
    # API
    # -----------------------------
    def create(self, host_id: str, host_name: str) -> GameState:
        """Crée un lobby dont `host_id` est l'hôte et l'indexe par id et code."""
        with self._lock:
            code = self._unique_code_nolock()
            state = new_game_state(
                self.id_factory(),
                code,
                host_id,
                host_name,
                starting_points=self.settings.STARTING_POINTS,
                num_rules=self.settings.DEFAULT_NUM_RULES,
                num_prompts=self.settings.DEFAULT_NUM_PROMPTS,
                created_at=self.clock(),
            )
            self._by_id[state.id] = state
            self._by_code[code] = state
        logger.info("lobby created id=%s code=%s host=%s", state.id, code, host_id)
        return state

    def get(self, lobby_id: Optional[str]) -> Optional[GameState]:
        with self._lock:
            return self._by_id.get(lobby_id or "")

    def find_by_code(self, code: Optional[str]) -> Optional[GameState]:
        with self._lock:
            return self._by_code.get(normalize_code(code))

    def put(self, lobby_id: str, state: GameState) -> None:
        """Remplace le document du lobby (index id ET code, même objet)."""
        if state.id != lobby_id:
            raise ValueError(f"state id {state.id!r} does not match lobby {lobby_id!r}")
        with self._lock:
            previous = self._by_id.get(lobby_id)
            if previous is not None and previous.code != state.code:
                self._by_code.pop(previous.code, None)
            self._by_id[lobby_id] = state
            self._by_code[state.code] = state

    def remove(self, lobby_id: str) -> Optional[GameState]:
        with self._lock:
            state = self._by_id.pop(lobby_id, None)
            if state is not None:
                self._by_code.pop(state.code, None)
        if state is not None:
            logger.info("lobby evicted id=%s code=%s", lobby_id, state.code)
        return state

    def list_states(self) -> List[GameState]:
        with self._lock:
            return list(self._by_id.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
