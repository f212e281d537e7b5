"""
Service: session_registry.py
- Mapping connection_id -> player_id ET player_id -> connection_id.
- Mapping player_id -> lobby_id (indépendant de toute connexion : un joueur
  existe ici avant même que sa socket soit liée).
- Rattachement idempotent : une nouvelle connexion d'un joueur remplace
  l'ancienne (reconnexion avec une nouvelle socket).
- Numéros de séquence par connexion pour la livraison au plus une fois.
- Seul endroit qui sait « cette socket = ce joueur ».
"""
from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Dict, List, Optional


@dataclass
class SessionRegistry:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # player_id -> lobby_id
    player_lobby: Dict[str, str] = field(default_factory=dict)
    # lobby_id -> {player_id: None} (dict = ensemble ordonné)
    lobby_players: Dict[str, Dict[str, None]] = field(default_factory=dict)
    # player_id -> connection_id
    player_connection: Dict[str, str] = field(default_factory=dict)
    # reverse map: connection_id -> player_id
    connection_player: Dict[str, str] = field(default_factory=dict)
    # connection_id -> dernier seq accepté
    last_seq: Dict[str, int] = field(default_factory=dict)

    # ---------- joueurs ----------
    def register_player(self, player_id: str, lobby_id: str) -> None:
        """Rattache un joueur à son lobby (appelé une fois par joueur)."""
        with self._lock:
            previous = self.player_lobby.get(player_id)
            if previous and previous != lobby_id:
                self.lobby_players.get(previous, {}).pop(player_id, None)
            self.player_lobby[player_id] = lobby_id
            self.lobby_players.setdefault(lobby_id, {})[player_id] = None

    def forget_player(self, player_id: str) -> Optional[str]:
        """Oublie le joueur et sa liaison éventuelle ; renvoie son ancien lobby."""
        with self._lock:
            lobby_id = self.player_lobby.pop(player_id, None)
            if lobby_id is not None:
                members = self.lobby_players.get(lobby_id)
                if members is not None:
                    members.pop(player_id, None)
                    if not members:
                        self.lobby_players.pop(lobby_id, None)
            connection_id = self.player_connection.pop(player_id, None)
            if connection_id is not None:
                self.connection_player.pop(connection_id, None)
            return lobby_id

    def forget_lobby(self, lobby_id: str) -> List[str]:
        """Oublie tous les joueurs d'un lobby ; renvoie les connexions qui étaient liées."""
        with self._lock:
            connections = self.connections_for_lobby(lobby_id)
            for player_id in list(self.lobby_players.get(lobby_id, {})):
                self.forget_player(player_id)
            return connections

    # ---------- connexions ----------
    def bind_connection(self, connection_id: str, player_id: str) -> None:
        """
        Associe une connexion à un joueur connu.
        - Écrase la liaison précédente du joueur (reconnexion).
        - Si la connexion servait un autre joueur, elle en est détachée.
        """
        with self._lock:
            if player_id not in self.player_lobby:
                raise KeyError(f"unknown player {player_id!r}")
            previous_connection = self.player_connection.get(player_id)
            if previous_connection and previous_connection != connection_id:
                self.connection_player.pop(previous_connection, None)
                self.last_seq.pop(previous_connection, None)
            previous_player = self.connection_player.get(connection_id)
            if previous_player and previous_player != player_id:
                self.player_connection.pop(previous_player, None)
            self.player_connection[player_id] = connection_id
            self.connection_player[connection_id] = player_id

    def unbind_connection(self, connection_id: str) -> Optional[str]:
        """Détache la connexion ; renvoie le joueur propriétaire (None si inconnue)."""
        with self._lock:
            self.last_seq.pop(connection_id, None)
            player_id = self.connection_player.pop(connection_id, None)
            if player_id is not None and self.player_connection.get(player_id) == connection_id:
                self.player_connection.pop(player_id, None)
            return player_id

    def accept_sequence(self, connection_id: str, seq: int) -> bool:
        """True si `seq` est nouveau pour cette connexion (sinon doublon à ignorer)."""
        with self._lock:
            last = self.last_seq.get(connection_id)
            if last is not None and seq <= last:
                return False
            self.last_seq[connection_id] = seq
            return True

    # ---------- lectures ----------
    def player_for_connection(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self.connection_player.get(connection_id)

    def connection_for_player(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self.player_connection.get(player_id)

    def lobby_for_player(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self.player_lobby.get(player_id)

    def players_in_lobby(self, lobby_id: str) -> List[str]:
        with self._lock:
            return list(self.lobby_players.get(lobby_id, {}))

    def connections_for_lobby(self, lobby_id: str) -> List[str]:
        """Groupe de diffusion : connexions liées aux joueurs du lobby."""
        with self._lock:
            result: List[str] = []
            for player_id in self.lobby_players.get(lobby_id, {}):
                connection_id = self.player_connection.get(player_id)
                if connection_id:
                    result.append(connection_id)
            return result

    def stats(self) -> dict:
        with self._lock:
            return {
                "players": len(self.player_lobby),
                "connections": len(self.connection_player),
                "lobbies": len(self.lobby_players),
            }
