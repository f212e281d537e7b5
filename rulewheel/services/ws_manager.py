# rulewheel/services/ws_manager.py
"""
Service: ws_manager.py
- Mapping connection_id -> WebSocket (un id opaque par socket acceptée).
- Trames JSON `{"type", "payload"}` encodées avec orjson.
- Snapshots immuables pour éviter "dict changed size during iteration".
- Une socket morte (envoi en échec) est retirée du registre.
- Admin: stats(), close_all().
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

import orjson
from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


@dataclass
class ConnectionManager:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # connection_id -> WebSocket
    sockets: Dict[str, WebSocket] = field(default_factory=dict)

    async def connect(self, ws: WebSocket) -> str:
        """Accepte la connexion WS et renvoie son identifiant."""
        await ws.accept()
        connection_id = uuid4().hex
        with self._lock:
            self.sockets[connection_id] = ws
        return connection_id

    def _forget(self, connection_id: str) -> Optional[WebSocket]:
        with self._lock:
            return self.sockets.pop(connection_id, None)

    async def disconnect(self, connection_id: str, code: int = 1000) -> None:
        """Ferme proprement la connexion (si encore ouverte) et nettoie le registre."""
        ws = self._forget(connection_id)
        if ws is None:
            return
        if WebSocketState.DISCONNECTED in (ws.client_state, ws.application_state):
            return
        try:
            await ws.close(code=code)
        except Exception:
            logger.debug("close failed for %s", connection_id, exc_info=True)

    async def send_json(self, connection_id: str, payload: Any) -> bool:
        """Envoie à une connexion ; False si inconnue ou morte (et retirée)."""
        with self._lock:
            ws = self.sockets.get(connection_id)
        if ws is None:
            return False
        try:
            await ws.send_text(orjson.dumps(payload).decode("utf-8"))
            return True
        except Exception:
            logger.info("dropping dead socket %s", connection_id)
            self._forget(connection_id)
            return False

    # ---------- helpers typés ----------
    async def send_type(self, connection_id: str, event_type: str, payload: Any = None) -> bool:
        return await self.send_json(connection_id, {"type": event_type, "payload": payload})

    async def send_type_many(
        self, connection_ids: Iterable[str], event_type: str, payload: Any = None
    ) -> int:
        """Envoi typé à un groupe ; renvoie le nombre de succès."""
        frame = {"type": event_type, "payload": payload}
        success = 0
        for connection_id in list(connection_ids):
            if await self.send_json(connection_id, frame):
                success += 1
        return success

    # ---------- admin ----------
    def _snapshot(self) -> List[str]:
        with self._lock:
            return list(self.sockets)

    def stats(self) -> dict:
        with self._lock:
            return {"connections": len(self.sockets)}

    async def close_all(self) -> dict:
        """Ferme TOUTES les sockets."""
        for connection_id in self._snapshot():
            await self.disconnect(connection_id, code=1001)
        return self.stats()
