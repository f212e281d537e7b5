# rulewheel/routes/websocket.py
"""
WebSocket endpoint.

- /ws : canal unique des clients (création/entrée de lobby, intentions de
  jeu, relais d'animation). Chaque trame texte `{"type", "payload", "seq"?}`
  est confiée au `GameHub` de l'application.
- La fermeture de la socket déclenche le protocole de déconnexion (retrait
  du joueur, bascule d'hôte, passage du tour).
"""
from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """Boucle d'écoute : connect → receive_text en boucle → disconnect."""
    hub = ws.app.state.hub
    connection_id = await hub.connect(ws)
    try:
        while True:
            raw = await ws.receive_text()
            await hub.handle_message(connection_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(connection_id)
