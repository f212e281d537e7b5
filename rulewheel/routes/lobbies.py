"""
Module routes/lobbies.py
Rôle:
- Endpoints d'administration des lobbies en mémoire (debug / exploitation).

Routes:
- GET    /lobbies            : résumé de chaque lobby actif.
- GET    /lobbies/{code}     : document complet (même forme que `game_updated`).
- DELETE /lobbies/{lobby_id} : évince le lobby et notifie ses connexions
  (`lobby_closed`).

Sécurité:
- Chaque route dépend de `admin_required` (Bearer `ADMIN_TOKEN`), posé PAR
  ROUTE pour ne pas bloquer les préflights OPTIONS.
"""
from fastapi import APIRouter, Depends, HTTPException, Request

from rulewheel.deps.auth import admin_required
from rulewheel.models.game import current_host
from rulewheel.services.errors import LobbyNotFound

router = APIRouter(prefix="/lobbies", tags=["lobbies"])


@router.get("", dependencies=[Depends(admin_required)])
async def list_lobbies(request: Request):
    hub = request.app.state.hub
    lobbies = []
    for state in hub.directory.list_states():
        host = current_host(state)
        lobbies.append(
            {
                "id": state.id,
                "code": state.code,
                "host": host.name if host else None,
                "players": len(state.players),
                "isGameStarted": state.is_game_started,
                "gameEnded": state.game_ended,
                "createdAt": state.created_at,
            }
        )
    return {"lobbies": lobbies}


@router.get("/{code}", dependencies=[Depends(admin_required)])
async def get_lobby(code: str, request: Request):
    state = request.app.state.hub.directory.find_by_code(code)
    if state is None:
        raise HTTPException(status_code=404, detail="Lobby not found")
    return state.to_wire()


@router.delete("/{lobby_id}", dependencies=[Depends(admin_required)])
async def close_lobby(lobby_id: str, request: Request):
    """Évince le lobby ; renvoie le nombre de connexions prévenues."""
    try:
        notified = await request.app.state.hub.close_lobby(lobby_id)
    except LobbyNotFound:
        raise HTTPException(status_code=404, detail="Lobby not found")
    return {"ok": True, "lobbyId": lobby_id, "notified": notified}
