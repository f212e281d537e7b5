"""
Module routes/health.py
Rôle:
- Endpoint de santé : service OK + compteurs en mémoire (lobbies, joueurs,
  connexions ouvertes).
"""
from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(request: Request):
    """Renvoie un OK minimal avec le nom de service configuré et les compteurs du hub."""
    hub = request.app.state.hub
    return {"ok": True, "service": hub.settings.APP_NAME, **hub.stats()}
