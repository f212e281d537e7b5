"""
Application FastAPI : point d'entrée
====================================

Rôle
----
- Instancie l'app FastAPI et son `GameHub` (état des lobbies en mémoire),
- configure le CORS pour les clients,
- monte les routeurs (WebSocket + santé + administration),
- configure le logging à partir de `LOG_LEVEL`.

Notes
-----
- `create_app(settings)` construit une app isolée (un hub neuf) : les tests
  en créent une par cas.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
- À l'arrêt, les retraits différés sont annulés et les sockets fermées.

Lancement
---------
    uvicorn rulewheel.main:app --host 0.0.0.0 --port 3001
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rulewheel.config.settings import Settings, settings
from rulewheel.routes.health import router as health_router
from rulewheel.routes.lobbies import router as lobbies_router
from rulewheel.routes.websocket import router as ws_router
from rulewheel.services.hub import GameHub

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or settings
    configure_logging(app_settings.LOG_LEVEL)
    hub = GameHub(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("== %s listening on %s:%s ==", app_settings.APP_NAME, app_settings.HOST, app_settings.PORT)
        for route in app.routes:
            logger.debug("route %s %s", route.path, getattr(route, "methods", None) or "WS")
        yield
        await hub.shutdown()
        logger.info("== %s stopped ==", app_settings.APP_NAME)

    app = FastAPI(title=app_settings.APP_NAME, lifespan=lifespan)
    app.state.hub = hub

    # ===========================
    # CORS
    # ===========================
    # "*" en dev ; restreindre via ALLOWED_ORIGINS en prod.
    wildcard = "*" in app_settings.ALLOWED_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.ALLOWED_ORIGINS,
        allow_credentials=not wildcard,   # credentials interdits avec "*"
        allow_methods=["*"],
        allow_headers=["*"],              # dont Authorization (routes admin)
    )

    # ===========================
    # Montage des routers
    # ===========================
    app.include_router(ws_router)                  # WebSocket endpoint (/ws)
    app.include_router(health_router)
    app.include_router(lobbies_router)             # /lobbies (Depends(admin_required) PAR ROUTE)

    # --- Racine utile pour "ping" simple (sans /health) ---
    @app.get("/")
    async def root():
        """Ping basique : permet de vérifier que l'app tourne."""
        return {"ok": True, "service": "rulewheel-backend"}

    return app


app = create_app()
