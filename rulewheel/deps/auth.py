"""
Dépendance d'authentification admin
===================================

Objectif
--------
Fournir une *dependency* FastAPI `admin_required` qui protège les routes
d'exploitation (`/lobbies`) par un **Bearer token**.

Intégrations
------------
- `Settings.ADMIN_TOKEN` : lu sur le hub de l'application
  (`request.app.state.hub.settings`), ce qui permet aux tests d'injecter
  leur propre configuration.

Pourquoi accepter le préflight CORS ?
-------------------------------------
Le navigateur envoie une requête **OPTIONS** sans header `Authorization`. Il faut donc :
- **laisser passer** les OPTIONS (géré par le middleware CORS),
- et **protéger seulement** les méthodes réelles avec `admin_required`.

Comportement & codes retour
---------------------------
- 401 si aucun Bearer n'est fourni.
- 403 si un Bearer est fourni mais invalide.
- True sinon.
"""
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# Schéma Bearer (désactive l'erreur auto pour qu'on rende nos 401/403)
bearer = HTTPBearer(auto_error=False)


def admin_required(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
):
    """Autorise si `Authorization: Bearer <ADMIN_TOKEN>`."""
    if credentials and (credentials.scheme or "").lower() == "bearer":
        expected = request.app.state.hub.settings.ADMIN_TOKEN
        if secrets.compare_digest(credentials.credentials, expected):
            return True
        raise HTTPException(status_code=403, detail="Invalid token")

    raise HTTPException(status_code=401, detail="Admin authentication required")
