"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres du serveur de jeu (nom, host/port, CORS, logs,
  quotas d'écriture, bornes de points, génération des codes de lobby).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services reçoivent une instance `Settings` à la construction (défaut :
  `settings` ci-dessous), ce qui permet aux tests de créer des instances isolées.

Bonnes pratiques
----------------
- *Ne commitez pas* une valeur réelle de `ADMIN_TOKEN`. Utilisez `.env`.
- `RECONNECT_GRACE_SECONDS=0` reproduit le comportement historique : un joueur
  déconnecté est retiré immédiatement du lobby.

Exemples de `.env`
------------------
APP_NAME="Rule Wheel Backend (Staging)"
PORT=8080
ADMIN_TOKEN="mettre-une-valeur-secrète-en-prod"
ALLOWED_ORIGINS='["https://rulewheel.example.com"]'
RECONNECT_GRACE_SECONDS=15
LOG_LEVEL="DEBUG"
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Rule Wheel Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Origines autorisées (les clients mobiles n'envoient pas toujours d'Origin)
    ALLOWED_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Jeton Bearer des routes d'administration (/lobbies)
    # ⚠️ Remplacez en production via .env
    ADMIN_TOKEN: str = "changeme-admin-token"

    # Codes de lobby : 4 lettres majuscules, tirage répété jusqu'à unicité
    LOBBY_CODE_LENGTH: int = 4
    LOBBY_CODE_MAX_ATTEMPTS: int = 64

    # Valeurs initiales d'une partie
    STARTING_POINTS: int = 20
    DEFAULT_NUM_RULES: int = 3
    DEFAULT_NUM_PROMPTS: int = 3
    MAX_PLAQUES_PER_PLAYER: int = 10

    # Bornes de score validées avant UPDATE_POINTS (le reducer ne borne rien)
    POINTS_MIN: int = 0
    POINTS_MAX: int = 99

    PLAQUE_MAX_LENGTH: int = 200
    PLAYER_NAME_MAX_LENGTH: int = 24

    # Délai de grâce avant retrait d'un joueur déconnecté (0 = immédiat)
    RECONNECT_GRACE_SECONDS: float = 0.0

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()
