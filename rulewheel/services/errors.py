"""
Service: errors.py
Rôle:
- Taxonomie des erreurs métier levées par la couche de validation.
- Toutes sont terminales au niveau du hub : traduites en une trame
  `error {message}` envoyée à la seule connexion émettrice, sans diffusion
  ni mutation d'état.
"""


class GameError(Exception):
    """Erreur métier avec un message destiné au client."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LobbyNotFound(GameError):
    kind = "not_found"

    def __init__(self, message: str = "Lobby not found") -> None:
        super().__init__(message)


class GameAlreadyStarted(GameError):
    kind = "not_found"

    def __init__(self, message: str = "Game already started") -> None:
        super().__init__(message)


class NotInLobby(GameError):
    kind = "not_found"

    def __init__(self, message: str = "You are not in a lobby") -> None:
        super().__init__(message)


class Unauthorized(GameError):
    kind = "unauthorized"


class ValidationFailed(GameError):
    kind = "validation"


class LobbyCodeUnavailable(GameError):
    kind = "unavailable"

    def __init__(self, message: str = "No lobby code available, try again later") -> None:
        super().__init__(message)
