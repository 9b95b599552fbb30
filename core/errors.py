from __future__ import annotations

# Taxonomie des erreurs du lecteur. Aucune n'est fatale pour le processus:
# parseur/stockage dégradent vers des valeurs par défaut, fetch/backend remontent
# un message affichable à l'utilisateur.


class PlayerError(Exception):
    """Base commune; `user_message` est le texte affichable (toast/statut)."""

    def __init__(self, message: str, *, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class ParseEmpty(PlayerError):
    """Le texte a été lu mais aucune chaîne n'en est sortie."""


class FetchFailure(PlayerError):
    """Toutes les tentatives de téléchargement (direct + relais) ont échoué."""

    def __init__(self, message: str, *, attempts: list[tuple[str, str]] | None = None):
        super().__init__(message, user_message="Échec du chargement de la playlist")
        # (url tentée, raison) dans l'ordre des essais
        self.attempts = list(attempts or [])


class FileUnreadable(PlayerError):
    def __init__(self, message: str):
        super().__init__(message, user_message="Fichier illisible")


class BackendFatalError(PlayerError):
    """Le moteur de lecture a abandonné la chaîne courante."""

    def __init__(self, channel_name: str, reason: str):
        super().__init__(
            f"{channel_name}: {reason}",
            user_message=f"Impossible de lire « {channel_name} » : {reason}",
        )
        self.channel_name = channel_name
        self.reason = reason


class StoreCorrupt(PlayerError):
    """Valeur persistée illisible (jamais montrée à l'utilisateur)."""
