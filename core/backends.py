from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union
from urllib.parse import urlparse

# Interface commune des moteurs de lecture + choix du moteur d'après la forme de l'URL.
# Heuristique extension/sous-chaîne, pas de négociation de contenu.


class BackendKind(str, Enum):
    ADAPTIVE_HTTP = "hls"
    ADAPTIVE_DASH = "dash"
    DIRECT = "direct"
    NONE = "none"


@dataclass(frozen=True)
class Capabilities:
    """Moteurs adaptatifs disponibles (injectés, jamais sondés au moment de jouer)."""
    adaptive_http: bool = True
    adaptive_dash: bool = True


def classify_url(url: str, capabilities: Capabilities = Capabilities()) -> BackendKind:
    lower = (url or "").strip().lower()
    if not lower:
        return BackendKind.NONE
    path = urlparse(lower).path

    if path.endswith(".mpd") or "manifest" in lower:
        if capabilities.adaptive_dash:
            return BackendKind.ADAPTIVE_DASH
    if path.endswith(".m3u8") or "m3u8" in lower or path.endswith(".ts"):
        if capabilities.adaptive_http:
            return BackendKind.ADAPTIVE_HTTP
    return BackendKind.DIRECT


# -------------------------
# Événements émis par un backend
# -------------------------
@dataclass(frozen=True)
class Ready:
    pass


@dataclass(frozen=True)
class FatalError:
    message: str


@dataclass(frozen=True)
class NonFatalError:
    message: str


BackendEvent = Union[Ready, FatalError, NonFatalError]
Listener = Callable[[BackendEvent], None]


class PlaybackBackend:
    """
    Moteur opaque: attach(sink) -> load(url) -> detach().
    Un seul Ready par load, zéro ou plusieurs erreurs; detach() est idempotent.
    """

    kind: BackendKind = BackendKind.NONE

    def __init__(self):
        self._listener: Optional[Listener] = None

    def set_listener(self, listener: Optional[Listener]) -> None:
        self._listener = listener

    def _emit(self, event: BackendEvent) -> None:
        listener = self._listener
        if listener is not None:
            listener(event)

    def attach(self, sink: Any) -> None:
        raise NotImplementedError

    def load(self, url: str) -> None:
        raise NotImplementedError

    def detach(self) -> None:
        raise NotImplementedError


BackendFactory = Callable[[BackendKind], PlaybackBackend]
