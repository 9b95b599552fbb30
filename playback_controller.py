from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from PySide6 import QtCore

from core.backends import (
    BackendEvent,
    BackendFactory,
    BackendKind,
    Capabilities,
    FatalError,
    NonFatalError,
    PlaybackBackend,
    Ready,
    classify_url,
)
from core.config import AppConfig
from core.errors import BackendFatalError
from core.library import PlaylistStore
from core.m3u import parse_m3u
from core.models import OverlayInfo

# Machine d'état du lecteur: une "session" par changement de chaîne
# (Idle -> Loading -> Playing | Error), bandeau temporaire et saisie numérique façon télécommande.


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    ERROR = "error"


@dataclass
class PlaybackSession:
    """État runtime (non persisté) d'une tentative de lecture."""
    token: int
    channel_index: int
    kind: BackendKind
    backend: Optional[PlaybackBackend] = None
    state: PlaybackState = PlaybackState.LOADING


class PlaybackController(QtCore.QObject):
    """
    Seul propriétaire de la sortie vidéo: au plus un backend vivant à la fois.
    Les événements d'un backend remplacé sont ignorés grâce au jeton de session.
    """

    state_changed = QtCore.Signal(object, int)  # PlaybackState, index chaîne
    channel_changed = QtCore.Signal(int)
    overlay_shown = QtCore.Signal(object)  # OverlayInfo
    overlay_hidden = QtCore.Signal()
    numeric_entry_changed = QtCore.Signal(str)
    notify = QtCore.Signal(str)  # message utilisateur (toast)

    def __init__(
        self,
        store: PlaylistStore,
        backend_factory: BackendFactory,
        capabilities: Capabilities = Capabilities(),
        sink: Any = None,
        config: Optional[AppConfig] = None,
        log: Optional[Callable[..., None]] = None,
        parent=None,
    ):
        super().__init__(parent)
        cfg = config or AppConfig()
        self._store = store
        self._factory = backend_factory
        self._caps = capabilities
        self._sink = sink
        self._log = log or (lambda *_a, **_k: None)

        self._session: Optional[PlaybackSession] = None
        self._tokens = itertools.count(1)

        self.overlay: Optional[OverlayInfo] = None
        self.overlay_visible = False
        self.numeric_buffer = ""

        self._overlay_timer = QtCore.QTimer(self)
        self._overlay_timer.setSingleShot(True)
        self._overlay_timer.setInterval(int(cfg.overlay_dwell_ms))
        self._overlay_timer.timeout.connect(self.hide_overlay)

        self._numeric_timer = QtCore.QTimer(self)
        self._numeric_timer.setSingleShot(True)
        self._numeric_timer.setInterval(int(cfg.numeric_commit_ms))
        self._numeric_timer.timeout.connect(self.commit_numeric_entry)

        self._watchdog = QtCore.QTimer(self)
        self._watchdog.setSingleShot(True)
        self._watchdog_ms = int(float(cfg.load_timeout_s) * 1000)
        if self._watchdog_ms > 0:
            self._watchdog.setInterval(self._watchdog_ms)
        self._watchdog.timeout.connect(self._on_load_timeout)

    # -------------------------
    # État
    # -------------------------
    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def state(self) -> PlaybackState:
        return self._session.state if self._session else PlaybackState.IDLE

    @property
    def active_backend_kind(self) -> BackendKind:
        if self._session is None or self._session.backend is None:
            return BackendKind.NONE
        return self._session.kind

    def set_sink(self, sink: Any) -> None:
        """Surface vidéo (prise en compte au prochain changement de chaîne)."""
        self._sink = sink

    def _set_state(self, session: PlaybackSession, state: PlaybackState) -> None:
        session.state = state
        self.state_changed.emit(state, session.channel_index)

    # -------------------------
    # Lecture
    # -------------------------
    def play_channel(self, index: int) -> bool:
        pl = self._store.current_playlist()
        if pl is None or not pl.channels:
            self.notify.emit("Aucune chaîne à lire")
            return False
        index = int(index)
        if index < 0 or index >= len(pl.channels):
            self.notify.emit(f"Chaîne {index + 1} introuvable")
            return False

        # la session précédente disparaît avant toute création (même si elle charge encore)
        self._teardown()
        self._store.select_channel(index)

        ch = pl.channels[index]
        session = PlaybackSession(
            token=next(self._tokens),
            channel_index=index,
            kind=classify_url(ch.url, self._caps),
        )
        self._session = session
        self._log(f"Lecture: [{index + 1}] {ch.name} ({session.kind.value}) {ch.url}")
        self.channel_changed.emit(index)
        self._set_state(session, PlaybackState.LOADING)

        try:
            backend = self._factory(session.kind)
            backend.set_listener(lambda ev, token=session.token: self._on_backend_event(token, ev))
            session.backend = backend
            backend.attach(self._sink)
            if self._watchdog_ms > 0:
                self._watchdog.start()
            backend.load(ch.url)
        except Exception as e:
            self._log(f"Lecture: backend {session.kind.value} indisponible ({type(e).__name__}: {e})", "ERROR")
            self._fail(session, str(e) or type(e).__name__)
        return True

    def channel_up(self) -> bool:
        return self._step(+1)

    def channel_down(self) -> bool:
        return self._step(-1)

    def _step(self, delta: int) -> bool:
        pl = self._store.current_playlist()
        if pl is None or not pl.channels:
            self.notify.emit("Aucune chaîne à lire")
            return False
        if self._session is not None:
            cur = self._session.channel_index
        else:
            cur = self._store.clamped_channel_index()
        return self.play_channel((cur + delta) % len(pl.channels))

    def open_playlist(self, index: int, channel: int = 0) -> bool:
        """Sélectionne une autre playlist de la bibliothèque et lance une de ses chaînes."""
        if index < 0 or index >= len(self._store):
            self.notify.emit("Playlist introuvable")
            return False
        self._store.select_playlist(index)
        return self.play_channel(channel)

    def stop(self) -> None:
        session = self._session
        self._teardown()
        self._numeric_timer.stop()
        self.numeric_buffer = ""
        self.hide_overlay()
        if session is not None:
            self.state_changed.emit(PlaybackState.IDLE, session.channel_index)

    def remove_playlist(self, index: int) -> None:
        """
        Supprime une playlist de la bibliothèque. La sélection et la chaîne courante
        sont réinitialisées par le store: la session en cours est donc arrêtée.
        """
        if index < 0 or index >= len(self._store):
            raise IndexError(f"playlist {index} hors limites")
        self.stop()
        removed = self._store.playlists[index]
        self._store.remove(index)
        self._log(f"Lecture: arrêtée (playlist « {removed.name} » supprimée)")

    def refresh_source(self) -> Optional[str]:
        """URL à re-télécharger au démarrage (playlist distante en auto-refresh), sinon None."""
        pl = self._store.current_playlist()
        if pl is not None and pl.is_remote and pl.auto_refresh and pl.source:
            return pl.source
        return None

    def resume(self, refreshed_text: Optional[str] = None) -> bool:
        """
        Reprend à la dernière chaîne tentée. `refreshed_text` = corps fraîchement téléchargé;
        None ou vide -> on garde la copie locale.
        """
        pl = self._store.current_playlist()
        if pl is None:
            return False

        if refreshed_text is not None:
            channels = parse_m3u(refreshed_text)
            if channels:
                self._store.refresh_channels(self._store.current_playlist_index, channels)
                self._log(f"Auto-refresh: « {pl.name} » {len(channels)} chaînes")
            else:
                self._log(f"Auto-refresh: « {pl.name} » vide, copie locale conservée", "WARN")

        return self.play_channel(self._store.clamped_channel_index())

    def _teardown(self) -> None:
        self._watchdog.stop()
        session, self._session = self._session, None
        if session is None or session.backend is None:
            return
        backend, session.backend = session.backend, None
        backend.set_listener(None)
        try:
            backend.detach()
        except Exception as e:
            self._log(f"Lecture: erreur à la libération du backend ({type(e).__name__}: {e})", "DEBUG")

    # -------------------------
    # Événements backend
    # -------------------------
    def _on_backend_event(self, token: int, event: BackendEvent) -> None:
        session = self._session
        if session is None or session.token != token:
            self._log(f"Lecture: événement périmé ignoré ({type(event).__name__})", "DEBUG")
            return

        if isinstance(event, Ready):
            if session.state is not PlaybackState.LOADING:
                return
            self._watchdog.stop()
            self._set_state(session, PlaybackState.PLAYING)
            self.show_overlay()
        elif isinstance(event, FatalError):
            if session.state is PlaybackState.ERROR:
                return
            self._fail(session, event.message)
        elif isinstance(event, NonFatalError):
            self._log(f"Lecture: avertissement backend ({event.message})", "WARN")

    def _on_load_timeout(self) -> None:
        session = self._session
        if session is not None and session.state is PlaybackState.LOADING:
            self._on_backend_event(session.token, FatalError("délai dépassé"))

    def _fail(self, session: PlaybackSession, reason: str) -> None:
        self._watchdog.stop()
        pl = self._store.current_playlist()
        name = pl.channels[session.channel_index].name if pl and session.channel_index < len(pl.channels) else "?"
        err = BackendFatalError(name, reason)
        self._log(f"Lecture: {err}", "ERROR")

        backend, session.backend = session.backend, None
        if backend is not None:
            backend.set_listener(None)
            try:
                backend.detach()
            except Exception as e:
                self._log(f"Lecture: erreur à la libération du backend ({type(e).__name__}: {e})", "DEBUG")

        self._set_state(session, PlaybackState.ERROR)
        self.notify.emit(err.user_message)

    # -------------------------
    # Bandeau
    # -------------------------
    def show_overlay(self) -> None:
        session = self._session
        pl = self._store.current_playlist()
        if session is None or pl is None or session.channel_index >= len(pl.channels):
            return
        ch = pl.channels[session.channel_index]
        self.overlay = OverlayInfo(
            number=session.channel_index + 1,
            name=ch.name,
            group=ch.group,
            logo=ch.logo,
            playlist_name=pl.name,
        )
        self.overlay_visible = True
        self.overlay_shown.emit(self.overlay)
        self._overlay_timer.start()  # (re)démarre: un seul masquage en attente

    @QtCore.Slot()
    def hide_overlay(self) -> None:
        self._overlay_timer.stop()
        if not self.overlay_visible:
            return
        self.overlay_visible = False
        self.overlay_hidden.emit()

    # -------------------------
    # Saisie numérique
    # -------------------------
    def press_digit(self, digit: int | str) -> None:
        d = str(digit)
        if len(d) != 1 or not d.isdigit():
            return
        self.numeric_buffer += d
        self.numeric_entry_changed.emit(self.numeric_buffer)
        self._numeric_timer.start()

    @QtCore.Slot()
    def commit_numeric_entry(self) -> bool:
        self._numeric_timer.stop()
        buf, self.numeric_buffer = self.numeric_buffer, ""
        self.numeric_entry_changed.emit("")
        if not buf:
            return False

        try:
            number = int(buf)
        except ValueError:
            number = -1
        pl = self._store.current_playlist()
        if pl is None or number < 1 or number > len(pl.channels):
            self.notify.emit(f"Chaîne {number if number >= 0 else buf} introuvable")
            return False
        return self.play_channel(number - 1)
