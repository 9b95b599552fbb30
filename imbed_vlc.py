from __future__ import annotations

import sys
import threading
from typing import Optional

import requests
import vlc
from PySide6 import QtCore, QtGui, QtWidgets

from core.backends import (
    BackendKind,
    FatalError,
    NonFatalError,
    PlaybackBackend,
    Ready,
)
from core.models import OverlayInfo

# Backends VLC (direct / HLS / DASH) + surface vidéo Qt avec bandeau chaîne et saisie télécommande.


def bind_video_output(player: "vlc.MediaPlayer", handle: int) -> None:
    """Rattache la sortie vidéo VLC à une fenêtre native selon la plateforme."""
    if sys.platform.startswith("win"):
        player.set_hwnd(handle)
    elif sys.platform == "darwin":
        player.set_nsobject(int(handle))
    else:
        player.set_xwindow(handle)


class _VlcEventBridge(QtCore.QObject):
    # Les callbacks libvlc arrivent sur un thread VLC: on repasse par le thread Qt du bridge.
    event = QtCore.Signal(object)

    def __init__(self, deliver):
        super().__init__()
        self._deliver = deliver
        self.event.connect(self._relay, QtCore.Qt.QueuedConnection)

    @QtCore.Slot(object)
    def _relay(self, ev):
        self._deliver(ev)


class VlcBackend(PlaybackBackend):
    """Un MediaPlayer VLC par backend, libéré au detach()."""

    kind = BackendKind.DIRECT
    READY_EVENT = "MediaPlayerPlaying"

    def __init__(self, instance: "vlc.Instance", media_options: Optional[list[str]] = None,
                 volume: int = 80, muted: bool = False):
        super().__init__()
        self._instance = instance
        self._options = list(media_options or [])
        self._volume = int(volume)
        self._muted = bool(muted)
        self._player: Optional[vlc.MediaPlayer] = None
        self._ready_sent = False

        self._bridge = _VlcEventBridge(self._emit)

    def attach(self, sink) -> None:
        self._player = self._instance.media_player_new()
        em = self._player.event_manager()
        em.event_attach(getattr(vlc.EventType, self.READY_EVENT), self._on_ready)
        em.event_attach(vlc.EventType.MediaPlayerEncounteredError, self._on_error)
        em.event_attach(vlc.EventType.MediaPlayerEndReached, self._on_end)
        if sink is not None:
            bind_video_output(self._player, int(sink))
        self._player.audio_set_volume(self._volume)
        self._player.audio_set_mute(self._muted)

    def load(self, url: str) -> None:
        if self._player is None:
            raise RuntimeError("backend non attaché")
        media = self._instance.media_new(url)
        for opt in self._options:
            opt = (opt or "").strip()
            if not opt:
                continue
            if not opt.startswith(":"):
                opt = ":" + opt
            media.add_option(opt)
        self._player.set_media(media)
        if self._player.play() == -1:
            raise RuntimeError("VLC a refusé la lecture")

    def detach(self) -> None:
        player, self._player = self._player, None
        if player is None:
            return
        self.set_listener(None)
        em = player.event_manager()
        for name in (self.READY_EVENT, "MediaPlayerEncounteredError", "MediaPlayerEndReached"):
            em.event_detach(getattr(vlc.EventType, name))
        try:
            player.stop()
        finally:
            player.release()

    def set_volume(self, volume: int) -> None:
        self._volume = int(volume)
        if self._player is not None:
            self._player.audio_set_volume(self._volume)

    def set_muted(self, muted: bool) -> None:
        self._muted = bool(muted)
        if self._player is not None:
            self._player.audio_set_mute(self._muted)

    # --- callbacks libvlc (thread VLC) ---
    def _on_ready(self, _event) -> None:
        if self._ready_sent or self._player is None:
            return
        self._ready_sent = True
        self._bridge.event.emit(Ready())

    def _on_error(self, _event) -> None:
        if self._player is not None:
            self._bridge.event.emit(FatalError("erreur de lecture VLC"))

    def _on_end(self, _event) -> None:
        if self._player is not None:
            self._bridge.event.emit(NonFatalError("fin du flux"))


class VlcDirectBackend(VlcBackend):
    kind = BackendKind.DIRECT


class VlcHlsBackend(VlcBackend):
    # prêt = manifeste lu et premier flux élémentaire découvert
    kind = BackendKind.ADAPTIVE_HTTP
    READY_EVENT = "MediaPlayerESAdded"


class VlcDashBackend(VlcBackend):
    kind = BackendKind.ADAPTIVE_DASH
    READY_EVENT = "MediaPlayerESAdded"


_BACKENDS: dict[BackendKind, type[VlcBackend]] = {
    BackendKind.DIRECT: VlcDirectBackend,
    BackendKind.ADAPTIVE_HTTP: VlcHlsBackend,
    BackendKind.ADAPTIVE_DASH: VlcDashBackend,
}


class VlcBackendFactory:
    """Fabrique appelée par le contrôleur; partage une seule vlc.Instance."""

    def __init__(self, vlc_args: Optional[list[str]] = None, adaptive_logic: str = "predictive"):
        self.instance = vlc.Instance(*(vlc_args or ["--quiet"]))
        self.adaptive_logic = adaptive_logic
        self.volume = 80
        self.muted = False
        self._current: Optional[VlcBackend] = None

    def __call__(self, kind: BackendKind) -> VlcBackend:
        cls = _BACKENDS.get(kind, VlcDirectBackend)
        options: list[str] = []
        if kind in (BackendKind.ADAPTIVE_HTTP, BackendKind.ADAPTIVE_DASH) and self.adaptive_logic:
            options.append(f":adaptive-logic={self.adaptive_logic}")
        backend = cls(self.instance, media_options=options, volume=self.volume, muted=self.muted)
        self._current = backend
        return backend

    def set_volume(self, volume: int) -> None:
        self.volume = int(volume)
        if self._current is not None:
            self._current.set_volume(self.volume)

    def set_muted(self, muted: bool) -> None:
        self.muted = bool(muted)
        if self._current is not None:
            self._current.set_muted(self.muted)

    def release(self) -> None:
        self._current = None
        self.instance.release()


# =========================
# Surface vidéo + bandeau
# =========================
class VideoSurface(QtWidgets.QWidget):
    """
    Zone vidéo native (handle passé aux backends), bandeau chaîne et contrôles.
    Toute la logique est dans PlaybackController: ce widget ne fait qu'émettre des intentions.
    """

    channel_up_requested = QtCore.Signal()
    channel_down_requested = QtCore.Signal()
    digit_pressed = QtCore.Signal(str)
    info_requested = QtCore.Signal()
    stop_requested = QtCore.Signal()
    volume_changed = QtCore.Signal(int)
    mute_toggled = QtCore.Signal(bool)

    _logo_loaded = QtCore.Signal(str, bytes)

    def __init__(self, parent=None):
        super().__init__(parent)

        self.video = QtWidgets.QFrame()
        self.video.setMinimumHeight(240)
        self.video.setAttribute(QtCore.Qt.WA_NativeWindow, True)
        self.video.setStyleSheet("background: black;")

        # Bandeau (au-dessus de la vidéo: VLC dessine par-dessus les widgets enfants)
        self.osd = QtWidgets.QFrame()
        self.osd.setAttribute(QtCore.Qt.WA_StyledBackground, True)
        self.lbl_logo = QtWidgets.QLabel()
        self.lbl_logo.setFixedSize(64, 40)
        self.lbl_logo.setScaledContents(True)
        self.lbl_number = QtWidgets.QLabel()
        f = self.lbl_number.font()
        f.setPointSize(f.pointSize() + 8)
        f.setBold(True)
        self.lbl_number.setFont(f)
        self.lbl_name = QtWidgets.QLabel()
        self.lbl_details = QtWidgets.QLabel()
        text_col = QtWidgets.QVBoxLayout()
        text_col.setSpacing(0)
        text_col.addWidget(self.lbl_name)
        text_col.addWidget(self.lbl_details)
        osd_layout = QtWidgets.QHBoxLayout(self.osd)
        osd_layout.setContentsMargins(8, 4, 8, 4)
        osd_layout.addWidget(self.lbl_number)
        osd_layout.addWidget(self.lbl_logo)
        osd_layout.addLayout(text_col, 1)
        self.osd.setVisible(False)

        self.lbl_entry = QtWidgets.QLabel()
        self.lbl_entry.setAlignment(QtCore.Qt.AlignRight | QtCore.Qt.AlignVCenter)
        fe = self.lbl_entry.font()
        fe.setPointSize(fe.pointSize() + 10)
        fe.setBold(True)
        self.lbl_entry.setFont(fe)
        self.lbl_entry.setVisible(False)

        self.lbl_state = QtWidgets.QLabel("")

        # Contrôles
        self.btn_prev = QtWidgets.QToolButton()
        self.btn_prev.setIcon(self.style().standardIcon(QtWidgets.QStyle.SP_MediaSkipBackward))
        self.btn_prev.setToolTip("Chaîne précédente")
        self.stop_button = QtWidgets.QToolButton()
        self.stop_button.setIcon(self.style().standardIcon(QtWidgets.QStyle.SP_MediaStop))
        self.btn_next = QtWidgets.QToolButton()
        self.btn_next.setIcon(self.style().standardIcon(QtWidgets.QStyle.SP_MediaSkipForward))
        self.btn_next.setToolTip("Chaîne suivante")
        self.btn_info = QtWidgets.QToolButton(text="Info")

        self.mute_button = QtWidgets.QToolButton()
        self.mute_button.setCheckable(True)
        self.mute_button.setIcon(self.style().standardIcon(QtWidgets.QStyle.SP_MediaVolume))
        self.volume_slider = QtWidgets.QSlider(QtCore.Qt.Horizontal)
        self.volume_slider.setRange(0, 100)
        self.volume_slider.setValue(80)
        self.volume_slider.setMinimumWidth(120)
        self.btn_fullscreen = QtWidgets.QToolButton(text="Plein écran")

        self.controls_widget = QtWidgets.QWidget()
        controls = QtWidgets.QHBoxLayout(self.controls_widget)
        controls.setContentsMargins(0, 0, 0, 0)
        controls.setSpacing(6)
        controls.addWidget(self.btn_prev)
        controls.addWidget(self.stop_button)
        controls.addWidget(self.btn_next)
        controls.addWidget(self.btn_info)
        controls.addWidget(self.lbl_state, 1)
        controls.addWidget(self.lbl_entry)
        controls.addWidget(self.mute_button)
        controls.addWidget(self.volume_slider)
        controls.addWidget(self.btn_fullscreen)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.osd)
        layout.addWidget(self.video, 1)
        layout.addWidget(self.controls_widget)

        self._logo_url = ""
        self._logo_cache: dict[str, QtGui.QPixmap] = {}
        self._logo_loaded.connect(self._on_logo_loaded)

        self.btn_prev.clicked.connect(self.channel_down_requested.emit)
        self.btn_next.clicked.connect(self.channel_up_requested.emit)
        self.stop_button.clicked.connect(self.stop_requested.emit)
        self.btn_info.clicked.connect(self.info_requested.emit)
        self.volume_slider.valueChanged.connect(self.volume_changed.emit)
        self.mute_button.toggled.connect(self._toggle_mute)
        self.btn_fullscreen.clicked.connect(self.toggle_fullscreen)

        for w in (self, self.video):
            w.setFocusPolicy(QtCore.Qt.StrongFocus)
            w.installEventFilter(self)

    def video_handle(self) -> int:
        return int(self.video.winId())

    # --- bandeau / état ---
    def show_overlay(self, info: OverlayInfo):
        self.lbl_number.setText(str(info.number))
        self.lbl_name.setText(info.name)
        details = " · ".join(p for p in (info.group, info.playlist_name) if p)
        self.lbl_details.setText(details)
        self._set_logo(info.logo)
        self.osd.setVisible(True)

    def hide_overlay(self):
        self.osd.setVisible(False)

    def show_entry(self, buffer: str):
        self.lbl_entry.setText(buffer)
        self.lbl_entry.setVisible(bool(buffer))

    def set_state_text(self, text: str):
        self.lbl_state.setText(text)

    def _set_logo(self, url: str):
        url = (url or "").strip()
        self._logo_url = url
        self.lbl_logo.clear()
        self.lbl_logo.setVisible(bool(url))
        if not url:
            return
        cached = self._logo_cache.get(url)
        if cached is not None:
            self.lbl_logo.setPixmap(cached)
            return

        def fetch():
            try:
                r = requests.get(url, timeout=5)
                r.raise_for_status()
            except requests.exceptions.RequestException:
                return
            self._logo_loaded.emit(url, r.content)

        threading.Thread(target=fetch, daemon=True).start()

    @QtCore.Slot(str, bytes)
    def _on_logo_loaded(self, url: str, data: bytes):
        pix = QtGui.QPixmap()
        if not pix.loadFromData(data):
            return
        self._logo_cache[url] = pix
        if url == self._logo_url:
            self.lbl_logo.setPixmap(pix)

    # --- contrôles ---
    def toggle_fullscreen(self):
        win = self.window()
        if win.isFullScreen():
            win.showNormal()
            self.btn_fullscreen.setText("Plein écran")
        else:
            win.showFullScreen()
            self.btn_fullscreen.setText("Quitter plein écran")

    def _toggle_mute(self, muted: bool):
        icon = QtWidgets.QStyle.SP_MediaVolumeMuted if muted else QtWidgets.QStyle.SP_MediaVolume
        self.mute_button.setIcon(self.style().standardIcon(icon))
        self.mute_toggled.emit(bool(muted))

    def eventFilter(self, obj: QtCore.QObject, event: QtCore.QEvent) -> bool:
        if event.type() == QtCore.QEvent.KeyPress:
            key = event.key()
            text = event.text()
            if text and text.isdigit() and len(text) == 1:
                self.digit_pressed.emit(text)
                return True
            if key in (QtCore.Qt.Key_Up, QtCore.Qt.Key_PageUp):
                self.channel_up_requested.emit()
                return True
            if key in (QtCore.Qt.Key_Down, QtCore.Qt.Key_PageDown):
                self.channel_down_requested.emit()
                return True
            if key == QtCore.Qt.Key_I:
                self.info_requested.emit()
                return True
            if key == QtCore.Qt.Key_F:
                self.toggle_fullscreen()
                return True
            if key == QtCore.Qt.Key_Escape and self.window().isFullScreen():
                self.toggle_fullscreen()
                return True
        if obj is self.video and event.type() == QtCore.QEvent.MouseButtonDblClick:
            self.toggle_fullscreen()
            return True
        return super().eventFilter(obj, event)
