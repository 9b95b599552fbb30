# ui/main_window.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import time
from pathlib import Path

from PySide6 import QtCore, QtGui, QtWidgets

from core.backends import Capabilities
from core.config import DEFAULT_CONFIG_PATH, AppConfig, load_config, save_config
from core.errors import ParseEmpty
from core.fetcher import PlaylistFetcher
from core.library import PlaylistStore
from core.m3u import parse_m3u
from core.models import Channel, OverlayInfo, Playlist, SourceKind
from workers.fetch_worker import FetchWorker, FileReadWorker, start_worker

from imbed_vlc import VideoSurface, VlcBackendFactory
from playback_controller import PlaybackController, PlaybackState
from playlists_tab import PlaylistsTab
from storage import Storage
from ui.settings_tab import SettingsTab

STATE_LABELS = {
    PlaybackState.IDLE: "",
    PlaybackState.LOADING: "Chargement…",
    PlaybackState.PLAYING: "En lecture",
    PlaybackState.ERROR: "Erreur",
}


@dataclass
class PendingImport:
    # Playlist lue mais pas encore nommée/enregistrée
    source: str = ""
    kind: SourceKind = SourceKind.REMOTE
    channels: list[Channel] = field(default_factory=list)


class MainWindow(QtWidgets.QMainWindow):
    """
    Fenêtre principale: parcours d'ajout (URL / fichier -> nom), lecteur, bibliothèque et config.
    Câble PlaylistStore, PlaybackController et les backends VLC; aucun état global.
    """

    log_sig = QtCore.Signal(int, str)

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH):
        super().__init__()
        self.setWindowTitle("PlayM3U")
        self.resize(1200, 720)

        self._log_buffer: deque[tuple[int, str]] = deque(maxlen=3000)  # (level_num, rendered_line)
        self._log_level_min = 20  # INFO
        self.log: QtWidgets.QPlainTextEdit | None = None
        self.log_sig.connect(self._append_log_line)

        self.config_path = Path(config_path)
        self.config: AppConfig = load_config(self.config_path)

        self.db = Storage(self.config.db_path, log=self.logln)
        self.store = PlaylistStore(self.db, log=self.logln)
        self.store.load()

        self.fetcher = PlaylistFetcher(
            timeout=self.config.fetch_timeout_s, relays=self.config.relays, log=self.logln
        )
        caps = Capabilities(adaptive_http=self.config.adaptive_http, adaptive_dash=self.config.adaptive_dash)
        self.backends = VlcBackendFactory(self.config.vlc_args, self.config.adaptive_logic)
        self.controller = PlaybackController(
            self.store, self.backends, caps, config=self.config, log=self.logln, parent=self
        )

        self._pending = PendingImport()
        self._threads: list[QtCore.QThread] = []
        self._workers: list[QtCore.QObject] = []

        self._build_ui()
        self._wire()

        self._rebuild_log_view()  # lignes émises avant la construction du panneau
        QtCore.QTimer.singleShot(0, self._start)

    # =========================
    # UI
    # =========================
    def _build_ui(self):
        self.tabs = QtWidgets.QTabWidget()

        # ---- Tab 1: Lecteur (pages empilées)
        self.pages = QtWidgets.QStackedWidget()
        self.page_welcome = self._build_welcome_page()
        self.page_choose = self._build_choose_page()
        self.page_url = self._build_url_page()
        self.page_file = self._build_file_page()
        self.page_name = self._build_name_page()
        self.page_player = self._build_player_page()
        for p in (self.page_welcome, self.page_choose, self.page_url, self.page_file, self.page_name, self.page_player):
            self.pages.addWidget(p)
        self.tabs.addTab(self.pages, "Lecteur")

        # ---- Tab 2: Playlists
        self.playlists_tab = PlaylistsTab(self, store=self.store, log=self.logln)
        self.tabs.addTab(self.playlists_tab, "Playlists")

        # ---- Tab 3: Configuration
        self.settings_tab = SettingsTab(self, config=self.config)
        self.tabs.addTab(self.settings_tab, "Configuration")

        # ---- Journal
        self.log = QtWidgets.QPlainTextEdit()
        self.log.setReadOnly(True)
        self.log.setMaximumBlockCount(3000)
        self.cmb_log_level = QtWidgets.QComboBox()
        self.cmb_log_level.addItems(["ALL", "DEBUG", "INFO", "WARN", "ERROR"])
        self.cmb_log_level.setCurrentText("INFO")
        self.btn_clear_log = QtWidgets.QToolButton(text="Effacer")
        log_top = QtWidgets.QHBoxLayout()
        log_top.addWidget(QtWidgets.QLabel("Niveau"))
        log_top.addWidget(self.cmb_log_level)
        log_top.addStretch(1)
        log_top.addWidget(self.btn_clear_log)
        log_box = QtWidgets.QWidget()
        log_layout = QtWidgets.QVBoxLayout(log_box)
        log_layout.setContentsMargins(4, 4, 4, 4)
        log_layout.addLayout(log_top)
        log_layout.addWidget(self.log, 1)
        self.log_dock = QtWidgets.QDockWidget("Journal", self)
        self.log_dock.setWidget(log_box)
        self.addDockWidget(QtCore.Qt.BottomDockWidgetArea, self.log_dock)
        self.log_dock.hide()

        self.act_toggle_log = self.log_dock.toggleViewAction()
        self.act_toggle_log.setText("Journal")
        self.menuBar().addAction(self.act_toggle_log)

        self.progress = QtWidgets.QProgressBar()
        self.progress.setRange(0, 0)
        self.progress.setMaximumWidth(160)
        self.progress.hide()
        self.statusBar().addPermanentWidget(self.progress)

        self.setCentralWidget(self.tabs)

    def _page(self, title: str) -> tuple[QtWidgets.QWidget, QtWidgets.QVBoxLayout]:
        page = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(page)
        layout.setContentsMargins(40, 30, 40, 30)
        lbl = QtWidgets.QLabel(title)
        f = lbl.font()
        f.setPointSize(f.pointSize() + 6)
        f.setBold(True)
        lbl.setFont(f)
        layout.addWidget(lbl)
        return page, layout

    def _build_welcome_page(self) -> QtWidgets.QWidget:
        page, layout = self._page("PlayM3U")
        self.lbl_welcome = QtWidgets.QLabel("Ajoute une playlist M3U pour commencer.")
        self.lbl_welcome.setWordWrap(True)
        self.btn_add_welcome = QtWidgets.QPushButton("Ajouter une playlist")
        layout.addWidget(self.lbl_welcome)
        layout.addWidget(self.btn_add_welcome, 0, QtCore.Qt.AlignLeft)
        layout.addStretch(1)
        return page

    def _build_choose_page(self) -> QtWidgets.QWidget:
        page, layout = self._page("Source de la playlist")
        self.btn_opt_url = QtWidgets.QPushButton("Depuis une URL")
        self.btn_opt_file = QtWidgets.QPushButton("Depuis un fichier")
        self.btn_back_choose = QtWidgets.QPushButton("Retour")
        layout.addWidget(self.btn_opt_url, 0, QtCore.Qt.AlignLeft)
        layout.addWidget(self.btn_opt_file, 0, QtCore.Qt.AlignLeft)
        layout.addStretch(1)
        layout.addWidget(self.btn_back_choose, 0, QtCore.Qt.AlignLeft)
        return page

    def _build_url_page(self) -> QtWidgets.QWidget:
        page, layout = self._page("URL de la playlist")
        self.txt_url = QtWidgets.QLineEdit()
        self.txt_url.setPlaceholderText("https://…/playlist.m3u")
        self.btn_next_url = QtWidgets.QPushButton("Suivant")
        self.btn_back_url = QtWidgets.QPushButton("Retour")
        layout.addWidget(self.txt_url)
        row = QtWidgets.QHBoxLayout()
        row.addWidget(self.btn_back_url)
        row.addStretch(1)
        row.addWidget(self.btn_next_url)
        layout.addLayout(row)
        layout.addStretch(1)
        return page

    def _build_file_page(self) -> QtWidgets.QWidget:
        page, layout = self._page("Fichier M3U")
        self.btn_browse = QtWidgets.QPushButton("Choisir un fichier…")
        self.btn_back_file = QtWidgets.QPushButton("Retour")
        layout.addWidget(self.btn_browse, 0, QtCore.Qt.AlignLeft)
        layout.addStretch(1)
        layout.addWidget(self.btn_back_file, 0, QtCore.Qt.AlignLeft)
        return page

    def _build_name_page(self) -> QtWidgets.QWidget:
        page, layout = self._page("Nom de la playlist")
        self.lbl_channel_count = QtWidgets.QLabel("0 chaînes")
        self.txt_name = QtWidgets.QLineEdit()
        self.txt_name.setPlaceholderText("Ma playlist")
        self.chk_auto_refresh = QtWidgets.QCheckBox("Recharger depuis l'URL à chaque démarrage")
        self.btn_save_playlist = QtWidgets.QPushButton("Enregistrer et lire")
        layout.addWidget(self.lbl_channel_count)
        layout.addWidget(self.txt_name)
        layout.addWidget(self.chk_auto_refresh)
        layout.addWidget(self.btn_save_playlist, 0, QtCore.Qt.AlignLeft)
        layout.addStretch(1)
        return page

    def _build_player_page(self) -> QtWidgets.QWidget:
        page = QtWidgets.QWidget()

        self.txt_filter = QtWidgets.QLineEdit()
        self.txt_filter.setPlaceholderText("Filtre chaînes (nom, groupe)…")
        self.list_channels = QtWidgets.QListWidget()
        self.list_channels.setSelectionMode(QtWidgets.QAbstractItemView.SelectionMode.SingleSelection)
        self.lbl_playlist = QtWidgets.QLabel("-")

        left = QtWidgets.QWidget()
        left_layout = QtWidgets.QVBoxLayout(left)
        left_layout.setContentsMargins(0, 0, 0, 0)
        left_layout.addWidget(self.lbl_playlist)
        left_layout.addWidget(self.txt_filter)
        left_layout.addWidget(self.list_channels, 1)

        self.surface = VideoSurface()

        self._splitter = QtWidgets.QSplitter(QtCore.Qt.Horizontal)
        self._splitter.addWidget(left)
        self._splitter.addWidget(self.surface)
        self._splitter.setStretchFactor(0, 0)
        self._splitter.setStretchFactor(1, 1)
        self._splitter.setSizes([300, 900])

        root = QtWidgets.QVBoxLayout(page)
        root.setContentsMargins(0, 0, 0, 0)
        root.addWidget(self._splitter, 1)
        return page

    def _wire(self):
        self.btn_add_welcome.clicked.connect(lambda: self.pages.setCurrentWidget(self.page_choose))
        self.btn_back_choose.clicked.connect(self._show_home)
        self.btn_opt_url.clicked.connect(lambda: self.pages.setCurrentWidget(self.page_url))
        self.btn_opt_file.clicked.connect(lambda: self.pages.setCurrentWidget(self.page_file))
        self.btn_back_url.clicked.connect(lambda: self.pages.setCurrentWidget(self.page_choose))
        self.btn_back_file.clicked.connect(lambda: self.pages.setCurrentWidget(self.page_choose))
        self.btn_next_url.clicked.connect(self.on_load_url)
        self.txt_url.returnPressed.connect(self.on_load_url)
        self.btn_browse.clicked.connect(self.on_load_file)
        self.btn_save_playlist.clicked.connect(self.on_save_playlist)

        self.txt_filter.textChanged.connect(self._apply_channel_filter)
        self.list_channels.itemActivated.connect(self._on_channel_activated)

        c = self.controller
        c.notify.connect(self.toast)
        c.state_changed.connect(self._on_state_changed)
        c.channel_changed.connect(self._select_channel_row)
        c.overlay_shown.connect(self._on_overlay_shown)
        c.overlay_hidden.connect(self.surface.hide_overlay)
        c.numeric_entry_changed.connect(self.surface.show_entry)

        s = self.surface
        s.digit_pressed.connect(c.press_digit)
        s.channel_up_requested.connect(c.channel_up)
        s.channel_down_requested.connect(c.channel_down)
        s.info_requested.connect(c.show_overlay)
        s.stop_requested.connect(c.stop)
        s.volume_changed.connect(self.backends.set_volume)
        s.mute_toggled.connect(self.backends.set_muted)

        self.playlists_tab.play_requested.connect(self.on_play_playlist)
        self.playlists_tab.add_requested.connect(self._start_add_flow)
        self.playlists_tab.remove_requested.connect(self.on_remove_playlist)
        self.playlists_tab.library_changed.connect(self._on_library_changed)
        self.settings_tab.config_changed.connect(self.on_config_changed)

        self.cmb_log_level.currentTextChanged.connect(self._on_log_level_changed)
        self.btn_clear_log.clicked.connect(self._clear_logs)

    # =========================
    # Journal
    # =========================
    @QtCore.Slot(int, str)
    def _append_log_line(self, level_num: int, line: str):
        self._log_buffer.append((int(level_num), line))
        if self.log is None or int(level_num) < int(self._log_level_min):
            return

        self.log.appendPlainText(line)
        self.log.moveCursor(QtGui.QTextCursor.MoveOperation.End)

    def logln(self, msg: str, level: str = "INFO"):
        if msg is None:
            return
        level = (level or "INFO").strip().upper()
        level_num = {"DEBUG": 10, "INFO": 20, "WARN": 30, "WARNING": 30, "ERROR": 40}.get(level, 20)
        ts = time.strftime("%H:%M:%S")
        for raw_line in str(msg).splitlines() or [""]:
            line = raw_line.rstrip()
            self.log_sig.emit(level_num, f"[{ts}] {level:<5} {line}")

    def logexc(self, context: str, exc: Exception):
        ctx = (context or "").strip()
        prefix = f"{ctx}: " if ctx else ""
        self.logln(f"{prefix}{type(exc).__name__}: {exc}", level="ERROR")

    def _on_log_level_changed(self, level: str):
        level = (level or "INFO").strip().upper()
        self._log_level_min = {"ALL": 0, "DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}.get(level, 20)
        self._rebuild_log_view()

    def _rebuild_log_view(self):
        self.log.setUpdatesEnabled(False)
        try:
            self.log.clear()
            for level_num, line in self._log_buffer:
                if int(level_num) >= int(self._log_level_min):
                    self.log.appendPlainText(line)
            self.log.moveCursor(QtGui.QTextCursor.MoveOperation.End)
        finally:
            self.log.setUpdatesEnabled(True)

    def _clear_logs(self):
        self._log_buffer.clear()
        self.log.clear()

    def toast(self, msg: str, duration_ms: int = 2500):
        self.statusBar().showMessage(msg, duration_ms)

    def _busy(self, on: bool):
        self.progress.setVisible(on)
        self.btn_next_url.setEnabled(not on)
        self.btn_browse.setEnabled(not on)

    # =========================
    # Démarrage / navigation
    # =========================
    def _start(self):
        self.controller.set_sink(self.surface.video_handle())
        if self.store.is_first_visit():
            self.lbl_welcome.setText("Bienvenue ! Ajoute une playlist M3U (URL ou fichier) pour commencer.")
            self.store.mark_visited()
        self.playlists_tab.refresh()

        if self.store.is_empty:
            self._show_home()
            return

        self._show_player()
        url = self.controller.refresh_source()
        if not url:
            self.controller.resume()
            return

        self.logln(f"Auto-refresh: {url}")
        self._run_worker(FetchWorker(url, self.fetcher), self._on_refresh_loaded, self._on_refresh_failed)

    @QtCore.Slot(str, str)
    def _on_refresh_loaded(self, _url: str, text: str):
        self.controller.resume(text)
        self._refresh_channel_list()
        self._select_channel_row(self.store.current_channel_index)
        self.playlists_tab.refresh()

    @QtCore.Slot(str, str)
    def _on_refresh_failed(self, url: str, msg: str):
        self.logln(f"Auto-refresh: {msg} ({url}), copie locale utilisée", "WARN")
        self.toast("Playlist hors ligne: copie locale utilisée")
        self.controller.resume()

    def _show_home(self):
        if self.store.is_empty:
            self.pages.setCurrentWidget(self.page_welcome)
        else:
            self._show_player()

    def _start_add_flow(self):
        self.tabs.setCurrentIndex(0)
        self.pages.setCurrentWidget(self.page_choose)

    def _show_player(self):
        self._refresh_channel_list()
        self.pages.setCurrentWidget(self.page_player)
        self.surface.setFocus()

    def _on_library_changed(self):
        if self.store.is_empty:
            self._show_home()
        else:
            self._refresh_channel_list()

    def on_remove_playlist(self, index: int):
        self.controller.remove_playlist(index)
        self.toast("Playlist supprimée")

    # =========================
    # Ajout de playlist
    # =========================
    def _run_worker(self, worker: QtCore.QObject, on_loaded, on_failed):
        # slots liés à self: les signaux du worker sont rapatriés sur le thread Qt
        worker.loaded.connect(on_loaded)
        worker.failed.connect(on_failed)
        worker.finished.connect(self._on_worker_finished)
        self._workers.append(worker)
        self._busy(True)
        thread = start_worker(self, worker)
        self._threads.append(thread)
        thread.finished.connect(self._on_thread_finished)

    @QtCore.Slot()
    def _on_worker_finished(self):
        worker = self.sender()
        if worker in self._workers:
            self._workers.remove(worker)
        self._busy(bool(self._workers))

    @QtCore.Slot()
    def _on_thread_finished(self):
        thread = self.sender()
        if thread in self._threads:
            self._threads.remove(thread)

    def on_load_url(self):
        url = self.txt_url.text().strip()
        if not url:
            self.toast("URL vide")
            return
        self.logln(f"Téléchargement: {url}")
        self.toast("Chargement de la playlist…")
        self._run_worker(FetchWorker(url, self.fetcher), self._on_url_loaded, self._on_import_failed)

    def on_load_file(self):
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Choisir une playlist", "", "M3U (*.m3u *.m3u8);;Tous (*.*)"
        )
        if not path:
            return
        self._run_worker(FileReadWorker(path), self._on_file_loaded, self._on_import_failed)

    @QtCore.Slot(str, str)
    def _on_url_loaded(self, url: str, text: str):
        self._on_playlist_text(text, url, SourceKind.REMOTE)

    @QtCore.Slot(str, str)
    def _on_file_loaded(self, path: str, text: str):
        self._on_playlist_text(text, path, SourceKind.LOCAL)

    @QtCore.Slot(str, str)
    def _on_import_failed(self, source: str, msg: str):
        self.logln(f"Import KO: {source} ({msg})", "ERROR")
        self.toast(msg)

    def _on_playlist_text(self, text: str, source: str, kind: SourceKind):
        channels = parse_m3u(text)
        if not channels:
            err = ParseEmpty(f"aucune chaîne dans {source}", user_message="Aucune chaîne trouvée")
            self.logln(f"Import: {err}", "WARN")
            self.toast(err.user_message)
            return

        self._pending = PendingImport(source=source, kind=kind, channels=channels)
        self.logln(f"Importé: {len(channels)} chaînes ({Path(source).name if kind is SourceKind.LOCAL else source})")
        self.lbl_channel_count.setText(f"{len(channels)} chaînes")
        self.chk_auto_refresh.setVisible(kind is SourceKind.REMOTE)
        self.chk_auto_refresh.setChecked(False)
        if kind is SourceKind.LOCAL and not self.txt_name.text().strip():
            self.txt_name.setText(Path(source).stem)
        self.pages.setCurrentWidget(self.page_name)

    def on_save_playlist(self):
        name = self.txt_name.text().strip()
        if not name:
            self.toast("Nom de playlist vide")
            return
        if not self._pending.channels:
            self.toast("Aucune chaîne à enregistrer")
            return

        pending = self._pending
        playlist = Playlist(
            name=name,
            source=pending.source,
            kind=pending.kind,
            channels=list(pending.channels),
            auto_refresh=pending.kind is SourceKind.REMOTE and self.chk_auto_refresh.isChecked(),
        )
        self.store.upsert(playlist)
        self.toast("Playlist enregistrée")

        self._pending = PendingImport()
        self.txt_url.clear()
        self.txt_name.clear()
        self.playlists_tab.refresh()
        self._show_player()
        self.controller.play_channel(0)

    # =========================
    # Lecteur
    # =========================
    def on_play_playlist(self, index: int):
        self.tabs.setCurrentIndex(0)
        self.controller.stop()
        self.store.select_playlist(index)
        self._show_player()
        self.controller.play_channel(0)
        self.playlists_tab.refresh()

    def _refresh_channel_list(self):
        pl = self.store.current_playlist()
        self.list_channels.clear()
        if pl is None:
            self.lbl_playlist.setText("-")
            return
        self.lbl_playlist.setText(f"{pl.name} ({len(pl.channels)} chaînes)")
        for i, ch in enumerate(pl.channels):
            label = f"{i + 1}. {ch.name}"
            if ch.group:
                label += f"   [{ch.group}]"
            item = QtWidgets.QListWidgetItem(label)
            item.setData(QtCore.Qt.ItemDataRole.UserRole, i)
            item.setToolTip(ch.url)
            self.list_channels.addItem(item)
        self._apply_channel_filter()

    def _apply_channel_filter(self):
        q = (self.txt_filter.text() or "").strip().lower()
        for row in range(self.list_channels.count()):
            item = self.list_channels.item(row)
            self.list_channels.setRowHidden(row, bool(q) and q not in item.text().lower())

    def _on_channel_activated(self, item: QtWidgets.QListWidgetItem):
        idx = item.data(QtCore.Qt.ItemDataRole.UserRole)
        if idx is None:
            return
        self.controller.play_channel(int(idx))
        self.surface.setFocus()

    def _select_channel_row(self, index: int):
        if 0 <= index < self.list_channels.count():
            self.list_channels.blockSignals(True)
            self.list_channels.setCurrentRow(index)
            self.list_channels.blockSignals(False)

    def _on_state_changed(self, state: PlaybackState, _index: int):
        self.surface.set_state_text(STATE_LABELS.get(state, ""))

    def _on_overlay_shown(self, info: OverlayInfo):
        self.surface.show_overlay(info)

    # =========================
    # Configuration
    # =========================
    def on_config_changed(self, payload: dict):
        self.config = AppConfig.from_dict(payload)
        try:
            save_config(self.config, self.config_path)
        except OSError as e:
            self.logexc("Config", e)
            return
        self.fetcher.timeout = float(self.config.fetch_timeout_s)
        self.fetcher.relays = list(self.config.relays)
        self.logln(f"Config: enregistrée -> {self.config_path}")
        self.toast("Configuration enregistrée")

    def closeEvent(self, event):
        self.controller.stop()
        self.backends.release()
        for t in list(self._threads):
            t.quit()
            t.wait(2000)
        super().closeEvent(event)
