# playlists_tab.py
from __future__ import annotations

from pathlib import Path

from PySide6 import QtCore, QtWidgets

from core.library import PlaylistStore
from core.m3u import write_m3u

# Onglet "Playlists": bibliothèque locale (lecture, suppression, export, auto-refresh).


class PlaylistsTab(QtWidgets.QWidget):
    """
    Playlists enregistrées dans la bibliothèque.

    - Lire (sélection + dernière chaîne)
    - Supprimer
    - Exporter en .m3u
    - Activer l'auto-refresh au démarrage (sources distantes)
    """

    play_requested = QtCore.Signal(int)    # index bibliothèque -> player
    add_requested = QtCore.Signal()
    remove_requested = QtCore.Signal(int)  # index confirmé -> contrôleur (arrêt lecture + suppression)
    library_changed = QtCore.Signal()

    def __init__(self, parent=None, store: PlaylistStore | None = None, log=None):
        super().__init__(parent)
        self.store = store
        self.log = log or (lambda *_a, **_k: None)

        layout = QtWidgets.QVBoxLayout(self)

        hb = QtWidgets.QHBoxLayout()
        layout.addLayout(hb)

        self.btn_add = QtWidgets.QPushButton("Ajouter…")
        self.btn_play = QtWidgets.QPushButton("Lire")
        self.btn_export = QtWidgets.QPushButton("Exporter…")
        self.btn_delete = QtWidgets.QPushButton("Supprimer")
        self.chk_refresh = QtWidgets.QCheckBox("Auto-refresh au démarrage")

        for b in (self.btn_play, self.btn_export, self.btn_delete, self.chk_refresh):
            b.setEnabled(False)

        self.txt_search = QtWidgets.QLineEdit()
        self.txt_search.setPlaceholderText("Rechercher (nom, source)…")

        hb.addWidget(self.btn_add)
        hb.addWidget(self.btn_play)
        hb.addWidget(self.btn_export)
        hb.addWidget(self.btn_delete)
        hb.addWidget(self.chk_refresh)
        hb.addWidget(self.txt_search, 1)

        self.tbl = QtWidgets.QTableWidget(0, 4)
        self.tbl.setHorizontalHeaderLabels(["#", "Nom", "Chaînes", "Source"])
        self.tbl.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectionBehavior.SelectRows)
        self.tbl.setSelectionMode(QtWidgets.QAbstractItemView.SelectionMode.SingleSelection)
        self.tbl.setEditTriggers(QtWidgets.QAbstractItemView.EditTrigger.NoEditTriggers)
        self.tbl.horizontalHeader().setStretchLastSection(True)
        self.tbl.verticalHeader().setVisible(False)
        layout.addWidget(self.tbl, 1)

        self.btn_add.clicked.connect(self.add_requested.emit)
        self.btn_play.clicked.connect(self._play_selected)
        self.btn_export.clicked.connect(self._export_selected)
        self.btn_delete.clicked.connect(self._delete_selected)
        self.chk_refresh.toggled.connect(self._toggle_refresh)

        self.tbl.itemSelectionChanged.connect(self._sel_changed)
        self.tbl.itemDoubleClicked.connect(lambda *_: self._play_selected())
        self.txt_search.textChanged.connect(self.refresh)

        self.tbl.setContextMenuPolicy(QtCore.Qt.CustomContextMenu)
        self.tbl.customContextMenuRequested.connect(self._context_menu)

    # ======================
    # Data
    # ======================
    def refresh(self):
        if not self.store:
            return
        q = (self.txt_search.text() or "").strip().lower()

        self.tbl.setRowCount(0)
        rows = []
        for i, pl in enumerate(self.store.playlists):
            hay = f"{pl.name} {pl.source}".lower()
            if (not q) or (q in hay):
                rows.append((i, pl))

        self.tbl.setRowCount(len(rows))
        for r, (i, pl) in enumerate(rows):
            idx_item = QtWidgets.QTableWidgetItem(str(i + 1))
            idx_item.setData(QtCore.Qt.ItemDataRole.UserRole, i)
            if i == self.store.current_playlist_index:
                f = idx_item.font()
                f.setBold(True)
                idx_item.setFont(f)
            self.tbl.setItem(r, 0, idx_item)
            self.tbl.setItem(r, 1, QtWidgets.QTableWidgetItem(pl.name))
            self.tbl.setItem(r, 2, QtWidgets.QTableWidgetItem(str(len(pl.channels))))
            src = pl.source or "(fichier local)"
            src_item = QtWidgets.QTableWidgetItem(src)
            src_item.setToolTip("Auto-refresh actif" if pl.auto_refresh else "")
            self.tbl.setItem(r, 3, src_item)

        self.tbl.resizeColumnsToContents()
        self._sel_changed()

    # ======================
    # Selection helpers
    # ======================
    def _selected_index(self) -> int | None:
        sel = self.tbl.selectionModel().selectedRows()
        if not sel:
            return None
        item = self.tbl.item(sel[0].row(), 0)
        if not item:
            return None
        try:
            return int(item.data(QtCore.Qt.ItemDataRole.UserRole))
        except (TypeError, ValueError):
            return None

    def _sel_changed(self):
        idx = self._selected_index()
        has_sel = idx is not None
        self.btn_play.setEnabled(has_sel)
        self.btn_export.setEnabled(has_sel)
        self.btn_delete.setEnabled(has_sel)

        pl = self.store.playlists[idx] if (has_sel and self.store) else None
        self.chk_refresh.blockSignals(True)
        self.chk_refresh.setEnabled(bool(pl and pl.is_remote))
        self.chk_refresh.setChecked(bool(pl and pl.auto_refresh))
        self.chk_refresh.blockSignals(False)

    # ======================
    # Actions
    # ======================
    def _play_selected(self):
        idx = self._selected_index()
        if idx is None:
            return
        self.play_requested.emit(idx)

    def _toggle_refresh(self, checked: bool):
        idx = self._selected_index()
        if idx is None or not self.store:
            return
        self.store.set_auto_refresh(idx, checked)
        self.log(f"Playlists: auto-refresh {'activé' if checked else 'désactivé'} pour « {self.store.playlists[idx].name} »")
        self.refresh()

    def _export_selected(self):
        idx = self._selected_index()
        if idx is None or not self.store:
            return
        pl = self.store.playlists[idx]
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Exporter la playlist", f"{pl.name}.m3u", "M3U (*.m3u *.m3u8)"
        )
        if not path:
            return
        try:
            write_m3u(pl.channels, Path(path))
        except OSError as e:
            QtWidgets.QMessageBox.critical(self, "Erreur", str(e))
            return
        self.log(f"Playlists: « {pl.name} » exportée -> {path}")

    def _delete_selected(self):
        idx = self._selected_index()
        if idx is None or not self.store:
            return
        pl = self.store.playlists[idx]
        msg = f"Supprimer la playlist « {pl.name} » ({len(pl.channels)} chaînes) ?"
        if QtWidgets.QMessageBox.question(self, "Supprimer", msg) != QtWidgets.QMessageBox.Yes:
            return

        self.remove_requested.emit(idx)
        self.refresh()
        self.library_changed.emit()

    def _context_menu(self, pos):
        idx = self._selected_index()
        menu = QtWidgets.QMenu(self)

        act_play = menu.addAction("Lire")
        act_export = menu.addAction("Exporter…")
        act_del = menu.addAction("Supprimer")
        for a in (act_play, act_export, act_del):
            a.setEnabled(idx is not None)

        act = menu.exec(self.tbl.viewport().mapToGlobal(pos))
        if act == act_play:
            self._play_selected()
        elif act == act_export:
            self._export_selected()
        elif act == act_del:
            self._delete_selected()
