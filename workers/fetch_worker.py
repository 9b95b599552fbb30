from __future__ import annotations

from pathlib import Path

from PySide6 import QtCore

from core.errors import FetchFailure, FileUnreadable
from core.fetcher import PlaylistFetcher, read_playlist_file

# Workers Qt: téléchargement / lecture de playlist hors du thread UI (QThread parent).


class FetchWorker(QtCore.QObject):
    """Télécharge une playlist via PlaylistFetcher (direct puis relais) dans un QThread."""

    loaded = QtCore.Signal(str, str)  # url, texte
    failed = QtCore.Signal(str, str)  # url, message utilisateur
    finished = QtCore.Signal()

    def __init__(self, url: str, fetcher: PlaylistFetcher):
        super().__init__()
        self.url = (url or "").strip()
        self.fetcher = fetcher

    @QtCore.Slot()
    def run(self):
        """Boucle principale déclenchée dans un QThread parent."""
        try:
            text = self.fetcher.fetch(self.url)
        except FetchFailure as e:
            self.failed.emit(self.url, e.user_message)
        except Exception as e:
            self.failed.emit(self.url, f"Échec du chargement ({type(e).__name__})")
        else:
            self.loaded.emit(self.url, text)
        finally:
            self.finished.emit()


class FileReadWorker(QtCore.QObject):
    """Lecture d'un fichier local (gros fichiers / partages réseau) hors du thread UI."""

    loaded = QtCore.Signal(str, str)  # chemin, texte
    failed = QtCore.Signal(str, str)
    finished = QtCore.Signal()

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = str(path)

    @QtCore.Slot()
    def run(self):
        try:
            text = read_playlist_file(self.path)
        except FileUnreadable as e:
            self.failed.emit(self.path, e.user_message)
        else:
            self.loaded.emit(self.path, text)
        finally:
            self.finished.emit()


def start_worker(parent: QtCore.QObject, worker: QtCore.QObject) -> QtCore.QThread:
    """Branche worker.run sur un QThread et nettoie les deux à la fin."""
    thread = QtCore.QThread(parent)
    worker.moveToThread(thread)
    thread.started.connect(worker.run)
    worker.finished.connect(thread.quit)
    worker.finished.connect(worker.deleteLater)
    thread.finished.connect(thread.deleteLater)
    thread.start()
    return thread
