from __future__ import annotations

import sys
from pathlib import Path

from PySide6 import QtWidgets

from core.config import DEFAULT_CONFIG_PATH
from ui.main_window import MainWindow

# Point d’entrée graphique : instancie l’application Qt et affiche le lecteur.
# `playm3u [chemin/config.json]` permet d'utiliser un autre profil (bibliothèque + réglages).


def main():
    app = QtWidgets.QApplication(sys.argv)
    app.setApplicationName("PlayM3U")

    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    config_path = Path(args[0]) if args else DEFAULT_CONFIG_PATH

    w = MainWindow(config_path=config_path)
    w.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
