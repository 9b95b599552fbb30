from __future__ import annotations

from PySide6 import QtCore, QtWidgets

from core.config import AppConfig


class SettingsTab(QtWidgets.QWidget):
    """
    Onglet de configuration : réseau (timeout, relais), lecteur (durées bandeau / saisie, watchdog)
    et moteurs adaptatifs. Emet un signal d'enregistrement avec le payload complet.
    """

    config_changed = QtCore.Signal(dict)  # AppConfig.to_dict()

    def __init__(self, parent=None, config: AppConfig | None = None):
        super().__init__(parent)
        cfg = config or AppConfig()
        self._base = cfg

        layout = QtWidgets.QVBoxLayout(self)

        # Réseau
        net_group = QtWidgets.QGroupBox("Réseau")
        net_form = QtWidgets.QFormLayout(net_group)

        self.spn_fetch_timeout = QtWidgets.QDoubleSpinBox()
        self.spn_fetch_timeout.setRange(1.0, 120.0)
        self.spn_fetch_timeout.setSuffix(" s")
        self.spn_fetch_timeout.setValue(float(cfg.fetch_timeout_s))

        self.txt_relays = QtWidgets.QPlainTextEdit("\n".join(cfg.relays))
        self.txt_relays.setPlaceholderText("Un relais par ligne, {url} = URL encodée")
        self.txt_relays.setMaximumHeight(80)

        net_form.addRow("Timeout par tentative", self.spn_fetch_timeout)
        net_form.addRow("Relais CORS", self.txt_relays)
        layout.addWidget(net_group)

        # Lecteur
        player_group = QtWidgets.QGroupBox("Lecteur")
        player_form = QtWidgets.QFormLayout(player_group)

        self.spn_overlay = QtWidgets.QSpinBox()
        self.spn_overlay.setRange(500, 30000)
        self.spn_overlay.setSingleStep(500)
        self.spn_overlay.setSuffix(" ms")
        self.spn_overlay.setValue(int(cfg.overlay_dwell_ms))

        self.spn_numeric = QtWidgets.QSpinBox()
        self.spn_numeric.setRange(300, 10000)
        self.spn_numeric.setSingleStep(100)
        self.spn_numeric.setSuffix(" ms")
        self.spn_numeric.setValue(int(cfg.numeric_commit_ms))

        self.spn_load_timeout = QtWidgets.QDoubleSpinBox()
        self.spn_load_timeout.setRange(0.0, 600.0)
        self.spn_load_timeout.setSuffix(" s")
        self.spn_load_timeout.setSpecialValueText("illimité")
        self.spn_load_timeout.setValue(float(cfg.load_timeout_s))

        self.chk_hls = QtWidgets.QCheckBox("HLS (m3u8 / ts)")
        self.chk_hls.setChecked(bool(cfg.adaptive_http))
        self.chk_dash = QtWidgets.QCheckBox("DASH (mpd)")
        self.chk_dash.setChecked(bool(cfg.adaptive_dash))

        player_form.addRow("Durée du bandeau", self.spn_overlay)
        player_form.addRow("Validation saisie numérique", self.spn_numeric)
        player_form.addRow("Délai max de chargement", self.spn_load_timeout)
        player_form.addRow("Moteurs adaptatifs", self.chk_hls)
        player_form.addRow("", self.chk_dash)
        layout.addWidget(player_group)

        hint = QtWidgets.QLabel("Les réglages du lecteur s'appliquent au prochain démarrage.")
        hint.setWordWrap(True)
        layout.addWidget(hint)

        btn_row = QtWidgets.QHBoxLayout()
        self.btn_save = QtWidgets.QPushButton("Enregistrer")
        btn_row.addStretch(1)
        btn_row.addWidget(self.btn_save)
        layout.addLayout(btn_row)
        layout.addStretch(1)

        self.btn_save.clicked.connect(self._emit_save)

    def _emit_save(self):
        relays = [l.strip() for l in self.txt_relays.toPlainText().splitlines() if l.strip()]
        payload = self._base.to_dict()
        payload.update({
            "fetch_timeout_s": self.spn_fetch_timeout.value(),
            "relays": relays,
            "overlay_dwell_ms": self.spn_overlay.value(),
            "numeric_commit_ms": self.spn_numeric.value(),
            "load_timeout_s": self.spn_load_timeout.value(),
            "adaptive_http": self.chk_hls.isChecked(),
            "adaptive_dash": self.chk_dash.isChecked(),
        })
        self.config_changed.emit(payload)
