from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

# Configuration utilisateur (data/config.json). Fichier absent ou illisible -> valeurs par défaut.

DEFAULT_CONFIG_PATH = Path("data/config.json")

# Relais CORS publics, essayés après l'accès direct. {url} = URL cible encodée.
DEFAULT_RELAYS = (
    "https://corsproxy.io/?{url}",
    "https://api.allorigins.win/raw?url={url}",
)


@dataclass
class AppConfig:
    db_path: str = "data/playm3u.db"
    fetch_timeout_s: float = 15.0
    relays: list[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))
    overlay_dwell_ms: int = 4000
    numeric_commit_ms: int = 1500
    # 0 = attente illimitée du signal "prêt" du backend
    load_timeout_s: float = 30.0
    vlc_args: list[str] = field(default_factory=lambda: ["--quiet"])
    adaptive_logic: str = "predictive"
    adaptive_http: bool = True
    adaptive_dash: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        cfg = cls()
        if not isinstance(data, dict):
            return cfg
        for f in fields(cls):
            if f.name not in data:
                continue
            default = getattr(cfg, f.name)
            value = data[f.name]
            try:
                if isinstance(default, bool):
                    value = bool(value)
                elif isinstance(default, int):
                    value = int(value)
                elif isinstance(default, float):
                    value = float(value)
                elif isinstance(default, list):
                    if not isinstance(value, (list, tuple)):
                        continue
                    value = [str(v) for v in value if str(v).strip()]
                    if not value:
                        # liste vidée (ex: relais) -> valeurs par défaut
                        continue
                else:
                    value = str(value)
            except (TypeError, ValueError):
                continue
            setattr(cfg, f.name, value)
        return cfg

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return AppConfig()
    except (OSError, ValueError):
        return AppConfig()
    return AppConfig.from_dict(data)


def save_config(cfg: AppConfig, path: Path = DEFAULT_CONFIG_PATH) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
