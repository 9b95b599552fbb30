from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Structures de données partagées entre parseur, bibliothèque, contrôleur et UI.

DEFAULT_CHANNEL_NAME = "Channel"


@dataclass(frozen=True)
class Channel:
    """Une entrée jouable d'une playlist M3U. L'identité est la position dans la playlist."""
    name: str
    url: str
    group: str = ""
    logo: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "group": self.group, "logo": self.logo, "url": self.url}

    @classmethod
    def from_dict(cls, data: dict) -> "Channel | None":
        url = str(data.get("url") or "").strip()
        if not url:
            return None
        return cls(
            name=DEFAULT_CHANNEL_NAME if data.get("name") is None else str(data["name"]),
            url=url,
            group=str(data.get("group") or ""),
            logo=str(data.get("logo") or ""),
        )


class SourceKind(str, Enum):
    REMOTE = "url"
    LOCAL = "file"


@dataclass
class Playlist:
    """Playlist nommée + descripteur de source (`source` sert de clé de dédoublonnage)."""
    name: str
    source: str
    kind: SourceKind
    channels: list[Channel] = field(default_factory=list)
    auto_refresh: bool = False

    @property
    def is_remote(self) -> bool:
        return self.kind is SourceKind.REMOTE

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "source": self.source,
            "kind": self.kind.value,
            "auto_refresh": bool(self.auto_refresh),
            "channels": [c.to_dict() for c in self.channels],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Playlist | None":
        if not isinstance(data, dict):
            return None
        name = str(data.get("name") or "").strip()
        if not name:
            return None
        try:
            kind = SourceKind(data.get("kind"))
        except ValueError:
            kind = SourceKind.LOCAL

        channels: list[Channel] = []
        for raw in data.get("channels") or []:
            if not isinstance(raw, dict):
                continue
            ch = Channel.from_dict(raw)
            if ch is not None:
                channels.append(ch)

        return cls(
            name=name,
            source=str(data.get("source") or ""),
            kind=kind,
            channels=channels,
            auto_refresh=bool(data.get("auto_refresh", False)),
        )


@dataclass(frozen=True)
class OverlayInfo:
    # Bandeau affiché à l'écran (numéro 1-based)
    number: int
    name: str
    group: str
    logo: str
    playlist_name: str
