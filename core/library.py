from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence

from .models import Channel, Playlist

# Bibliothèque de playlists: liste ordonnée + pointeurs de sélection.
# Chaque mutation est écrite immédiatement dans le stockage clé/valeur.

KEY_PLAYLISTS = "playm3u_playlists"
KEY_LAST_PLAYLIST = "playm3u_last_pl"
KEY_LAST_CHANNEL = "playm3u_last_ch"
KEY_VISITED = "playm3u_visited"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


def _as_index(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


class PlaylistStore:
    """
    Propriétaire unique de l'agrégat (playlists, playlist courante, chaîne courante).
    Pas de verrou: tout passe par le thread Qt et chaque écriture est synchrone.
    """

    def __init__(self, kv: KeyValueStore, log: Optional[Callable[..., None]] = None):
        self._kv = kv
        self._log = log or (lambda *_a, **_k: None)
        self._playlists: list[Playlist] = []
        self.current_playlist_index = 0
        self.current_channel_index = 0

    # -------------------------
    # Lecture / écriture
    # -------------------------
    def load(self) -> None:
        raw = self._kv.get(KEY_PLAYLISTS, [])
        if not isinstance(raw, list):
            self._log("Bibliothèque: format inattendu, bibliothèque vide", "DEBUG")
            raw = []

        playlists: list[Playlist] = []
        for item in raw:
            pl = Playlist.from_dict(item)
            if pl is None:
                self._log("Bibliothèque: entrée illisible ignorée", "DEBUG")
                continue
            playlists.append(pl)
        self._playlists = playlists

        self.current_playlist_index = _as_index(self._kv.get(KEY_LAST_PLAYLIST, 0))
        self.current_channel_index = _as_index(self._kv.get(KEY_LAST_CHANNEL, 0))
        if self.current_playlist_index >= len(self._playlists):
            self.current_playlist_index = max(0, len(self._playlists) - 1)
        self._log(f"Bibliothèque: {len(self._playlists)} playlist(s) chargée(s)")

    def _flush(self) -> None:
        self._kv.set(KEY_PLAYLISTS, [p.to_dict() for p in self._playlists])
        self._flush_selection()

    def _flush_selection(self) -> None:
        self._kv.set(KEY_LAST_PLAYLIST, self.current_playlist_index)
        self._kv.set(KEY_LAST_CHANNEL, self.current_channel_index)

    # -------------------------
    # Accès
    # -------------------------
    @property
    def playlists(self) -> tuple[Playlist, ...]:
        return tuple(self._playlists)

    @property
    def is_empty(self) -> bool:
        return not self._playlists

    def __len__(self) -> int:
        return len(self._playlists)

    def current_playlist(self) -> Optional[Playlist]:
        if 0 <= self.current_playlist_index < len(self._playlists):
            return self._playlists[self.current_playlist_index]
        return None

    def clamped_channel_index(self) -> int:
        pl = self.current_playlist()
        if not pl or not pl.channels:
            return 0
        return max(0, min(self.current_channel_index, len(pl.channels) - 1))

    def find_by_source(self, source: str) -> int:
        source = (source or "").strip()
        if not source:
            return -1
        for i, pl in enumerate(self._playlists):
            if pl.source == source:
                return i
        return -1

    # -------------------------
    # Mutations
    # -------------------------
    def upsert(self, playlist: Playlist) -> int:
        """Remplace en place la playlist de même source, sinon ajoute. Retourne sa position."""
        idx = self.find_by_source(playlist.source)
        if idx >= 0:
            self._playlists[idx] = playlist
            self._log(f"Bibliothèque: « {playlist.name} » mise à jour ({len(playlist.channels)} chaînes)")
        else:
            self._playlists.append(playlist)
            idx = len(self._playlists) - 1
            self._log(f"Bibliothèque: « {playlist.name} » ajoutée ({len(playlist.channels)} chaînes)")

        self.current_playlist_index = idx
        self.current_channel_index = 0
        self._flush()
        return idx

    def remove(self, index: int) -> None:
        if index < 0 or index >= len(self._playlists):
            raise IndexError(f"playlist {index} hors limites")
        removed = self._playlists.pop(index)

        if index < self.current_playlist_index:
            # la playlist sélectionnée a glissé d'un cran
            self.current_playlist_index -= 1
        self.current_playlist_index = max(0, min(self.current_playlist_index, len(self._playlists) - 1))
        self.current_channel_index = 0
        self._flush()
        self._log(f"Bibliothèque: « {removed.name} » supprimée")

    def select_playlist(self, index: int) -> None:
        self.current_playlist_index = int(index)
        self._flush_selection()

    def select_channel(self, index: int) -> None:
        self.current_channel_index = int(index)
        self._kv.set(KEY_LAST_CHANNEL, self.current_channel_index)

    def refresh_channels(self, index: int, channels: Sequence[Channel]) -> None:
        """Remplace les chaînes d'une playlist existante (auto-refresh) sans changer la sélection."""
        pl = self._playlists[index]
        pl.channels = list(channels)
        if index == self.current_playlist_index:
            self.current_channel_index = self.clamped_channel_index()
        self._flush()

    def rename(self, index: int, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise ValueError("nom de playlist vide")
        self._playlists[index].name = name
        self._flush()

    def set_auto_refresh(self, index: int, enabled: bool) -> None:
        self._playlists[index].auto_refresh = bool(enabled)
        self._flush()

    # -------------------------
    # Première visite
    # -------------------------
    def is_first_visit(self) -> bool:
        return not bool(self._kv.get(KEY_VISITED, False))

    def mark_visited(self) -> None:
        self._kv.set(KEY_VISITED, True)
