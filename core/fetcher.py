from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import quote

import requests

from .config import DEFAULT_RELAYS
from .errors import FetchFailure, FileUnreadable
from .m3u import looks_like_m3u

# Téléchargement "résilient" d'une playlist: accès direct puis relais CORS, dans cet ordre.
# Chaque échec (réseau, timeout, statut HTTP, page HTML) est absorbé et on passe au suivant.

DEFAULT_TIMEOUT_S = 15.0
USER_AGENT = "Mozilla/5.0 (PlayM3U)"


def build_attempts(url: str, relays: Iterable[str] = DEFAULT_RELAYS) -> list[str]:
    """URL directe puis chaque relais, l'URL cible encodée intégralement (safe='')."""
    encoded = quote(url, safe="")
    return [url] + [tpl.replace("{url}", encoded) for tpl in relays]


class PlaylistFetcher:
    """
    Client GET avec timeout par tentative.
    `session` est injectable (tests, proxy système); par défaut une requests.Session.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        relays: Iterable[str] = DEFAULT_RELAYS,
        log: Optional[Callable[..., None]] = None,
    ):
        self.session = session or requests.Session()
        self.timeout = float(timeout)
        self.relays = list(relays)
        self._log = log or (lambda *_a, **_k: None)

    def _attempt(self, url: str) -> str:
        r = self.session.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=(self.timeout, self.timeout),
            allow_redirects=True,
        )
        r.raise_for_status()
        text = r.text
        if not looks_like_m3u(text):
            raise ValueError("contenu non M3U")
        return text

    def fetch(self, url: str) -> str:
        url = (url or "").strip()
        if not url:
            raise FetchFailure("URL vide")

        errors: list[tuple[str, str]] = []
        for n, attempt in enumerate(build_attempts(url, self.relays), start=1):
            try:
                text = self._attempt(attempt)
            except requests.exceptions.Timeout:
                reason = "timeout"
            except requests.exceptions.HTTPError as e:
                status = getattr(e.response, "status_code", "?")
                reason = f"HTTP {status}"
            except requests.exceptions.RequestException as e:
                reason = type(e).__name__
            except ValueError as e:
                reason = str(e)
            else:
                if n > 1:
                    self._log(f"Playlist: chargée via relais #{n - 1}")
                return text

            errors.append((attempt, reason))
            self._log(f"Playlist: tentative {n} KO ({reason})", "DEBUG")

        raise FetchFailure(f"Playlist injoignable: {url}", attempts=errors)


def fetch_playlist_text(url: str, **kwargs) -> str:
    """Raccourci: PlaylistFetcher(**kwargs).fetch(url)."""
    return PlaylistFetcher(**kwargs).fetch(url)


def read_playlist_file(path: str | Path) -> str:
    """Lit un fichier M3U local en texte (BOM toléré, octets invalides ignorés)."""
    try:
        return Path(path).read_text(encoding="utf-8-sig", errors="ignore")
    except OSError as e:
        raise FileUnreadable(f"{path}: {e}") from e
