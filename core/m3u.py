from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List

from .models import DEFAULT_CHANNEL_NAME, Channel

# Décodeur M3U volontairement tolérant (#EXTINF + URL) et export minimal.
# Une ligne #EXTINF sans URL derrière est simplement ignorée, jamais d'exception.

EXTM3U_HEADER = "#EXTM3U"
EXTINF_PREFIX = "#EXTINF:"

LINE_SPLIT_RE = re.compile(r"\r?\n")
LOGO_RE = re.compile(r'tvg-logo="([^"]+)"', re.IGNORECASE)
GROUP_RE = re.compile(r'group-title="([^"]+)"', re.IGNORECASE)


def looks_like_m3u(text: str) -> bool:
    """Vrai si le corps ressemble à une playlist (en-tête ou au moins un #EXTINF)."""
    if not text:
        return False
    return EXTM3U_HEADER in text or "#EXTINF" in text


def parse_extinf(line: str) -> dict:
    """Nom (après la DERNIÈRE virgule) + logo/groupe depuis une ligne #EXTINF."""
    name = DEFAULT_CHANNEL_NAME
    comma = line.rfind(",")
    if comma != -1:
        # le nom peut contenir des virgules et rester vide; sans virgule on garde le placeholder
        name = line[comma + 1:].strip()

    logo_m = LOGO_RE.search(line)
    group_m = GROUP_RE.search(line)
    return {
        "name": name,
        "logo": logo_m.group(1) if logo_m else "",
        "group": group_m.group(1) if group_m else "",
    }


def parse_m3u(text: str) -> List[Channel]:
    """
    Convertit le texte M3U en objets Channel, dans l'ordre de lecture.
    Pas de dédoublonnage ni de validation des URLs.
    """
    out: List[Channel] = []
    pending: dict | None = None

    for raw in LINE_SPLIT_RE.split(text or ""):
        line = raw.strip()
        if line.startswith(EXTINF_PREFIX):
            pending = parse_extinf(line)
        elif pending is not None and line and not line.startswith("#"):
            out.append(Channel(url=line, **pending))
            pending = None
    return out


def write_m3u(channels: Iterable[Channel], path: Path):
    """Écrit une playlist M3U relisible par parse_m3u."""
    with path.open("w", encoding="utf-8") as f:
        f.write(EXTM3U_HEADER + "\n")
        for ch in channels:
            if not ch.url:
                continue
            attrs = ""
            if ch.logo:
                attrs += f' tvg-logo="{ch.logo}"'
            if ch.group:
                attrs += f' group-title="{ch.group}"'
            f.write(f"{EXTINF_PREFIX}-1{attrs},{ch.name}\n")
            f.write(ch.url + "\n")
