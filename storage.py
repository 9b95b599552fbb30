from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Callable, Optional

from core.errors import StoreCorrupt

# Persistance clé/valeur SQLite: chaque valeur est un document JSON réécrit en entier.


class Storage:
    """Wrapper léger autour de sqlite3; une connexion courte par appel."""
    def __init__(self, db_path: str | Path = "data/playm3u.db", log: Optional[Callable[..., None]] = None):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._log = log or (lambda *_a, **_k: None)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        # WAL pour réduire le locking entre UI et workers.
        con = sqlite3.connect(self.db_path)
        con.execute("PRAGMA journal_mode=WAL;")
        return con

    def _init_db(self) -> None:
        con = self._connect()
        try:
            con.executescript(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT (datetime('now'))
                );
                """
            )
            con.commit()
        finally:
            con.close()

    @staticmethod
    def _decode(key: str, raw: str) -> Any:
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StoreCorrupt(f"{key}: JSON invalide ({e})") from e

    def get(self, key: str, default: Any = None) -> Any:
        con = self._connect()
        try:
            row = con.execute("SELECT value FROM kv WHERE key=?", (key,)).fetchone()
        finally:
            con.close()
        if row is None:
            return default
        try:
            return self._decode(key, row[0])
        except StoreCorrupt as e:
            self._log(f"Stockage: {e} -> valeur par défaut", "DEBUG")
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        con = self._connect()
        try:
            con.execute(
                """
                INSERT INTO kv(key, value, updated_at) VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                """,
                (key, payload),
            )
            con.commit()
        finally:
            con.close()

    def set_raw(self, key: str, raw: str) -> None:
        """Écrit une chaîne telle quelle (import/migration; peut produire une valeur illisible)."""
        con = self._connect()
        try:
            con.execute("INSERT OR REPLACE INTO kv(key, value) VALUES (?, ?)", (key, raw))
            con.commit()
        finally:
            con.close()

    def delete(self, key: str) -> None:
        con = self._connect()
        try:
            con.execute("DELETE FROM kv WHERE key=?", (key,))
            con.commit()
        finally:
            con.close()

    def keys(self) -> list[str]:
        con = self._connect()
        try:
            return [r[0] for r in con.execute("SELECT key FROM kv ORDER BY key").fetchall()]
        finally:
            con.close()
