"""
Fixtures partagées: application Qt hors écran, stockage SQLite temporaire
et backend de lecture factice (aucun import de VLC dans ces tests).
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6 import QtCore

from core.backends import BackendKind, PlaybackBackend
from core.library import PlaylistStore
from core.models import Channel, Playlist, SourceKind
from storage import Storage


@pytest.fixture(scope="session")
def qapp():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


@pytest.fixture
def kv(tmp_path):
    return Storage(tmp_path / "test.db")


@pytest.fixture
def store(kv):
    s = PlaylistStore(kv)
    s.load()
    return s


def make_playlist(name="Test", n=5, source="http://example.com/list.m3u", kind=SourceKind.REMOTE, **kw):
    channels = [Channel(name=f"Ch{i + 1}", url=f"http://example.com/{i + 1}.m3u8") for i in range(n)]
    return Playlist(name=name, source=source, kind=kind, channels=channels, **kw)


class FakeBackend(PlaybackBackend):
    def __init__(self, kind, registry):
        super().__init__()
        self.kind = kind
        self.registry = registry
        self.sink = None
        self.loaded = []
        self.detached = False

    def attach(self, sink):
        self.sink = sink
        self.registry.live.append(self)

    def load(self, url):
        self.loaded.append(url)
        if self.registry.fail_load:
            raise RuntimeError("load refusé")

    def detach(self):
        if self.detached:
            return
        self.detached = True
        if self in self.registry.live:
            self.registry.live.remove(self)

    def fire(self, event):
        self._emit(event)


class FakeFactory:
    """Fabrique de backends qui garde la trace des instances encore attachées."""

    def __init__(self):
        self.created: list[FakeBackend] = []
        self.live: list[FakeBackend] = []
        self.fail_load = False

    def __call__(self, kind: BackendKind) -> FakeBackend:
        b = FakeBackend(kind, self)
        self.created.append(b)
        return b

    @property
    def last(self) -> FakeBackend:
        return self.created[-1]


@pytest.fixture
def factory():
    return FakeFactory()
