from unittest.mock import MagicMock

from core.errors import FetchFailure
from workers.fetch_worker import FetchWorker, FileReadWorker


def _collect(worker):
    out = {"loaded": [], "failed": [], "finished": 0}
    worker.loaded.connect(lambda a, b: out["loaded"].append((a, b)))
    worker.failed.connect(lambda a, b: out["failed"].append((a, b)))

    def done():
        out["finished"] += 1

    worker.finished.connect(done)
    return out


def test_fetch_worker_success(qapp):
    fetcher = MagicMock()
    fetcher.fetch.return_value = "#EXTM3U"
    w = FetchWorker(" http://a ", fetcher)
    out = _collect(w)
    w.run()
    fetcher.fetch.assert_called_once_with("http://a")
    assert out["loaded"] == [("http://a", "#EXTM3U")]
    assert out["finished"] == 1


def test_fetch_worker_failure(qapp):
    fetcher = MagicMock()
    fetcher.fetch.side_effect = FetchFailure("KO")
    w = FetchWorker("http://a", fetcher)
    out = _collect(w)
    w.run()
    assert out["failed"] == [("http://a", "Échec du chargement de la playlist")]
    assert out["loaded"] == []
    assert out["finished"] == 1


def test_file_worker(qapp, tmp_path):
    p = tmp_path / "a.m3u"
    p.write_text("#EXTM3U\n", encoding="utf-8")
    w = FileReadWorker(p)
    out = _collect(w)
    w.run()
    assert out["loaded"] == [(str(p), "#EXTM3U\n")]

    w = FileReadWorker(tmp_path / "missing.m3u")
    out = _collect(w)
    w.run()
    assert out["failed"][0][1] == "Fichier illisible"
