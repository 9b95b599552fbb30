from storage import Storage


def test_set_get_roundtrip(kv):
    kv.set("k", {"a": [1, 2], "é": "ü"})
    assert kv.get("k") == {"a": [1, 2], "é": "ü"}


def test_missing_key_returns_default(kv):
    assert kv.get("absent", 42) == 42


def test_corrupt_value_returns_default_and_logs(tmp_path):
    lines = []
    s = Storage(tmp_path / "x.db", log=lambda msg, level="INFO": lines.append((level, msg)))
    s.set_raw("k", "{not json")
    assert s.get("k", []) == []
    assert lines and lines[0][0] == "DEBUG"


def test_overwrite_and_delete(kv):
    kv.set("k", 1)
    kv.set("k", 2)
    assert kv.get("k") == 2
    kv.delete("k")
    assert kv.get("k") is None
    assert "k" not in kv.keys()


def test_persists_across_instances(tmp_path):
    Storage(tmp_path / "p.db").set("k", "v")
    assert Storage(tmp_path / "p.db").get("k") == "v"
