from core.config import DEFAULT_RELAYS, AppConfig, load_config, save_config


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "none.json")
    assert cfg == AppConfig()
    assert cfg.relays == list(DEFAULT_RELAYS)
    assert cfg.fetch_timeout_s == 15.0


def test_corrupt_file_gives_defaults(tmp_path):
    p = tmp_path / "config.json"
    p.write_text("{oops", encoding="utf-8")
    assert load_config(p) == AppConfig()


def test_save_then_load(tmp_path):
    p = tmp_path / "sub" / "config.json"
    cfg = AppConfig(fetch_timeout_s=5.0, relays=["https://r/?{url}"], load_timeout_s=0.0)
    save_config(cfg, p)
    assert load_config(p) == cfg


def test_from_dict_coerces_and_skips_bad_values():
    cfg = AppConfig.from_dict({
        "fetch_timeout_s": "7",
        "overlay_dwell_ms": "nope",
        "relays": "not-a-list",
        "adaptive_dash": 0,
        "unknown": 1,
    })
    assert cfg.fetch_timeout_s == 7.0
    assert cfg.overlay_dwell_ms == 4000
    assert cfg.relays == list(DEFAULT_RELAYS)
    assert cfg.adaptive_dash is False


def test_cleared_relays_fall_back_to_defaults(tmp_path):
    cfg = AppConfig.from_dict({"relays": ["  ", ""]})
    assert cfg.relays == list(DEFAULT_RELAYS)

    p = tmp_path / "config.json"
    p.write_text('{"relays": []}', encoding="utf-8")
    assert load_config(p).relays == list(DEFAULT_RELAYS)
