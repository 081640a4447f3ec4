import logging

from starmap.config import DEFAULT_UNIVERSE_SOURCE, StarmapConfig, load_config


def test_defaults_without_environment(monkeypatch):
    for name in ("STARMAP_UNIVERSE_SOURCE", "STARMAP_MAX_DECOMPRESSED", "STARMAP_FETCH_TIMEOUT",
                 "STARMAP_LOG_LEVEL", "STARMAP_MAX_RESULTS", "STARMAP_HOST", "STARMAP_PORT"):
        monkeypatch.delenv(name, raising=False)

    cfg = load_config()
    assert cfg == StarmapConfig()
    assert cfg.universe_source == DEFAULT_UNIVERSE_SOURCE
    assert cfg.max_decompressed_size == 16384 * 1024


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("STARMAP_UNIVERSE_SOURCE", "https://example.invalid/u.gab.zst")
    monkeypatch.setenv("STARMAP_FETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("STARMAP_MAX_RESULTS", "10")
    monkeypatch.setenv("STARMAP_LOG_LEVEL", "debug")

    cfg = load_config()
    assert cfg.universe_source == "https://example.invalid/u.gab.zst"
    assert cfg.fetch_timeout == 2.5
    assert cfg.max_results == 10
    assert cfg.log_level == "DEBUG"


def test_malformed_number_falls_back_with_warning(monkeypatch, caplog):
    monkeypatch.setenv("STARMAP_MAX_RESULTS", "lots")
    monkeypatch.setenv("STARMAP_FETCH_TIMEOUT", " ")

    with caplog.at_level(logging.WARNING, logger="starmap.config"):
        cfg = load_config()

    assert cfg.max_results == 500
    assert cfg.fetch_timeout == 30.0
    assert [r.message for r in caplog.records] == ["Ignoring STARMAP_MAX_RESULTS='lots': not a valid int"]
