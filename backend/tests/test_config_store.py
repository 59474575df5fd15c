"""Tests for the config store (file master over env, overrides master over file)."""
from app.config_store import ConfigStore
from app.settings import Settings


def test_defaults_without_file(tmp_path):
    store = ConfigStore(Settings, str(tmp_path / "missing.yaml"))
    store.load_initial()
    s = store.get_settings()
    assert s.device_liveness_seconds == 300
    assert s.poll_page_size == 20
    assert s.trusted_user_header == "X-User-Id"


def test_file_is_master_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv("POLL_PAGE_SIZE", "50")
    path = tmp_path / "config.yaml"
    path.write_text("poll_page_size: 10\ndevice_liveness_seconds: 120\n")
    store = ConfigStore(Settings, str(path))
    store.load_initial()
    assert store.get_settings().poll_page_size == 10
    assert store.get_settings().device_liveness_seconds == 120


def test_env_used_when_file_silent(tmp_path, monkeypatch):
    monkeypatch.setenv("POLL_LOOKBACK_SECONDS", "90")
    store = ConfigStore(Settings, str(tmp_path / "missing.yaml"))
    assert store.get_settings().poll_lookback_seconds == 90


def test_overrides_and_clear(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"poll_interval_ms": 2000}')
    store = ConfigStore(Settings, str(path))
    store.load_initial()

    store.update({"poll_interval_ms": 1000})
    assert store.get_settings().poll_interval_ms == 1000
    store.reload_from_file()
    assert store.get_settings().poll_interval_ms == 1000

    store.clear_overrides()
    assert store.get_settings().poll_interval_ms == 2000


def test_invalid_update_keeps_previous(tmp_path):
    store = ConfigStore(Settings, str(tmp_path / "missing.yaml"))
    store.update({"poll_page_size": "not-a-number"})
    assert store.get_settings().poll_page_size == 20


def test_invalid_file_ignored(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    store = ConfigStore(Settings, str(path))
    assert store.get_settings().poll_page_size == 20
