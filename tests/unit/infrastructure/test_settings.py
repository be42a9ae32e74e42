import json

import pytest

from one_time_share.core.infrastructure.settings import Settings, get_settings, reload_settings
from one_time_share.utils.exceptions import ConfigError


def _write_config(path, **values):
    path.write_text(json.dumps(values), encoding="utf-8")
    return str(path)


def test_defaults_require_tls_material():
    # no config file, no ENV: CERT_PATH/KEY_PATH missing
    with pytest.raises(ConfigError, match="CERT_PATH and KEY_PATH"):
        Settings.load()


def test_load_from_env(monkeypatch):
    monkeypatch.setenv("FORCE_UNPROTECTED_HTTP", "true")
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("JANITOR_INTERVAL_SEC", "2.5")
    s = Settings.load()
    assert s.FORCE_UNPROTECTED_HTTP is True
    assert s.PORT == 9090
    assert s.JANITOR_INTERVAL_SEC == 2.5
    assert s.DEFAULT_RETENTION_LIMIT_MINUTES == 1440


def test_load_from_config_file(tmp_path):
    cfg = _write_config(
        tmp_path / "cfg.json",
        Port=8443,
        CertPath="/etc/tls/cert.pem",
        KeyPath="/etc/tls/key.pem",
        DefaultMaxMessageSizeBytes=2048,
        DefaultIdentityToken="public",
    )
    s = Settings.load(cfg)
    assert s.PORT == 8443
    assert s.CERT_PATH == "/etc/tls/cert.pem"
    assert s.DEFAULT_MAX_MESSAGE_SIZE_BYTES == 2048
    assert s.DEFAULT_IDENTITY_TOKEN == "public"
    assert s.FORCE_UNPROTECTED_HTTP is False


def test_env_overrides_config_file(tmp_path, monkeypatch):
    cfg = _write_config(tmp_path / "cfg.json", Port=8443, ForceUnprotectedHttp=True)
    monkeypatch.setenv("PORT", "9000")
    assert Settings.load(cfg).PORT == 9000


def test_config_file_from_env_var(tmp_path, monkeypatch):
    cfg = _write_config(tmp_path / "other.json", ForceUnprotectedHttp=True, LogLevel="DEBUG")
    monkeypatch.setenv("APP_CONFIG_FILE", cfg)
    assert Settings.load().LOG_LEVEL == "DEBUG"


def test_default_config_file_in_cwd(tmp_path):
    # the autouse fixture chdirs into tmp_path
    _write_config(tmp_path / "app-config.json", ForceUnprotectedHttp=True, Host="127.0.0.1")
    assert Settings.load().HOST == "127.0.0.1"


def test_unknown_config_key(tmp_path):
    cfg = _write_config(tmp_path / "cfg.json", ForceUnprotectedHttp=True, Colour="blue")
    with pytest.raises(ConfigError, match="unknown fields in config file: Colour"):
        Settings.load(cfg)


def test_malformed_config_file(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError, match="error while reading config file"):
        Settings.load(str(path))


def test_explicit_missing_config_file(tmp_path):
    with pytest.raises(ConfigError, match="config file not found"):
        Settings.load(str(tmp_path / "absent.json"))


@pytest.mark.parametrize("value", ["many", True, None])
def test_bad_typed_value_in_file(tmp_path, value):
    cfg = _write_config(tmp_path / "cfg.json", ForceUnprotectedHttp=True, Port=value)
    with pytest.raises(ConfigError):
        Settings.load(cfg)


def test_bad_env_int(monkeypatch):
    monkeypatch.setenv("FORCE_UNPROTECTED_HTTP", "1")
    monkeypatch.setenv("DEFAULT_MAX_MESSAGE_SIZE_BYTES", "ten")
    with pytest.raises(ConfigError, match="must be an integer"):
        Settings.load()


def test_negative_limits_rejected(monkeypatch):
    monkeypatch.setenv("FORCE_UNPROTECTED_HTTP", "1")
    monkeypatch.setenv("DEFAULT_RETENTION_LIMIT_MINUTES", "-5")
    with pytest.raises(ConfigError, match="DEFAULT_RETENTION_LIMIT_MINUTES"):
        Settings.load()


def test_settings_singleton(monkeypatch):
    monkeypatch.setenv("FORCE_UNPROTECTED_HTTP", "1")
    first = reload_settings()
    assert get_settings() is first
    monkeypatch.setenv("PORT", "7000")
    assert reload_settings().PORT == 7000
