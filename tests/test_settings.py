import pytest

from gatekeeper.security import ShieldSettings, StoreErrorPolicy, TimeUnit


def test_defaults():
    settings = ShieldSettings()

    assert settings.time_period_units == {
        TimeUnit.SECOND: 2,
        TimeUnit.MINUTE: 10,
        TimeUnit.HOUR: 30,
        TimeUnit.DAY: 60,
    }
    assert settings.limit_flags == {"cookie": 5, "session": 5, "referer": 10}
    assert settings.time_reset_flags == 3600
    assert settings.enable_cookie_check is False
    assert settings.on_store_error == StoreErrorPolicy.ALLOW


def test_defaults_are_not_shared():
    first = ShieldSettings()
    first.limit_flags["referer"] = 1

    assert ShieldSettings().limit_flags["referer"] == 10


def test_from_env(monkeypatch):
    monkeypatch.setenv("GATEKEEPER_QUOTA_S", "5")
    monkeypatch.setenv("GATEKEEPER_COOKIE_CHECK", "true")
    monkeypatch.setenv("GATEKEEPER_REFERER_CHECK", "0")
    monkeypatch.setenv("GATEKEEPER_LIMIT_SESSION", "8")
    monkeypatch.setenv("GATEKEEPER_ON_STORE_ERROR", "deny")
    monkeypatch.setenv("GATEKEEPER_COOKIE_VALUE", "js-ok")

    settings = ShieldSettings.from_env()

    assert settings.time_period_units[TimeUnit.SECOND] == 5
    assert settings.time_period_units[TimeUnit.DAY] == 60
    assert settings.enable_cookie_check is True
    assert settings.enable_referer_check is False
    assert settings.limit_flags["session"] == 8
    assert settings.on_store_error == StoreErrorPolicy.DENY
    assert settings.cookie_value == "js-ok"


def test_from_env_rejects_unknown_policy(monkeypatch):
    monkeypatch.setenv("GATEKEEPER_ON_STORE_ERROR", "maybe")

    with pytest.raises(ValueError):
        ShieldSettings.from_env()
