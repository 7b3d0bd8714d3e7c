from __future__ import annotations

import dataclasses
import logging
import types

import pytest

from paygate.config import PaytrConfig, Settings, ZarinpalConfig
from paygate.healthcheck import check, main
from paygate.logging_config import SensitiveDataFilter

_KEYS = (
    "PAYMENT_DEFAULT_DRIVER",
    "PAYMENT_HTTP_TIMEOUT",
    "PAYTR_MERCHANT_ID",
    "PAYTR_MERCHANT_KEY",
    "PAYTR_MERCHANT_SALT",
    "PAYTR_TEST_MODE",
    "PAYTR_CALLBACK_URL",
    "ZARINPAL_MERCHANT_ID",
    "ZARINPAL_MODE",
    "ZARINPAL_CALLBACK_URL",
    "ZARINPAL_DESCRIPTION",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LOG_TO_FILE", "0")
    return monkeypatch


def test_healthcheck_import() -> None:
    import paygate.healthcheck as hc
    assert isinstance(hc, types.ModuleType)


def test_env_example_keys_present() -> None:
    # Ensure every setting read from ENV is documented in the example template
    example = open(".env.example", "r", encoding="utf-8").read()
    for key in _KEYS:
        assert key in example


def test_settings_read_env_at_construction(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("PAYTR_TEST_MODE", "yes")
    clean_env.setenv("PAYMENT_HTTP_TIMEOUT", "12.5")
    clean_env.setenv("PAYTR_CALLBACK_URL", "https://shop.example.com/paytr/")
    s = Settings()
    assert s.paytr_test_mode is True
    assert s.http_timeout == 12.5
    assert s.zarinpal_mode == "production"
    assert s.paytr_enabled is False
    assert s.zarinpal_enabled is False

    cfg = PaytrConfig.from_settings(s)
    assert cfg.callback_url == "https://shop.example.com/paytr"
    assert cfg.is_test is True
    assert cfg.timeout == 12.5


def test_bad_timeout_falls_back(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("PAYMENT_HTTP_TIMEOUT", "soon")
    assert Settings().http_timeout == 30.0


def test_driver_configs_are_frozen() -> None:
    cfg = ZarinpalConfig(merchant_id="m", callback_url="https://x")
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.mode = "sandbox"  # type: ignore[misc]


def test_healthcheck_reports_missing_configuration(clean_env: pytest.MonkeyPatch) -> None:
    assert check(Settings()) == ["no payment driver configured"]
    assert main() == 1


def test_healthcheck_reports_invalid_mode(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ZARINPAL_MERCHANT_ID", "m-1")
    clean_env.setenv("ZARINPAL_MODE", "live")
    problems = check(Settings())
    assert len(problems) == 1
    assert "live" in problems[0]


def test_healthcheck_ok(clean_env: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    clean_env.setenv("ZARINPAL_MERCHANT_ID", "m-1")
    clean_env.setenv("ZARINPAL_MODE", "sandbox")
    clean_env.setenv("ZARINPAL_CALLBACK_URL", "https://shop.example.com/zp")
    clean_env.setenv("PAYMENT_DEFAULT_DRIVER", "zarinpal")
    assert check(Settings()) == []
    assert main() == 0
    assert capsys.readouterr().out.strip().splitlines()[-1] == "ok"


def test_healthcheck_unknown_default_driver(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ZARINPAL_MERCHANT_ID", "m-1")
    clean_env.setenv("ZARINPAL_CALLBACK_URL", "https://shop.example.com/zp")
    clean_env.setenv("PAYMENT_DEFAULT_DRIVER", "paytr")
    assert check(Settings()) == ["PAYMENT_DEFAULT_DRIVER=paytr is not configured"]


def test_healthcheck_configures_masked_logging(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("APP_ENV", "production")
    main()
    handlers = logging.getLogger().handlers
    assert handlers
    assert any(any(isinstance(f, SensitiveDataFilter) for f in h.filters) for h in handlers)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_settings_read_at_construction_not_import(clean_env: pytest.MonkeyPatch) -> None:
    import paygate.config as config_module

    assert not hasattr(config_module, "settings")
    clean_env.setenv("ZARINPAL_MERCHANT_ID", "m-late")
    assert Settings().zarinpal_merchant_id == "m-late"
