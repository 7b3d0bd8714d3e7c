from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or default).strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass
class Settings:
    app_env: str = field(default_factory=lambda: _env("APP_ENV", "production"))

    default_driver: str = field(default_factory=lambda: _env("PAYMENT_DEFAULT_DRIVER", ""))
    http_timeout: float = field(default_factory=lambda: _env_float("PAYMENT_HTTP_TIMEOUT", 30.0))

    paytr_merchant_id: str = field(default_factory=lambda: _env("PAYTR_MERCHANT_ID"))
    paytr_merchant_key: str = field(default_factory=lambda: _env("PAYTR_MERCHANT_KEY"))
    paytr_merchant_salt: str = field(default_factory=lambda: _env("PAYTR_MERCHANT_SALT"))
    paytr_test_mode: bool = field(default_factory=lambda: _env_bool("PAYTR_TEST_MODE", False))
    paytr_callback_url: str = field(default_factory=lambda: _env("PAYTR_CALLBACK_URL"))

    zarinpal_merchant_id: str = field(default_factory=lambda: _env("ZARINPAL_MERCHANT_ID"))
    zarinpal_mode: str = field(default_factory=lambda: _env("ZARINPAL_MODE", "production"))
    zarinpal_callback_url: str = field(default_factory=lambda: _env("ZARINPAL_CALLBACK_URL"))
    zarinpal_description: str = field(default_factory=lambda: _env("ZARINPAL_DESCRIPTION", "payment"))

    @property
    def paytr_enabled(self) -> bool:
        return bool(self.paytr_merchant_id and self.paytr_merchant_key and self.paytr_merchant_salt)

    @property
    def zarinpal_enabled(self) -> bool:
        return bool(self.zarinpal_merchant_id)


@dataclass(frozen=True)
class PaytrConfig:
    merchant_id: str
    merchant_key: str
    merchant_salt: str
    callback_url: str
    is_test: bool = False
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, s: Settings) -> "PaytrConfig":
        return cls(
            merchant_id=s.paytr_merchant_id,
            merchant_key=s.paytr_merchant_key,
            merchant_salt=s.paytr_merchant_salt,
            callback_url=s.paytr_callback_url.rstrip("/"),
            is_test=s.paytr_test_mode,
            timeout=s.http_timeout,
        )


@dataclass(frozen=True)
class ZarinpalConfig:
    merchant_id: str
    callback_url: str
    mode: str = "production"
    description: str = "payment"
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, s: Settings) -> "ZarinpalConfig":
        return cls(
            merchant_id=s.zarinpal_merchant_id,
            callback_url=s.zarinpal_callback_url.rstrip("/"),
            mode=s.zarinpal_mode,
            description=s.zarinpal_description,
            timeout=s.http_timeout,
        )

