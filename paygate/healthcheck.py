import sys
from typing import List

from paygate.config import Settings
from paygate.logging_config import setup_logging
from paygate.payment.errors import PaymentError
from paygate.payment.paymenter import Paymenter

# Healthcheck: validate ENV for every configured gateway by building the
# drivers exactly as the application would. No request is sent to any
# provider; a purchase would create a real transaction.


def check(settings: Settings) -> List[str]:
    problems: List[str] = []
    try:
        paymenter = Paymenter.from_settings(settings)
    except PaymentError as e:
        return [str(e)]

    if not paymenter.names:
        problems.append("no payment driver configured")
    if settings.paytr_enabled and not settings.paytr_callback_url:
        problems.append("missing PAYTR_CALLBACK_URL")
    if settings.zarinpal_enabled and not settings.zarinpal_callback_url:
        problems.append("missing ZARINPAL_CALLBACK_URL")
    if settings.default_driver and settings.default_driver not in paymenter.names:
        problems.append(f"PAYMENT_DEFAULT_DRIVER={settings.default_driver} is not configured")
    return problems


def main() -> int:
    setup_logging()
    problems = check(Settings())
    if problems:
        for p in problems:
            print(p, file=sys.stderr)
        return 1
    print("ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
