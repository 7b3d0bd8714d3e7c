from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

import httpx

from paygate.config import PaytrConfig, Settings, ZarinpalConfig
from paygate.payment.driver import Driver
from paygate.payment.errors import PaymentError, UnknownDriverError
from paygate.payment.invoice import Invoice, PayResponse, Receipt
from paygate.payment.providers.paytr import PaytrDriver
from paygate.payment.providers.zarinpal import ZarinpalDriver
from paygate.utils.correlation import correlation_scope

logger = logging.getLogger(__name__)


class Paymenter:
    """Routes invoices to registered drivers by name."""

    def __init__(self, drivers: Iterable[Driver] = (), default: Optional[str] = None) -> None:
        self._drivers: Dict[str, Driver] = {}
        for d in drivers:
            self.register(d)
        self.default = default or None

    @classmethod
    def from_settings(cls, s: Settings, *, client: Optional[httpx.AsyncClient] = None) -> "Paymenter":
        drivers: List[Driver] = []
        if s.paytr_enabled:
            drivers.append(PaytrDriver(PaytrConfig.from_settings(s), client=client))
        if s.zarinpal_enabled:
            drivers.append(ZarinpalDriver(ZarinpalConfig.from_settings(s), client=client))
        return cls(drivers, default=s.default_driver)

    def register(self, driver: Driver) -> None:
        self._drivers[driver.name] = driver

    @property
    def names(self) -> List[str]:
        return sorted(self._drivers)

    def driver(self, name: Optional[str] = None) -> Driver:
        key = name or self.default
        if key is None or key not in self._drivers:
            raise UnknownDriverError(key)
        return self._drivers[key]

    def via(self, invoice: Invoice, name: str) -> Invoice:
        self.driver(name)
        return invoice.via(name)

    async def purchase(self, invoice: Invoice) -> Invoice:
        driver = self.driver(invoice.driver)
        invoice.driver = driver.name
        with correlation_scope(invoice.uid.hex):
            logger.info(
                "purchase started",
                extra={"extra": {"driver": driver.name, "invoice": str(invoice.uid), "amount": invoice.amount}},
            )
            try:
                return await driver.purchase(invoice)
            except PaymentError as e:
                logger.warning(
                    "purchase failed: %s",
                    e,
                    extra={"extra": {"driver": driver.name, "invoice": str(invoice.uid), "error": type(e).__name__}},
                )
                raise

    def pay(self, invoice: Invoice) -> PayResponse:
        return self.driver(invoice.driver).pay(invoice)

    async def verify(self, name: Optional[str], amount: int, args: Mapping[str, str]) -> Receipt:
        driver = self.driver(name)
        with correlation_scope():
            try:
                receipt = await driver.verify(amount, args)
            except PaymentError as e:
                logger.warning(
                    "verify failed: %s",
                    e,
                    extra={"extra": {"driver": driver.name, "amount": amount, "error": type(e).__name__}},
                )
                raise
            logger.info(
                "verify succeeded",
                extra={"extra": {"driver": driver.name, "amount": amount, "ref_id": receipt.ref_id}},
            )
            return receipt
