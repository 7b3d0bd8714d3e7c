"""
Zarinpal (v4 REST) payment provider.

Three modes share this driver and differ only in their endpoint triple:
- sandbox: sandbox.zarinpal.com, no real money moves
- production: payment.zarinpal.com
- gateway-widget: ZarinGate through api.zarinpal.com

Response shape handled here (one canonical shape per call):
- request: {"data": {"code": 100, "authority": "A0..."}, "errors": []}
- verify:  {"data": {"code": 100, "ref_id": 201, "card_pan": "..."}, "errors": []}
- failure: {"data": [], "errors": {"code": -9, "message": "..."}}
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from paygate.config import ZarinpalConfig
from paygate.payment.driver import Driver
from paygate.payment.errors import (
    InvalidModeError,
    InvoiceValidationError,
    PaymentRejectedError,
    ProviderResponseError,
)
from paygate.payment.invoice import Invoice, PayResponse, Receipt

logger = logging.getLogger(__name__)

CODE_SUCCESS = 100
CODE_VERIFIED = 101


class ZarinpalMode(str, enum.Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"
    GATEWAY_WIDGET = "gateway-widget"

    @classmethod
    def parse(cls, raw: "str | ZarinpalMode") -> "ZarinpalMode":
        try:
            return cls(raw)
        except ValueError:
            raise InvalidModeError(str(raw), [m.value for m in cls]) from None


@dataclass(frozen=True)
class Endpoints:
    purchase: str
    payment: str
    verify: str


ENDPOINTS: Mapping[ZarinpalMode, Endpoints] = {
    ZarinpalMode.SANDBOX: Endpoints(
        purchase="https://sandbox.zarinpal.com/pg/v4/payment/request.json",
        payment="https://sandbox.zarinpal.com/pg/StartPay/",
        verify="https://sandbox.zarinpal.com/pg/v4/payment/verify.json",
    ),
    ZarinpalMode.PRODUCTION: Endpoints(
        purchase="https://payment.zarinpal.com/pg/v4/payment/request.json",
        payment="https://payment.zarinpal.com/pg/StartPay/",
        verify="https://payment.zarinpal.com/pg/v4/payment/verify.json",
    ),
    ZarinpalMode.GATEWAY_WIDGET: Endpoints(
        purchase="https://api.zarinpal.com/pg/v4/payment/request.json",
        payment="https://www.zarinpal.com/pg/StartPay/",
        verify="https://api.zarinpal.com/pg/v4/payment/verify.json",
    ),
}

STATUS_MESSAGES: Mapping[int, str] = {
    -9: "Validation error in the submitted data.",
    -10: "Merchant ID or IP address is not valid.",
    -11: "Merchant is not active, contact Zarinpal support.",
    -12: "Too many attempts in a short period, try again later.",
    -15: "Terminal is suspended, contact Zarinpal support.",
    -16: "Merchant verification level is below silver.",
    -17: "Merchant is restricted at the blue verification level.",
    -30: "Merchant is not allowed to use floating settlement splits.",
    -31: "Add a default settlement bank account in the panel; split values are invalid.",
    -32: "Total floating split wages exceed the maximum amount.",
    -33: "Floating split percentages are not valid.",
    -34: "Total fixed split wages exceed the transaction amount.",
    -35: "Number of split recipients exceeds the allowed maximum.",
    -40: "Invalid extra parameters, expire_in is not valid.",
    -50: "Paid amount differs from the amount sent to verify.",
    -51: "Payment session is not successful.",
    -52: "Unexpected error, contact Zarinpal support.",
    -53: "Authority does not belong to this merchant.",
    -54: "Authority is not valid.",
    CODE_SUCCESS: "Transaction completed.",
    CODE_VERIFIED: "Transaction already verified.",
}

UNKNOWN_MESSAGE = "Unknown error. If the amount was charged it will be refunded within 72 hours."


def status_message(code: Optional[int]) -> str:
    if code is None:
        return UNKNOWN_MESSAGE
    return STATUS_MESSAGES.get(code, UNKNOWN_MESSAGE)


def _code(data: Dict[str, Any]) -> Optional[int]:
    """Pull the status code from data.code, falling back to errors.code."""
    for section in (data.get("data"), data.get("errors")):
        if isinstance(section, dict) and section.get("code") is not None:
            try:
                return int(section["code"])
            except (TypeError, ValueError):
                return None
    return None


def _body(data: Dict[str, Any]) -> Dict[str, Any]:
    body = data.get("data")
    return body if isinstance(body, dict) else {}


def _provider_message(data: Dict[str, Any]) -> str:
    errors = data.get("errors")
    if isinstance(errors, dict):
        return str(errors.get("message") or "")
    if isinstance(errors, list):
        for e in errors:
            if isinstance(e, dict) and e.get("message"):
                return str(e["message"])
    return ""


class ZarinpalDriver(Driver):
    name = "zarinpal"

    def __init__(self, config: ZarinpalConfig, *, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(timeout=config.timeout, client=client)
        self._cfg = config
        self.mode = ZarinpalMode.parse(config.mode)
        self.endpoints = ENDPOINTS[self.mode]

    async def purchase(self, invoice: Invoice) -> Invoice:
        self.validate(invoice)
        url = self.endpoints.purchase
        payload: Dict[str, Any] = {
            "merchant_id": self._cfg.merchant_id,
            "amount": invoice.amount,
            "callback_url": f"{self._cfg.callback_url}/{invoice.uid}",
            "description": invoice.description or self._cfg.description,
            "metadata": dict(invoice.details),
        }
        if invoice.currency:
            payload["currency"] = invoice.currency
        resp = await self._post(url, json=payload, headers={"accept": "application/json"})
        self._ensure_ok(resp, url)
        data = self._json(resp, url)
        code = _code(data)
        if code != CODE_SUCCESS:
            message = _provider_message(data) or status_message(code)
            logger.warning(
                "zarinpal: payment request rejected with code %s",
                code,
                extra={"extra": self._log_extra(mode=self.mode.value, code=code, invoice=str(invoice.uid))},
            )
            raise PaymentRejectedError(message, code=code, body=resp.text)
        authority = str(_body(data).get("authority") or "")
        if not authority:
            raise ProviderResponseError(
                "zarinpal returned success without an authority",
                status_code=resp.status_code,
                url=url,
                body=resp.text,
            )
        invoice.transaction_id = authority
        logger.info(
            "zarinpal: authority issued",
            extra={"extra": self._log_extra(mode=self.mode.value, invoice=str(invoice.uid), amount=invoice.amount)},
        )
        return invoice

    def pay(self, invoice: Invoice) -> PayResponse:
        return PayResponse(url=f"{self.endpoints.payment}{invoice.transaction_id}", has_redirect=True)

    async def verify(self, amount: int, args: Mapping[str, str]) -> Receipt:
        authority = args.get("transactionID") or args.get("Authority") or args.get("authority") or ""
        if not authority:
            raise InvoiceValidationError("zarinpal: callback arguments carry no authority")
        callback_status = args.get("Status")
        if callback_status is not None and callback_status.upper() != "OK":
            # User cancelled or the bank declined; nothing to verify
            raise PaymentRejectedError("Payment was cancelled or declined by the user.", code=None)

        url = self.endpoints.verify
        payload = {"merchant_id": self._cfg.merchant_id, "authority": authority, "amount": amount}
        resp = await self._post(url, json=payload, headers={"accept": "application/json"})
        self._ensure_ok(resp, url)
        data = self._json(resp, url)
        code = _code(data)
        message = status_message(code)
        if code not in (CODE_SUCCESS, CODE_VERIFIED):
            logger.warning(
                "zarinpal: verify failed with code %s",
                code,
                extra={"extra": self._log_extra(mode=self.mode.value, code=code, amount=amount)},
            )
            raise PaymentRejectedError(message, code=code, body=resp.text)

        body = _body(data)
        details = {
            "message": message,
            "status": "success" if code == CODE_SUCCESS else "verified",
            "code": str(code),
        }
        for key in ("card_pan", "card_hash", "fee"):
            if body.get(key) is not None:
                details[key] = str(body[key])
        logger.info(
            "zarinpal: payment verified",
            extra={"extra": self._log_extra(mode=self.mode.value, code=code, amount=amount)},
        )
        return Receipt(driver=self.name, ref_id=str(body.get("ref_id") or ""), details=details)
