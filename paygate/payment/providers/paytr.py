"""
PayTR iframe payment provider.

Flow:
- purchase: signs the order with HMAC-SHA256 and posts a multipart form to
  /odeme/api/get-token; the returned iframe token becomes the transaction id.
- pay: iframe URL /odeme/guvenli/<token> (not a full-page redirect).
- verify: recomputes the callback hash locally; no request is made.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Dict, Mapping, Optional

import httpx

from paygate.config import PaytrConfig
from paygate.payment.driver import Driver
from paygate.payment.errors import PaymentRejectedError, ProviderResponseError, SignatureMismatchError
from paygate.payment.invoice import Invoice, PayResponse, Receipt

logger = logging.getLogger(__name__)

TOKEN_URL = "https://www.paytr.com/odeme/api/get-token"
IFRAME_URL = "https://www.paytr.com/odeme/guvenli/"
TIMEOUT_LIMIT = "30"
SUCCESS = "success"


def _sign(key: str, message: str) -> str:
    digest = hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def purchase_token(
    *,
    merchant_id: str,
    merchant_key: str,
    merchant_salt: str,
    user_ip: str,
    merchant_oid: str,
    email: str,
    amount: int,
    user_basket: str,
    no_installment: str,
    max_installment: str,
    currency: str,
    test_mode: bool,
) -> str:
    # Field order is fixed by PayTR
    message = "".join(
        [
            merchant_id,
            user_ip,
            merchant_oid,
            email,
            str(amount),
            user_basket,
            no_installment,
            max_installment,
            currency,
            str(int(test_mode)),
            merchant_salt,
        ]
    )
    return _sign(merchant_key, message)


def callback_hash(*, merchant_key: str, merchant_salt: str, transaction_id: str, status: str, amount: int) -> str:
    return _sign(merchant_key, f"{transaction_id}{merchant_salt}{status}{amount}")


class PaytrDriver(Driver):
    name = "paytr"
    required_details = (
        "user_phone",
        "user_ip",
        "user_basket",
        "user_name",
        "user_address",
        "email",
        "currency",
        "no_installment",
        "max_installment",
        "lang",
        "merchant_oid",
    )

    def __init__(self, config: PaytrConfig, *, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(timeout=config.timeout, client=client)
        self._cfg = config

    def _form(self, invoice: Invoice) -> Dict[str, str]:
        ref = invoice.transaction_id or str(invoice.uid)
        flag = "1" if self._cfg.is_test else "0"
        form = {
            "merchant_id": self._cfg.merchant_id,
            "timeout_limit": TIMEOUT_LIMIT,
            "payment_amount": str(invoice.amount),
        }
        form.update(invoice.details)
        form["merchant_ok_url"] = f"{self._cfg.callback_url}/{ref}?status=success"
        form["merchant_fail_url"] = f"{self._cfg.callback_url}/{ref}?status=fail"
        form["debug_on"] = flag
        form["test_mode"] = flag
        return form

    def _token(self, invoice: Invoice) -> str:
        return purchase_token(
            merchant_id=self._cfg.merchant_id,
            merchant_key=self._cfg.merchant_key,
            merchant_salt=self._cfg.merchant_salt,
            user_ip=invoice.get("user_ip"),
            merchant_oid=invoice.get("merchant_oid"),
            email=invoice.get("email"),
            amount=invoice.amount,
            user_basket=invoice.get("user_basket"),
            no_installment=invoice.get("no_installment"),
            max_installment=invoice.get("max_installment"),
            currency=invoice.get("currency"),
            test_mode=self._cfg.is_test,
        )

    async def purchase(self, invoice: Invoice) -> Invoice:
        self.validate(invoice)
        form = self._form(invoice)
        # A (None, value) file part keeps the body multipart and puts the token last
        files = {"paytr_token": (None, self._token(invoice))}
        resp = await self._post(TOKEN_URL, data=form, files=files)
        self._ensure_ok(resp, TOKEN_URL)
        data = self._json(resp, TOKEN_URL)
        if data.get("status") != SUCCESS:
            reason = str(data.get("reason") or "paytr request failed")
            logger.warning(
                "paytr: token request rejected: %s",
                reason,
                extra={"extra": self._log_extra(merchant_oid=invoice.get("merchant_oid"))},
            )
            raise PaymentRejectedError(reason, body=resp.text)
        token = str(data.get("token") or "")
        if not token:
            raise ProviderResponseError(
                "paytr returned success without a token",
                status_code=resp.status_code,
                url=TOKEN_URL,
                body=resp.text,
            )
        invoice.transaction_id = token
        logger.info(
            "paytr: token issued",
            extra={"extra": self._log_extra(merchant_oid=invoice.get("merchant_oid"), amount=invoice.amount)},
        )
        return invoice

    def pay(self, invoice: Invoice) -> PayResponse:
        return PayResponse(url=f"{IFRAME_URL}{invoice.transaction_id}", has_redirect=False)

    async def verify(self, amount: int, args: Mapping[str, str]) -> Receipt:
        transaction_id = args.get("transactionID") or args.get("merchant_oid") or ""
        status = args.get("status", "")
        expected = callback_hash(
            merchant_key=self._cfg.merchant_key,
            merchant_salt=self._cfg.merchant_salt,
            transaction_id=transaction_id,
            status=status,
            amount=amount,
        )
        if not hmac.compare_digest(expected.encode("ascii"), str(args.get("hash", "")).encode("utf-8")):
            logger.warning(
                "paytr: callback hash mismatch",
                extra={"extra": self._log_extra(transaction_id=transaction_id, status=status)},
            )
            raise SignatureMismatchError("paytr: callback hash does not match")
        if status != SUCCESS:
            raise PaymentRejectedError(
                str(args.get("failed_reason_msg") or "payment failed"),
                code=_int_or_none(args.get("failed_reason_code")),
            )
        return Receipt(driver=self.name, ref_id=transaction_id, details={"status": SUCCESS})


def _int_or_none(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw) if raw not in (None, "") else None
    except ValueError:
        return None
