from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from paygate.payment.errors import InvoiceValidationError, MissingMetadataError, ProviderResponseError
from paygate.payment.invoice import Invoice, PayResponse, Receipt
from paygate.utils.correlation import get_correlation_id

logger = logging.getLogger(__name__)


class Driver(ABC):
    """Purchase / Pay / Verify contract shared by every gateway.

    Drivers are immutable after construction and may be shared between
    concurrent calls. Pass `client` to reuse a pooled httpx.AsyncClient;
    otherwise every request opens its own client with `timeout`.
    """

    name: str = "base"
    required_details: Tuple[str, ...] = ()

    def __init__(self, *, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self._timeout = httpx.Timeout(timeout, connect=10.0)
        self._client = client

    @abstractmethod
    async def purchase(self, invoice: Invoice) -> Invoice:
        """Register the invoice with the provider and set its transaction_id."""

    @abstractmethod
    def pay(self, invoice: Invoice) -> PayResponse:
        """Derive the payment page target from the invoice; no I/O."""

    @abstractmethod
    async def verify(self, amount: int, args: Mapping[str, str]) -> Receipt:
        """Confirm that `amount` was settled for the transaction in `args`."""

    def validate(self, invoice: Invoice) -> None:
        if invoice.amount <= 0:
            raise InvoiceValidationError(f"{self.name}: invoice amount must be positive, got {invoice.amount}")
        missing = [k for k in self.required_details if not invoice.has(k)]
        if missing:
            raise MissingMetadataError(self.name, missing)

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.post(url, timeout=self._timeout, **kwargs)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(
                "%s: transport error on POST %s: %s",
                self.name,
                url,
                e,
                extra={"extra": self._log_extra()},
            )
            raise

    def _ensure_ok(self, resp: httpx.Response, url: str) -> None:
        if resp.status_code != 200:
            logger.warning(
                "%s: unexpected status %s from %s",
                self.name,
                resp.status_code,
                url,
                extra={"extra": self._log_extra(body=resp.text[:500])},
            )
            raise ProviderResponseError(
                f"{self.name} request failed",
                status_code=resp.status_code,
                url=url,
                body=resp.text,
            )

    def _json(self, resp: httpx.Response, url: str) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"{self.name} returned an unparseable body",
                status_code=resp.status_code,
                url=url,
                body=resp.text,
            )
        return data

    def _log_extra(self, **fields: Any) -> Dict[str, Any]:
        extra: Dict[str, Any] = {"driver": self.name, "cid": get_correlation_id()}
        extra.update(fields)
        return extra
