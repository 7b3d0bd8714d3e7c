from __future__ import annotations

from typing import Iterable, Optional


class PaymentError(Exception):
    """Base class for every failure raised by a payment driver."""


class InvoiceValidationError(PaymentError):
    pass


class MissingMetadataError(InvoiceValidationError):
    def __init__(self, driver: str, missing: Iterable[str]) -> None:
        self.driver = driver
        self.missing = tuple(missing)
        super().__init__(f"{driver}: missing invoice metadata: {', '.join(self.missing)}")


class InvalidModeError(PaymentError):
    def __init__(self, mode: str, allowed: Iterable[str]) -> None:
        self.mode = mode
        self.allowed = tuple(allowed)
        super().__init__(f"unknown mode {mode!r}, expected one of: {', '.join(self.allowed)}")


class UnknownDriverError(PaymentError):
    def __init__(self, name: Optional[str]) -> None:
        self.name = name
        super().__init__(f"no payment driver registered as {name!r}")


class ProviderResponseError(PaymentError):
    """Non-200 status or a body that could not be parsed."""

    def __init__(self, message: str, *, status_code: int, url: str, body: str) -> None:
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"{message} (status={status_code}, url={url}): {body}")


class PaymentRejectedError(PaymentError):
    """Well-formed provider answer declining the transaction."""

    def __init__(self, message: str, *, code: Optional[int] = None, body: str = "") -> None:
        self.message = message
        self.code = code
        self.body = body
        super().__init__(message)


class SignatureMismatchError(PaymentError):
    """Callback hash did not match; the callback may have been tampered with."""
