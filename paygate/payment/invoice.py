from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional


@dataclass
class Invoice:
    """One payment attempt.

    `transaction_id` is empty until a driver's purchase sets it to the
    provider token; it is opaque and must be round-tripped into verify as is.
    """

    amount: int
    currency: str = ""
    description: str = ""
    details: Dict[str, str] = field(default_factory=dict)
    driver: Optional[str] = None
    transaction_id: str = ""
    uid: uuid.UUID = field(default_factory=uuid.uuid4)

    def has(self, key: str) -> bool:
        return key in self.details

    def get(self, key: str) -> str:
        return self.details.get(key, "")

    def set(self, key: str, value: str) -> "Invoice":
        self.details[key] = str(value)
        return self

    def detail(self, values: Mapping[str, str]) -> "Invoice":
        for k, v in values.items():
            self.set(k, v)
        return self

    def via(self, driver: str) -> "Invoice":
        self.driver = driver
        return self


@dataclass(frozen=True)
class Receipt:
    driver: str
    ref_id: str = ""
    details: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))


@dataclass(frozen=True)
class PayResponse:
    url: str
    has_redirect: bool
