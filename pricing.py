"""
Ceny: walidacja kwoty i waluty, cena globalna oraz reguła wyboru ceny
pokazywanej klientowi (cena karty > cena globalna > brak ceny).
"""
import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from errors import InvalidPrice
from time_utils import next_timestamp, to_iso

logger = logging.getLogger("giftcard-validator")

SUPPORTED_CURRENCIES = ("USD", "EUR", "GBP", "CAD", "AUD", "JPY")
DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True)
class Money:
    amount: float
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": self.amount, "currency": self.currency}


@dataclass(frozen=True)
class GlobalPrice:
    money: Money
    updated_at: datetime

    @property
    def currency(self) -> str:
        return self.money.currency

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.money.amount,
            "currency": self.money.currency,
            "updatedAt": to_iso(self.updated_at),
        }


# Kształt odpowiedzi, gdy admin jeszcze nie ustawił ceny globalnej
EMPTY_GLOBAL_PRICE = {"amount": None, "currency": DEFAULT_CURRENCY, "updatedAt": None}


def global_price_to_dict(price: Optional[GlobalPrice]) -> Dict[str, Any]:
    return price.to_dict() if price else dict(EMPTY_GLOBAL_PRICE)


def validate_price(amount: Any, currency: Any) -> Money:
    """
    Zwraca Money, jeśli kwota jest skończoną liczbą >= 0, a waluta jest
    obsługiwana. W przeciwnym razie rzuca InvalidPrice.

    bool to w Pythonie podklasa int, ale True/False nie są kwotą.
    Kwotę oddajemy tak, jak przyszła (5 zostaje 5, nie 5.0).
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidPrice()
    try:
        as_float = float(amount)
    except OverflowError:
        raise InvalidPrice()
    if not math.isfinite(as_float) or as_float < 0:
        raise InvalidPrice()
    if currency not in SUPPORTED_CURRENCIES:
        raise InvalidPrice()
    return Money(amount=amount, currency=currency)


def resolve_price(card, global_price: Optional[GlobalPrice]) -> Optional[Money]:
    if card.price is not None:
        return card.price
    if global_price is not None:
        return global_price.money
    return None


class GlobalPriceStore:
    """
    Jedna aktualna cena globalna, trzymana w pamięci procesu.
    set() zawsze podmienia całą wartość (kwota + waluta + updatedAt).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._price: Optional[GlobalPrice] = None

    def get(self) -> Optional[GlobalPrice]:
        return self._price

    def set(self, money: Money) -> GlobalPrice:
        with self._lock:
            previous = self._price.updated_at if self._price else None
            self._price = GlobalPrice(money=money, updated_at=next_timestamp(previous))
            logger.info("Ustawiono cenę globalną: %s %s", money.amount, money.currency)
            return self._price
