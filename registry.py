"""
Rejestr kart podarunkowych (kod -> karta), trzymany w pamięci procesu.

Karty są niemutowalne: każda zmiana statusu/ceny podmienia cały rekord
pod blokadą, więc równoległe odczyty zawsze widzą spójny stan karty.
"""
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from errors import InvalidStatus, NotFound
from pricing import Money
from time_utils import next_timestamp, to_iso

logger = logging.getLogger("giftcard-validator")


class CardStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


def parse_status(value: Any) -> CardStatus:
    try:
        return CardStatus(value)
    except ValueError:
        raise InvalidStatus()


@dataclass(frozen=True)
class GiftCard:
    code: str
    created_at: datetime
    status: CardStatus = CardStatus.PENDING
    price: Optional[Money] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "status": self.status.value,
            "price": self.price.to_dict() if self.price else None,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }


def sort_newest_first(cards: List[GiftCard]) -> List[GiftCard]:
    # najpierw po kodzie, potem (stabilnie) po dacie utworzenia malejąco
    cards = sorted(cards, key=lambda c: c.code)
    return sorted(cards, key=lambda c: c.created_at, reverse=True)


def card_stats(cards: List[GiftCard]) -> Dict[str, int]:
    return {
        "total": len(cards),
        "accepted": sum(1 for c in cards if c.status is CardStatus.ACCEPTED),
        "declined": sum(1 for c in cards if c.status is CardStatus.DECLINED),
        "pending": sum(1 for c in cards if c.status is CardStatus.PENDING),
    }


class GiftCardRegistry:
    def __init__(self):
        self._lock = threading.RLock()
        self._cards: Dict[str, GiftCard] = {}
        self._last_created: Optional[datetime] = None

    def lookup_or_create(self, code: str) -> GiftCard:
        """
        Zwraca istniejącą kartę albo zakłada nową (pending, bez ceny).
        Kod musi być już znormalizowany (codes.normalize_code).
        """
        with self._lock:
            card = self._cards.get(code)
            if card is None:
                self._last_created = next_timestamp(self._last_created)
                card = GiftCard(code=code, created_at=self._last_created)
                self._cards[code] = card
                logger.info("Nowa karta %s (pending)", code)
            return card

    def get(self, code: str) -> GiftCard:
        with self._lock:
            card = self._cards.get(code)
        if card is None:
            raise NotFound()
        return card

    def set_status(self, code: str, status: Any) -> GiftCard:
        new_status = parse_status(status)
        with self._lock:
            card = self.get(code)
            card = replace(card, status=new_status, updated_at=self._touch(card))
            self._cards[code] = card
        logger.info("Karta %s: status -> %s", code, new_status.value)
        return card

    def set_price(self, code: str, price: Optional[Money]) -> GiftCard:
        with self._lock:
            card = self.get(code)
            card = replace(card, price=price, updated_at=self._touch(card))
            self._cards[code] = card
        if price is None:
            logger.info("Karta %s: usunięto cenę indywidualną", code)
        else:
            logger.info("Karta %s: cena -> %s %s", code, price.amount, price.currency)
        return card

    def delete(self, code: str) -> None:
        with self._lock:
            if code not in self._cards:
                raise NotFound()
            del self._cards[code]
        logger.info("Usunięto kartę %s", code)

    def list_all(self) -> List[GiftCard]:
        with self._lock:
            cards = list(self._cards.values())
        return sort_newest_first(cards)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            cards = list(self._cards.values())
        return card_stats(cards)

    def count(self) -> int:
        with self._lock:
            return len(self._cards)

    @staticmethod
    def _touch(card: GiftCard) -> datetime:
        return next_timestamp(card.updated_at or card.created_at)
