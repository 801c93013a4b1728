import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from database.models import Base, GiftCardRow, GlobalPriceRow
from errors import NotFound
from pricing import GlobalPrice, Money
from registry import GiftCard, card_stats, parse_status, sort_newest_first
from time_utils import next_timestamp

logger = logging.getLogger("giftcard-validator")

GLOBAL_PRICE_ID = 1


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite oddaje daty bez strefy, zapisujemy zawsze UTC
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def row_to_card(row: GiftCardRow) -> GiftCard:
    price = None
    if row.price_amount is not None:
        price = Money(amount=row.price_amount, currency=row.price_currency)
    return GiftCard(
        code=row.code,
        status=parse_status(row.status),
        price=price,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def get_card_row(db: Session, code: str) -> Optional[GiftCardRow]:
    return db.get(GiftCardRow, code)


def insert_card_row(db: Session, code: str, created_at: datetime) -> GiftCardRow:
    row = GiftCardRow(code=code, status="pending", created_at=created_at)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_global_price_row(db: Session) -> Optional[GlobalPriceRow]:
    return db.get(GlobalPriceRow, GLOBAL_PRICE_ID)


# ------------------------------------------------------------------------------
# Rejestr kart i cena globalna w bazie SQL
# ------------------------------------------------------------------------------


class SqlGiftCardRegistry:
    """
    Ten sam interfejs co registry.GiftCardRegistry, ale dane w bazie.

    Każda operacja (także odczyt) idzie przez jedną blokadę. SQLite w pamięci
    ma jedno wspólne połączenie (StaticPool), a zamknięcie sesji robi na nim
    rollback, więc odczyt w trakcie zapisu zgubiłby cudzą transakcję.
    Blokadę trzeba dzielić z SqlGlobalPriceStore na tym samym engine.
    """

    def __init__(self, session_factory: Callable[[], Session], lock=None):
        self._session_factory = session_factory
        self._lock = lock or threading.RLock()
        self._last_created: Optional[datetime] = None

    def lookup_or_create(self, code: str) -> GiftCard:
        with self._lock, self._session_factory() as db:
            row = get_card_row(db, code)
            if row is None:
                self._last_created = next_timestamp(self._last_created)
                row = insert_card_row(db, code, self._last_created)
                logger.info("Nowa karta %s (pending)", code)
            return row_to_card(row)

    def get(self, code: str) -> GiftCard:
        with self._lock, self._session_factory() as db:
            row = get_card_row(db, code)
            if row is None:
                raise NotFound()
            return row_to_card(row)

    def set_status(self, code: str, status: Any) -> GiftCard:
        new_status = parse_status(status)
        with self._lock, self._session_factory() as db:
            row = self._existing(db, code)
            row.status = new_status.value
            row.updated_at = next_timestamp(_aware(row.updated_at) or _aware(row.created_at))
            db.commit()
            db.refresh(row)
            card = row_to_card(row)
        logger.info("Karta %s: status -> %s", code, new_status.value)
        return card

    def set_price(self, code: str, price: Optional[Money]) -> GiftCard:
        with self._lock, self._session_factory() as db:
            row = self._existing(db, code)
            row.price_amount = price.amount if price else None
            row.price_currency = price.currency if price else None
            row.updated_at = next_timestamp(_aware(row.updated_at) or _aware(row.created_at))
            db.commit()
            db.refresh(row)
            card = row_to_card(row)
        logger.info("Karta %s: zmiana ceny indywidualnej (%s)", code, price)
        return card

    def delete(self, code: str) -> None:
        with self._lock, self._session_factory() as db:
            row = self._existing(db, code)
            db.delete(row)
            db.commit()
        logger.info("Usunięto kartę %s", code)

    def list_all(self) -> List[GiftCard]:
        with self._lock, self._session_factory() as db:
            rows = db.execute(select(GiftCardRow)).scalars().all()
            cards = [row_to_card(r) for r in rows]
        return sort_newest_first(cards)

    def stats(self) -> Dict[str, int]:
        return card_stats(self.list_all())

    def count(self) -> int:
        with self._lock, self._session_factory() as db:
            return db.execute(select(func.count()).select_from(GiftCardRow)).scalar_one()

    @staticmethod
    def _existing(db: Session, code: str) -> GiftCardRow:
        row = get_card_row(db, code)
        if row is None:
            raise NotFound()
        return row


class SqlGlobalPriceStore:
    def __init__(self, session_factory: Callable[[], Session], lock=None):
        self._session_factory = session_factory
        self._lock = lock or threading.RLock()

    def get(self) -> Optional[GlobalPrice]:
        with self._lock, self._session_factory() as db:
            row = get_global_price_row(db)
            if row is None:
                return None
            return GlobalPrice(
                money=Money(amount=row.amount, currency=row.currency),
                updated_at=_aware(row.updated_at),
            )

    def set(self, money: Money) -> GlobalPrice:
        with self._lock, self._session_factory() as db:
            row = get_global_price_row(db)
            if row is None:
                row = GlobalPriceRow(id=GLOBAL_PRICE_ID)
                db.add(row)
                previous = None
            else:
                previous = _aware(row.updated_at)
            row.amount = money.amount
            row.currency = money.currency
            row.updated_at = next_timestamp(previous)
            db.commit()
            price = GlobalPrice(money=money, updated_at=_aware(row.updated_at))
        logger.info("Ustawiono cenę globalną: %s %s", money.amount, money.currency)
        return price


def create_tables(bind) -> None:
    Base.metadata.create_all(bind=bind)
