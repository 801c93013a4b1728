from sqlalchemy import Column, Integer, String, Float, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class GiftCardRow(Base):
    __tablename__ = "gift_cards"

    code = Column(String(25), primary_key=True)               # kanoniczny kod, np. ABC123
    status = Column(String, nullable=False, default="pending", index=True)
    price_amount = Column(Float, nullable=True)               # NULL = cena globalna
    price_currency = Column(String(3), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class GlobalPriceRow(Base):
    """
    Zawsze co najwyżej jeden wiersz (id = 1).
    """
    __tablename__ = "global_price"

    id = Column(Integer, primary_key=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
