"""SQLAlchemy ORM models for persisted CNAB transactions"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import BigInteger, Column, Date, DateTime, Index, Integer, SmallInteger, String, Time
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from cnab_processor.domain.models import Transaction, TransactionType

Base = declarative_base()


class TransactionRecord(Base):
    """Persisted CNAB transaction. Amount is stored as exact cents."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_store_name", "store_name"),
        Index("ix_transactions_date", "date"),
        Index("ix_transactions_store_name_date", "store_name", "date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(SmallInteger, nullable=False)  # 1=Debit ... 9=Rent
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)  # UTC-3, stored as read
    amount_cents = Column(BigInteger, nullable=False)
    cpf = Column(String(11), nullable=False)
    card_number = Column(String(20), nullable=False)
    store_owner = Column(String(50), nullable=False)
    store_name = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_domain(self) -> Transaction:
        return Transaction(
            id=self.id,
            type=TransactionType(self.type),
            date=self.date,
            time=self.time,
            amount=Decimal(self.amount_cents).scaleb(-2),
            cpf=self.cpf,
            card_number=self.card_number,
            store_owner=self.store_owner,
            store_name=self.store_name,
            created_at=self.created_at,
        )


def to_row(transaction: Transaction) -> dict:
    """Column values for an INSERT; created_at is stamped now if the parser left it empty"""
    return {
        "type": int(transaction.type),
        "date": transaction.date,
        "time": transaction.time,
        "amount_cents": int(transaction.amount.scaleb(2)),
        "cpf": transaction.cpf,
        "card_number": transaction.card_number,
        "store_owner": transaction.store_owner,
        "store_name": transaction.store_name,
        "created_at": transaction.created_at or datetime.now(timezone.utc),
    }
