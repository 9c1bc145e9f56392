"""Pydantic schemas for API responses"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Generic, List, Optional, TypeVar
from pydantic import BaseModel, PlainSerializer

from cnab_processor.domain.models import StoreBalance, Statistics, Transaction
from cnab_processor.utils.pagination import PageWindow

# Money stays a Decimal internally and is rendered as a JSON number
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

T = TypeVar("T")


class TransactionSchema(BaseModel):
    """Single transaction with derived fields"""

    id: Optional[int] = None
    type: str
    type_description: str
    nature: str
    date: date
    time: str  # HH:MM:SS
    amount: Money
    signed_amount: Money
    cpf: str
    card_number: str
    store_owner: str
    store_name: str

    @classmethod
    def from_domain(cls, txn: Transaction) -> "TransactionSchema":
        return cls(
            id=txn.id,
            type=str(int(txn.type)),
            type_description=txn.type_description,
            nature=txn.nature.value,
            date=txn.date,
            time=txn.time.strftime("%H:%M:%S"),
            amount=txn.amount,
            signed_amount=txn.signed_amount,
            cpf=txn.cpf,
            card_number=txn.card_number,
            store_owner=txn.store_owner,
            store_name=txn.store_name,
        )


class StoreBalanceSchema(BaseModel):
    """Balance rollup for one store"""

    store_name: str
    total_balance: Money
    total_income: Money
    total_expenses: Money
    transaction_count: int
    transactions: List[TransactionSchema]

    @classmethod
    def from_domain(cls, balance: StoreBalance) -> "StoreBalanceSchema":
        return cls(
            store_name=balance.store_name,
            total_balance=balance.total_balance,
            total_income=balance.total_income,
            total_expenses=balance.total_expenses,
            transaction_count=balance.transaction_count,
            transactions=[TransactionSchema.from_domain(t) for t in balance.transactions],
        )


class StatisticsResponse(BaseModel):
    """Response for GET /api/cnab/stats"""

    total_transactions: int
    total_stores: int
    total_balance: Money
    biggest_store: Optional[str] = None
    smallest_store: Optional[str] = None

    @classmethod
    def from_domain(cls, stats: Statistics) -> "StatisticsResponse":
        return cls(
            total_transactions=stats.total_transactions,
            total_stores=stats.total_stores,
            total_balance=stats.total_balance,
            biggest_store=stats.biggest_store,
            smallest_store=stats.smallest_store,
        )


class UploadResponse(BaseModel):
    """Response for POST /api/cnab/upload"""

    success: bool = True
    transaction_count: int = 0
    file_name: str = ""
    message: str = ""
    skipped_lines: int = 0


class PagedResult(BaseModel, Generic[T]):
    """One page of results with navigation metadata"""

    items: List[T]
    page_number: int
    page_size: int
    total_count: int
    total_pages: int
    has_previous: bool
    has_next: bool

    @classmethod
    def from_window(cls, items: List[T], window: PageWindow) -> "PagedResult[T]":
        return cls(
            items=items,
            page_number=window.page_number,
            page_size=window.page_size,
            total_count=window.total_count,
            total_pages=window.total_pages,
            has_previous=window.has_previous,
            has_next=window.has_next,
        )
