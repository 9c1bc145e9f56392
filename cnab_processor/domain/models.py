"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple


class TransactionNature(str, Enum):
    """Effect of a transaction on a store's balance"""

    INCOME = "Income"
    EXPENSE = "Expense"


class TransactionType(IntEnum):
    """CNAB transaction type codes"""

    DEBIT = 1
    BOLETO = 2
    FINANCING = 3
    CREDIT = 4
    LOAN_RECEIPT = 5
    SALES = 6
    TED_RECEIPT = 7
    DOC_RECEIPT = 8
    RENT = 9

    @property
    def description(self) -> str:
        return TRANSACTION_TYPE_TABLE[self][0]

    @property
    def nature(self) -> TransactionNature:
        return TRANSACTION_TYPE_TABLE[self][1]


# code -> (description, nature)
TRANSACTION_TYPE_TABLE: Dict[TransactionType, Tuple[str, TransactionNature]] = {
    TransactionType.DEBIT: ("Debit", TransactionNature.INCOME),
    TransactionType.BOLETO: ("Boleto Payment", TransactionNature.EXPENSE),
    TransactionType.FINANCING: ("Financing", TransactionNature.EXPENSE),
    TransactionType.CREDIT: ("Credit", TransactionNature.INCOME),
    TransactionType.LOAN_RECEIPT: ("Loan Receipt", TransactionNature.INCOME),
    TransactionType.SALES: ("Sales", TransactionNature.INCOME),
    TransactionType.TED_RECEIPT: ("TED Receipt", TransactionNature.INCOME),
    TransactionType.DOC_RECEIPT: ("DOC Receipt", TransactionNature.INCOME),
    TransactionType.RENT: ("Rent", TransactionNature.EXPENSE),
}


@dataclass
class Transaction:
    """One CNAB record. Amount is already converted from cents."""

    type: TransactionType
    date: date
    time: time
    amount: Decimal
    cpf: str
    card_number: str
    store_owner: str
    store_name: str
    id: Optional[int] = field(default=None, compare=False)
    created_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def nature(self) -> TransactionNature:
        return self.type.nature

    @property
    def type_description(self) -> str:
        return self.type.description

    @property
    def is_income(self) -> bool:
        return self.nature is TransactionNature.INCOME

    @property
    def is_expense(self) -> bool:
        return self.nature is TransactionNature.EXPENSE

    @property
    def signed_amount(self) -> Decimal:
        """Amount with polarity applied: positive for income, negative for expense"""
        return self.amount if self.is_income else -self.amount

    def is_valid(self) -> bool:
        """Only valid transactions may be persisted"""
        return (
            bool(self.store_name and self.store_name.strip())
            and bool(self.cpf and self.cpf.strip())
            and self.amount > 0
            and isinstance(self.date, date)
        )


@dataclass
class SkippedLine:
    """A line that produced no transaction"""

    line_number: int
    reason: str


@dataclass
class ParseResult:
    """Output of a parse: valid transactions in file order plus diagnostics"""

    transactions: List[Transaction] = field(default_factory=list)
    skipped: List[SkippedLine] = field(default_factory=list)
    lines_read: int = 0


@dataclass
class StoreBalance:
    """Balance rollup for a single store, recomputed on every read"""

    store_name: str
    transactions: List[Transaction] = field(default_factory=list)
    total_income: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    total_balance: Decimal = Decimal("0.00")
    transaction_count: int = 0

    def calculate_balance(self) -> None:
        """Populate totals from transactions. Must be called after filling transactions."""
        self.total_income = sum(
            (t.amount for t in self.transactions if t.is_income), Decimal("0.00")
        )
        self.total_expenses = sum(
            (t.amount for t in self.transactions if t.is_expense), Decimal("0.00")
        )
        self.total_balance = self.total_income - self.total_expenses
        self.transaction_count = len(self.transactions)


@dataclass
class Statistics:
    """System-wide figures derived from store balances"""

    total_transactions: int
    total_stores: int
    total_balance: Decimal
    biggest_store: Optional[str]
    smallest_store: Optional[str]
