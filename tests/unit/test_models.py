"""Unit tests for transaction domain models"""

import pytest
from datetime import date, time
from decimal import Decimal
from cnab_processor.domain.models import Transaction, TransactionNature, TransactionType


def _transaction(**overrides) -> Transaction:
    fields = dict(
        type=TransactionType.SALES,
        date=date(2019, 3, 1),
        time=time(15, 34, 53),
        amount=Decimal("132.00"),
        cpf="55641815063",
        card_number="3648****0099",
        store_owner="MARIA SILVA",
        store_name="MERCEARIA 3 IRMÃOS",
    )
    fields.update(overrides)
    return Transaction(**fields)


@pytest.mark.parametrize(
    "code,description,nature",
    [
        (1, "Debit", TransactionNature.INCOME),
        (2, "Boleto Payment", TransactionNature.EXPENSE),
        (3, "Financing", TransactionNature.EXPENSE),
        (4, "Credit", TransactionNature.INCOME),
        (5, "Loan Receipt", TransactionNature.INCOME),
        (6, "Sales", TransactionNature.INCOME),
        (7, "TED Receipt", TransactionNature.INCOME),
        (8, "DOC Receipt", TransactionNature.INCOME),
        (9, "Rent", TransactionNature.EXPENSE),
    ],
)
def test_transaction_type_table(code, description, nature):
    """Test every type code maps to its description and nature"""
    txn = _transaction(type=TransactionType(code), amount=Decimal("10.00"))

    assert txn.type_description == description
    assert txn.nature is nature
    expected_sign = Decimal("10.00") if nature is TransactionNature.INCOME else Decimal("-10.00")
    assert txn.signed_amount == expected_sign


def test_income_and_expense_flags():
    income = _transaction(type=TransactionType.CREDIT)
    expense = _transaction(type=TransactionType.RENT)

    assert income.is_income and not income.is_expense
    assert expense.is_expense and not expense.is_income


def test_valid_transaction():
    assert _transaction().is_valid()


@pytest.mark.parametrize(
    "overrides",
    [
        {"store_name": ""},
        {"store_name": "   "},
        {"cpf": ""},
        {"amount": Decimal("0.00")},
        {"amount": Decimal("-1.00")},
    ],
)
def test_invalid_transaction(overrides):
    assert not _transaction(**overrides).is_valid()


def test_equality_ignores_identity_and_creation_time():
    """Test id and created_at do not take part in equality"""
    from datetime import datetime, timezone

    first = _transaction(id=1, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    second = _transaction(id=2, created_at=datetime(2025, 6, 1, tzinfo=timezone.utc))

    assert first == second
