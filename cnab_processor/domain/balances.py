"""Store balance aggregation - pure functions over persisted transactions"""

from decimal import Decimal
from typing import Dict, Iterable, List
from cnab_processor.domain.models import StoreBalance, Statistics, Transaction


def build_store_balances(transactions: Iterable[Transaction]) -> List[StoreBalance]:
    """
    Group transactions by store name and compute each store's totals.

    Transactions keep their input order inside each group. Stores are
    returned in ascending name order.
    """
    groups: Dict[str, List[Transaction]] = {}
    for txn in transactions:
        groups.setdefault(txn.store_name, []).append(txn)

    balances = []
    for store_name in sorted(groups):
        balance = StoreBalance(store_name=store_name, transactions=groups[store_name])
        balance.calculate_balance()
        balances.append(balance)

    return balances


def compute_statistics(balances: List[StoreBalance], total_transactions: int) -> Statistics:
    """
    Summarize store balances.

    Biggest/smallest store ties go to the first name in ascending order:
    balances are sorted by name and max()/min() keep the first extreme seen.
    """
    ordered = sorted(balances, key=lambda b: b.store_name)

    return Statistics(
        total_transactions=total_transactions,
        total_stores=len(ordered),
        total_balance=sum((b.total_balance for b in ordered), Decimal("0.00")),
        biggest_store=max(ordered, key=lambda b: b.total_balance).store_name if ordered else None,
        smallest_store=min(ordered, key=lambda b: b.total_balance).store_name if ordered else None,
    )
