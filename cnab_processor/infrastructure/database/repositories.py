"""Data access layer for CNAB transactions"""

import logging
import threading
import time
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, insert
from sqlalchemy.orm import Session

from cnab_processor.domain.balances import build_store_balances
from cnab_processor.domain.exceptions import BulkInsertError, ImportCancelledError
from cnab_processor.domain.models import StoreBalance, Transaction
from cnab_processor.infrastructure.database.models import TransactionRecord, to_row
from cnab_processor.infrastructure.observability.metrics import bulk_insert_batch_histogram
from cnab_processor.utils.pagination import PageWindow, clamp_page

DEFAULT_BATCH_SIZE = 5000


def _partition(items: List[Transaction], batch_size: int) -> List[List[Transaction]]:
    return [items[i:i + batch_size] for i in range(0, len(items), batch_size)]


class TransactionRepository:
    """Repository for CNAB transactions"""

    def __init__(self, db: Session, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def _ordered(self):
        return self.db.query(TransactionRecord).order_by(
            TransactionRecord.date.desc(), TransactionRecord.time.desc(), TransactionRecord.id.desc()
        )

    def get_all(self) -> List[Transaction]:
        """All transactions, newest first"""
        return [r.to_domain() for r in self._ordered().all()]

    def get_by_store(self, store_name: str) -> List[Transaction]:
        """All transactions of one store, newest first"""
        if not store_name or not store_name.strip():
            raise ValueError("store_name must not be blank")

        records = self._ordered().filter(TransactionRecord.store_name == store_name).all()
        return [r.to_domain() for r in records]

    def get_store_balances(self) -> List[StoreBalance]:
        """Per-store rollups over every persisted transaction, by store name"""
        return build_store_balances(self.get_all())

    def get_page(
        self,
        page_number: int,
        page_size: int,
        store_name: Optional[str] = None,
    ) -> Tuple[List[Transaction], PageWindow]:
        """Fetch one page with OFFSET/LIMIT; out-of-range pages are clamped"""
        query = self._ordered()
        if store_name is not None:
            query = query.filter(TransactionRecord.store_name == store_name)

        total = query.order_by(None).with_entities(func.count(TransactionRecord.id)).scalar() or 0
        window = clamp_page(page_number, page_size, total)

        records = query.offset(window.offset).limit(window.page_size).all()
        return [r.to_domain() for r in records], window

    def count(self) -> int:
        return self.db.query(func.count(TransactionRecord.id)).scalar() or 0

    def any(self) -> bool:
        return self.db.query(TransactionRecord.id).first() is not None

    def add_range(self, transactions: Iterable[Transaction]) -> int:
        """
        Stage transactions through the ORM for a small import.

        Invalid transactions are skipped. Nothing is written until
        save_changes() is called.

        Returns:
            Number of transactions staged
        """
        if transactions is None:
            raise ValueError("transactions must not be None")

        transaction_list = list(transactions)
        valid = [t for t in transaction_list if t.is_valid()]
        if len(valid) < len(transaction_list):
            self.logger.warning(
                f"Found {len(transaction_list) - len(valid)} invalid transactions, skipping them",
                extra={"invalid": len(transaction_list) - len(valid)},
            )

        if not valid:
            self.logger.warning("No valid transactions to add")
            return 0

        self.db.add_all([TransactionRecord(**to_row(t)) for t in valid])
        self.logger.info(f"Staged {len(valid)} transactions", extra={"staged": len(valid)})
        return len(valid)

    def save_changes(self) -> int:
        """Commit the session; returns how many new rows were written"""
        written = len(self.db.new)
        self.db.commit()
        return written

    def delete_all(self) -> int:
        """Delete every transaction. Caller commits via save_changes()."""
        self.logger.warning("Deleting ALL transactions")
        result = self.db.execute(delete(TransactionRecord))
        return result.rowcount or 0

    def _end_open_transaction(self) -> None:
        """Refuse unsaved ORM changes, then commit whatever transaction the session already holds"""
        if self.db.new or self.db.dirty or self.db.deleted:
            raise ValueError("Session has unsaved changes; call save_changes() before bulk_insert()")

        if self.db.in_transaction():
            self.db.commit()

    def bulk_insert(
        self,
        transactions: Iterable[Transaction],
        batch_size: int = DEFAULT_BATCH_SIZE,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """
        Insert a large set of transactions in batches inside one database transaction.

        Rows go through an ORM bulk INSERT, so no objects enter the identity
        map, and the session is cleared after every batch to keep memory flat.
        Autoflush is off for the duration and restored afterwards.

        All-or-nothing: a failure or cancellation in any batch rolls back every
        batch of this call. The import runs in its own transaction; one the
        session already holds is committed first, and unsaved ORM changes are
        refused.

        Args:
            transactions: Records to persist (re-validated here)
            batch_size: Records per batch (default 5000)
            cancel_event: Checked before each batch

        Returns:
            Number of records committed

        Raises:
            ValueError: transactions is None, batch_size < 1, or the session has unsaved changes
            BulkInsertError: Database failure; nothing was committed
            ImportCancelledError: cancel_event was set; nothing was committed
        """
        if transactions is None:
            raise ValueError("transactions must not be None")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        transaction_list = list(transactions)
        if not transaction_list:
            self.logger.warning("Bulk insert called with no transactions")
            return 0

        valid = [t for t in transaction_list if t.is_valid()]
        invalid_count = len(transaction_list) - len(valid)
        if invalid_count:
            self.logger.warning(
                f"Skipping {invalid_count} invalid transactions out of {len(transaction_list)}",
                extra={"invalid": invalid_count, "total": len(transaction_list)},
            )
        if not valid:
            self.logger.warning("No valid transactions to insert after validation")
            return 0

        batches = _partition(valid, batch_size)
        total = len(valid)
        inserted = 0
        attempted = 0
        start = time.time()

        self.logger.info(
            f"Starting bulk insert: {total} transactions in {len(batches)} batches of {batch_size}",
            extra={"total": total, "batches": len(batches), "batch_size": batch_size},
        )

        self._end_open_transaction()

        original_autoflush = self.db.autoflush
        self.db.autoflush = False
        try:
            with self.db.begin():
                for index, batch in enumerate(batches, start=1):
                    if cancel_event is not None and cancel_event.is_set():
                        raise ImportCancelledError(
                            f"Bulk insert cancelled before batch {index}/{len(batches)}",
                            batches_attempted=attempted,
                            records_staged=inserted,
                        )

                    attempted = index
                    with bulk_insert_batch_histogram.time():
                        self.db.execute(insert(TransactionRecord), [to_row(t) for t in batch])
                        self.db.flush()
                    inserted += len(batch)
                    self.db.expunge_all()

                    self.logger.info(
                        f"Batch {index}/{len(batches)} completed ({index / len(batches) * 100:.1f}%)"
                        f" - {inserted}/{total} records inserted",
                        extra={"batch": index, "batches": len(batches), "inserted": inserted, "total": total},
                    )

        except ImportCancelledError:
            self.logger.warning(
                f"Bulk insert cancelled after staging {inserted}/{total} records. Transaction rolled back.",
                extra={"batches_attempted": attempted, "records_staged": inserted},
            )
            raise

        except Exception as e:
            self.logger.error(
                f"Bulk insert failed after staging {inserted}/{total} records. Transaction rolled back: {e}",
                extra={"batches_attempted": attempted, "records_staged": inserted},
            )
            raise BulkInsertError(
                f"Bulk insert failed in batch {attempted}/{len(batches)}: {e}",
                batches_attempted=attempted,
                records_staged=inserted,
            ) from e

        finally:
            self.db.autoflush = original_autoflush

        duration = time.time() - start
        self.logger.info(
            f"Bulk insert completed: {inserted} records in {duration:.2f}s"
            f" ({inserted / max(duration, 1e-9):.0f} records/sec)",
            extra={"inserted": inserted, "duration_seconds": round(duration, 3)},
        )
        return inserted
