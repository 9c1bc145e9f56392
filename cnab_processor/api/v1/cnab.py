"""CNAB endpoints - file upload plus balance, statistics and transaction reads"""

import asyncio
import threading
import time
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from cnab_processor.api.dependencies import (
    get_cancel_event,
    get_parser,
    get_request_id,
    get_transaction_repository,
)
from cnab_processor.api.v1.schemas import (
    PagedResult,
    StatisticsResponse,
    StoreBalanceSchema,
    TransactionSchema,
    UploadResponse,
)
from cnab_processor.api.validators import validate_upload
from cnab_processor.config import settings
from cnab_processor.domain.balances import compute_statistics
from cnab_processor.domain.exceptions import BulkInsertError, ImportCancelledError, UploadValidationError
from cnab_processor.domain.models import Transaction
from cnab_processor.domain.parser import CnabParser
from cnab_processor.infrastructure.database.repositories import TransactionRepository
from cnab_processor.infrastructure.observability.logging import log_import
from cnab_processor.infrastructure.observability.metrics import record_import

router = APIRouter()


def _persist(
    repository: TransactionRepository,
    transactions: List[Transaction],
    cancel_event: Optional[threading.Event] = None,
) -> int:
    """Bulk path for large files, plain ORM insert for small ones"""
    if len(transactions) >= settings.bulk_insert_threshold:
        logging.info(
            f"Large file detected ({len(transactions)} transactions). Using bulk insert",
            extra={"parsed_count": len(transactions)},
        )
        return repository.bulk_insert(
            transactions, batch_size=settings.bulk_batch_size, cancel_event=cancel_event
        )

    staged = repository.add_range(transactions)
    if cancel_event is not None and cancel_event.is_set():
        repository.db.rollback()
        raise ImportCancelledError("Import cancelled before commit", records_staged=staged)
    return repository.save_changes()


async def _watch_disconnect(request: Request, cancel_event: threading.Event, interval: float = 0.5) -> None:
    """Set cancel_event once the client goes away"""
    while not await request.is_disconnected():
        await asyncio.sleep(interval)
    logging.warning("Client disconnected, cancelling import", extra={"request_id": get_request_id(request)})
    cancel_event.set()


@router.post("/cnab/upload", response_model=UploadResponse)
async def upload_cnab(
    request: Request,
    file: UploadFile = File(...),
    parser: CnabParser = Depends(get_parser),
    repository: TransactionRepository = Depends(get_transaction_repository),
    cancel_event: threading.Event = Depends(get_cancel_event),
):
    """
    Import a CNAB file.

    Flow:
    1. Validate the upload (size, extension, content type, first line)
    2. Parse it line by line; malformed lines are skipped
    3. Persist every valid transaction in one database transaction
    4. Return the committed count

    A client disconnect cancels the parse or the load; nothing is committed.
    """
    start_time = time.time()
    request_id = get_request_id(request)
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))

    try:
        validation = await validate_upload(file)
        if not validation.is_valid:
            raise UploadValidationError(f"File validation failed: {validation.error_message()}")
        if validation.warnings:
            logging.warning(
                f"File validation warnings: {validation.warning_message()}",
                extra={"request_id": request_id},
            )

        result = await parser.parse_async(file, cancel_event=cancel_event)
        if not result.transactions:
            raise UploadValidationError("No valid transactions found in the file.")

        inserted = await run_in_threadpool(_persist, repository, result.transactions, cancel_event)

    except UploadValidationError as e:
        record_import("rejected")
        logging.warning(f"Upload rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except (BulkInsertError, ImportCancelledError) as e:
        record_import("failed")
        logging.error(
            f"Import failed, nothing committed: {e}",
            extra={"request_id": request_id, "records_staged": e.records_staged},
        )
        raise HTTPException(status_code=500, detail="Error processing file: import rolled back")

    except Exception as e:
        repository.db.rollback()
        record_import("failed")
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    finally:
        watcher.cancel()

    duration_ms = (time.time() - start_time) * 1000
    record_import("success", inserted=inserted, skipped=len(result.skipped))
    log_import(request_id, file.filename, len(result.transactions), len(result.skipped), inserted, duration_ms)

    return UploadResponse(
        success=True,
        transaction_count=inserted,
        file_name=file.filename or "",
        message=f"Successfully imported {inserted} transactions!",
        skipped_lines=len(result.skipped),
    )


@router.get("/cnab/balances", response_model=List[StoreBalanceSchema])
def get_balances(repository: TransactionRepository = Depends(get_transaction_repository)):
    """All stores with their transactions and totals, by store name"""
    return [StoreBalanceSchema.from_domain(b) for b in repository.get_store_balances()]


@router.get("/cnab/stats", response_model=StatisticsResponse)
def get_stats(repository: TransactionRepository = Depends(get_transaction_repository)):
    """
    System-wide statistics.

    Biggest/smallest store ties resolve to the first store name alphabetically.
    """
    balances = repository.get_store_balances()
    stats = compute_statistics(balances, total_transactions=sum(b.transaction_count for b in balances))
    return StatisticsResponse.from_domain(stats)


@router.get("/cnab/transactions", response_model=List[TransactionSchema])
def get_all_transactions(repository: TransactionRepository = Depends(get_transaction_repository)):
    """All transactions, newest first. Prefer /cnab/transactions/paged for large datasets."""
    return [TransactionSchema.from_domain(t) for t in repository.get_all()]


@router.get("/cnab/transactions/paged", response_model=PagedResult[TransactionSchema])
def get_transactions_paged(
    page_number: int = Query(1, description="Page number (1-based)"),
    page_size: int = Query(10, description="Items per page (max 100)"),
    repository: TransactionRepository = Depends(get_transaction_repository),
):
    items, window = repository.get_page(page_number, page_size)
    return PagedResult[TransactionSchema].from_window(
        [TransactionSchema.from_domain(t) for t in items], window
    )


@router.get("/cnab/store/{store_name}", response_model=List[TransactionSchema])
def get_by_store(store_name: str, repository: TransactionRepository = Depends(get_transaction_repository)):
    try:
        transactions = repository.get_by_store(store_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return [TransactionSchema.from_domain(t) for t in transactions]


@router.get("/cnab/store/{store_name}/paged", response_model=PagedResult[TransactionSchema])
def get_by_store_paged(
    store_name: str,
    page_number: int = Query(1, description="Page number (1-based)"),
    page_size: int = Query(10, description="Items per page (max 100)"),
    repository: TransactionRepository = Depends(get_transaction_repository),
):
    if not store_name.strip():
        raise HTTPException(status_code=400, detail="store_name must not be blank")

    items, window = repository.get_page(page_number, page_size, store_name=store_name)
    return PagedResult[TransactionSchema].from_window(
        [TransactionSchema.from_domain(t) for t in items], window
    )


@router.delete("/cnab/transactions")
def delete_all_transactions(repository: TransactionRepository = Depends(get_transaction_repository)):
    """Delete every stored transaction"""
    try:
        deleted = repository.delete_all()
        repository.save_changes()
    except Exception as e:
        repository.db.rollback()
        logging.error(f"Error deleting transactions: {e}")
        raise HTTPException(status_code=500, detail="Error deleting transactions")

    return {"success": True, "message": "Successfully deleted all transactions", "deleted": deleted}
