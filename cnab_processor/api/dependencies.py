"""Dependency injection for FastAPI endpoints"""

import logging
import threading
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cnab_processor.domain.parser import CnabParser
from cnab_processor.infrastructure.database.repositories import TransactionRepository
from cnab_processor.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_cancel_event() -> threading.Event:
    """Fresh cancellation signal for one import"""
    return threading.Event()


def get_parser() -> CnabParser:
    """Provide a CNAB parser with its own logger"""
    return CnabParser(logger=logging.getLogger("cnab_processor.parser"))


def get_transaction_repository(db: Session = Depends(get_db)) -> TransactionRepository:
    """Provide a transaction repository bound to the request's session"""
    return TransactionRepository(db, logger=logging.getLogger("cnab_processor.repository"))
