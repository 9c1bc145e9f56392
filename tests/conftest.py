"""Pytest fixtures for testing"""

import threading
import pytest
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from cnab_processor.api.main import create_app
from cnab_processor.infrastructure.database.models import Base
from cnab_processor.infrastructure.database.session import get_db
from cnab_processor.domain.models import Transaction, TransactionType


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Lines from the CNAB sample file: Financing (expense), Loan Receipt (income), Boleto (expense)
SAMPLE_LINES = [
    "3201903010000014200096206760174753****3153141358JOÃO MACEDO   BAR DO JOÃO       ",
    "5201903010000013200556418150633648****0099153453MARIA SILVA   MERCEARIA 3 IRMÃOS",
    "2201903010000012200845152540736777****1313172712MARCOS PEREIRA LOJA DO Ó - MATRIZ",
]


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def sample_lines() -> list[str]:
    return list(SAMPLE_LINES)


@pytest.fixture
def sample_file_bytes() -> bytes:
    """The three sample lines as an uploaded file would carry them"""
    return ("\n".join(SAMPLE_LINES) + "\n").encode("utf-8")


@pytest.fixture
def make_line() -> Callable[..., str]:
    """Build a CNAB line from field values, padding each field to its width"""

    def _make_line(
        type: str = "3",
        date: str = "20190301",
        cents: str = "0000014200",
        cpf: str = "09620676017",
        card: str = "4753****3153",
        time: str = "141358",
        owner: str = "JOÃO MACEDO",
        store: str = "BAR DO JOÃO",
    ) -> str:
        return (
            type.ljust(1)
            + date.ljust(8)
            + cents.rjust(10, "0")
            + cpf.ljust(11)
            + card.ljust(12)
            + time.ljust(6)
            + owner.ljust(14)
            + store.ljust(19)
        )

    return _make_line


@pytest.fixture
def make_transactions() -> Callable[..., list[Transaction]]:
    """Generate valid transactions spread over a few stores"""

    def _make(count: int, stores: int = 3) -> list[Transaction]:
        types = list(TransactionType)
        return [
            Transaction(
                type=types[i % len(types)],
                date=date(2019, 3, 1 + i % 28),
                time=time(i % 24, i % 60, i % 60),
                amount=Decimal(100 + i).scaleb(-2),
                cpf=f"{i:011d}",
                card_number=f"4753****{i % 10000:04d}",
                store_owner=f"OWNER {i % stores}",
                store_name=f"STORE {i % stores}",
                created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )
            for i in range(count)
        ]

    return _make


class CancelAfterChecks(threading.Event):
    """Event that reports cancellation once it has been polled a given number of times"""

    def __init__(self, checks: int):
        super().__init__()
        self.checks = checks

    def is_set(self) -> bool:
        if super().is_set():
            return True
        self.checks -= 1
        return self.checks < 0


@pytest.fixture
def cancel_after() -> Callable[[int], CancelAfterChecks]:
    return CancelAfterChecks
