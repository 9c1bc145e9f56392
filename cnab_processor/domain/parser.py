"""CNAB fixed-width parser - turns a byte stream into validated transactions"""

import codecs
import inspect
import io
import logging
import re
import threading
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, BinaryIO, Iterable, Optional

from cnab_processor.domain.exceptions import ImportCancelledError, LineFormatError
from cnab_processor.domain.models import ParseResult, SkippedLine, Transaction, TransactionType

LINE_LENGTH = 81

# (offset, length), 0-based character positions
TYPE_FIELD = (0, 1)
DATE_FIELD = (1, 8)  # YYYYMMDD
AMOUNT_FIELD = (9, 10)  # cents
CPF_FIELD = (19, 11)
CARD_FIELD = (30, 12)
TIME_FIELD = (42, 6)  # HHMMSS
OWNER_FIELD = (48, 14)
STORE_FIELD = (62, 19)

_DIGITS = re.compile(r"[0-9]+")
_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_line(line: str) -> str:
    """Pad with trailing spaces or truncate so the line is exactly LINE_LENGTH characters"""
    if len(line) < LINE_LENGTH:
        return line.ljust(LINE_LENGTH)
    return line[:LINE_LENGTH]


def extract_digits(value: str) -> str:
    """Keep only ASCII digits, in order"""
    return _NON_DIGITS.sub("", value)


def _slice(line: str, field: tuple) -> str:
    offset, length = field
    return line[offset:offset + length]


def _require_digits(raw: str, field_name: str) -> str:
    if not _DIGITS.fullmatch(raw):
        raise LineFormatError(f"Invalid {field_name} {raw!r}: expected digits")
    return raw


def _parse_type(raw: str) -> TransactionType:
    if not _DIGITS.fullmatch(raw) or not 1 <= int(raw) <= 9:
        raise LineFormatError(f"Invalid transaction type {raw!r}")
    return TransactionType(int(raw))


def _parse_date(raw: str) -> date:
    _require_digits(raw, "date")
    try:
        return datetime.strptime(raw, "%Y%m%d").date()
    except ValueError as e:
        raise LineFormatError(f"Invalid date {raw!r}") from e


def _parse_time(raw: str) -> time:
    _require_digits(raw, "time")
    try:
        return datetime.strptime(raw, "%H%M%S").time()
    except ValueError as e:
        raise LineFormatError(f"Invalid time {raw!r}") from e


def _parse_amount(raw: str) -> Decimal:
    """Cents to a 2-decimal amount. scaleb keeps the division exact."""
    cents = int(_require_digits(raw, "amount"))
    return Decimal(cents).scaleb(-2)


class CnabParser:
    """
    Parser for CNAB transaction files.

    One bad line never aborts a file: format errors are logged with the
    1-based line number and skipped, and records that fail validation are
    dropped. Only stream-level failures and cancellation reach the caller.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def parse_line(self, line: str) -> Transaction:
        """
        Decode a single line into a Transaction.

        The line is normalized to LINE_LENGTH first, so callers may pass raw
        lines of any length.

        Raises:
            LineFormatError: If type, date, amount or time cannot be decoded
        """
        line = normalize_line(line)

        return Transaction(
            type=_parse_type(_slice(line, TYPE_FIELD)),
            date=_parse_date(_slice(line, DATE_FIELD)),
            amount=_parse_amount(_slice(line, AMOUNT_FIELD)),
            cpf=extract_digits(_slice(line, CPF_FIELD)),
            card_number=_slice(line, CARD_FIELD).strip(),
            time=_parse_time(_slice(line, TIME_FIELD)),
            store_owner=_slice(line, OWNER_FIELD).strip(),
            store_name=_slice(line, STORE_FIELD).strip(),
            created_at=datetime.now(timezone.utc),
        )

    def parse(
        self,
        stream: BinaryIO,
        cancel_event: Optional[threading.Event] = None,
    ) -> ParseResult:
        """
        Parse a binary stream synchronously.

        The stream is rewound when seekable and is left open.

        Raises:
            ImportCancelledError: If cancel_event is set between lines
        """
        if stream.seekable():
            stream.seek(0)

        reader = io.TextIOWrapper(stream, encoding="utf-8-sig", errors="replace", newline=None)
        try:
            return self._collect((line.rstrip("\n") for line in reader), cancel_event)
        finally:
            # Detach so closing the wrapper does not close the caller's stream
            reader.detach()

    async def parse_async(
        self,
        stream: Any,
        cancel_event: Optional[threading.Event] = None,
        chunk_size: int = 64 * 1024,
    ) -> ParseResult:
        """
        Parse an async reader (anything with ``async read(size)``, e.g. UploadFile).

        Each chunk read is a suspension point. Lines are handed to the same
        per-line pipeline as the synchronous parse, in file order.
        """
        seek = getattr(stream, "seek", None)
        if seek is not None:
            rewound = seek(0)
            if inspect.isawaitable(rewound):
                await rewound

        decoder = io.IncrementalNewlineDecoder(
            codecs.getincrementaldecoder("utf-8-sig")(errors="replace"), translate=True
        )
        result = ParseResult()
        pending = ""

        while True:
            chunk = await stream.read(chunk_size)
            final = not chunk
            pending += decoder.decode(chunk or b"", final=final)

            *complete, pending = pending.split("\n")
            for line in complete:
                self._check_cancelled(cancel_event, result)
                self._process(line, result)

            if final:
                break

        if pending:
            self._check_cancelled(cancel_event, result)
            self._process(pending, result)

        self._log_summary(result)
        return result

    def _collect(self, lines: Iterable[str], cancel_event: Optional[threading.Event]) -> ParseResult:
        result = ParseResult()
        for line in lines:
            self._check_cancelled(cancel_event, result)
            self._process(line, result)

        self._log_summary(result)
        return result

    def _check_cancelled(self, cancel_event: Optional[threading.Event], result: ParseResult) -> None:
        if cancel_event is not None and cancel_event.is_set():
            self.logger.warning("CNAB parse cancelled", extra={"line_number": result.lines_read})
            raise ImportCancelledError(f"Parse cancelled after {result.lines_read} lines")

    def _process(self, line: str, result: ParseResult) -> None:
        result.lines_read += 1
        line_number = result.lines_read

        if not line.strip():
            return

        try:
            transaction = self.parse_line(line)
        except LineFormatError as e:
            self.logger.warning(
                f"Failed to parse line {line_number}: {e}",
                extra={"line_number": line_number, "reason": str(e)},
            )
            result.skipped.append(SkippedLine(line_number=line_number, reason=str(e)))
            return

        if not transaction.is_valid():
            reason = "Transaction failed validation"
            self.logger.debug(reason, extra={"line_number": line_number})
            result.skipped.append(SkippedLine(line_number=line_number, reason=reason))
            return

        result.transactions.append(transaction)

    def _log_summary(self, result: ParseResult) -> None:
        self.logger.info(
            "CNAB parse finished",
            extra={
                "lines_read": result.lines_read,
                "parsed": len(result.transactions),
                "skipped": len(result.skipped),
            },
        )
