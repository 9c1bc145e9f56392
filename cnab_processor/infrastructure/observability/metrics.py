"""Prometheus metrics for import volume, skipped lines, and bulk insert throughput"""

from prometheus_client import Counter, Histogram

# Import metrics
import_counter = Counter(
    "cnab_import_total",
    "CNAB file imports by outcome",
    ["outcome"],  # success | rejected | failed
)

transactions_imported_counter = Counter(
    "cnab_transactions_imported_total",
    "Transactions committed from CNAB imports",
)

lines_skipped_counter = Counter(
    "cnab_lines_skipped_total",
    "CNAB lines that produced no transaction",
)

# Bulk loader
bulk_insert_batch_histogram = Histogram(
    "cnab_bulk_insert_batch_seconds",
    "Time to insert and flush one bulk insert batch",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_import(outcome: str, inserted: int = 0, skipped: int = 0) -> None:
    """Record import metrics for monitoring volume and file quality"""
    import_counter.labels(outcome=outcome).inc()

    if inserted:
        transactions_imported_counter.inc(inserted)
    if skipped:
        lines_skipped_counter.inc(skipped)
