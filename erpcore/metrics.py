from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


ledger_journals_posted_count = Counter(
    "ledger_journals_posted_count",
    "Total posted journals by type",
    ["journal_type"],
)

ledger_entries_posted_count = Counter(
    "ledger_entries_posted_count",
    "Total posted ledger entries",
)

ledger_post_failures_count = Counter(
    "ledger_post_failures_count",
    "Total journal post failures by reason",
    ["reason"],
)

stock_lots_received_count = Counter(
    "stock_lots_received_count",
    "Total inbound stock lots by movement type",
    ["movement_type"],
)

stock_consumptions_count = Counter(
    "stock_consumptions_count",
    "Total FIFO consumptions by movement type",
    ["movement_type"],
)

stock_shortages_count = Counter(
    "stock_shortages_count",
    "Total FIFO consumptions that ran out of lots",
    ["blocked"],
)

sequence_allocations_count = Counter(
    "sequence_allocations_count",
    "Total allocated sequence values",
    ["sequence_name"],
)

document_number_retries_count = Counter(
    "document_number_retries_count",
    "Total unit-of-work retries after a duplicate document number",
    ["sequence_name"],
)

unit_of_work_duration_seconds = Histogram(
    "unit_of_work_duration_seconds",
    "Unit of work duration in seconds",
    ["operation", "status"],
)


def observe_journal_posted(journal_type: str, entry_count: int) -> None:
    ledger_journals_posted_count.labels(journal_type=journal_type).inc()
    if entry_count > 0:
        ledger_entries_posted_count.inc(entry_count)


def observe_ledger_post_failure(reason: str) -> None:
    ledger_post_failures_count.labels(reason=reason).inc()


def observe_lot_received(movement_type: str) -> None:
    stock_lots_received_count.labels(movement_type=movement_type).inc()


def observe_consumption(movement_type: str) -> None:
    stock_consumptions_count.labels(movement_type=movement_type).inc()


def observe_shortage(blocked: bool) -> None:
    stock_shortages_count.labels(blocked=str(blocked).lower()).inc()


def observe_sequence_allocation(sequence_name: str) -> None:
    sequence_allocations_count.labels(sequence_name=sequence_name).inc()


def observe_document_number_retry(sequence_name: str) -> None:
    document_number_retries_count.labels(sequence_name=sequence_name).inc()


def observe_unit_of_work(operation: str, status: str, duration: float) -> None:
    unit_of_work_duration_seconds.labels(operation=operation, status=status).observe(duration)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
