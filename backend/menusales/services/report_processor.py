"""
Report processing pipeline: uploaded POS export → resolved sales lines + period metrics.

A run is started by a qualifying status write on a SalesReport (see
should_process) and is idempotent by replacement: every successful run deletes
the report's previous lines and writes a fresh set, and metric rows are keyed
by stable ids so reruns overwrite rather than duplicate.

Status flow:
    uploaded → processing → processed
                          → needs_mapping   unmatched names, or nothing to write
                          → error           any exception, message kept on the report

Line deletes and inserts are committed in chunks of settings.write_batch_size.
The terminal "processed" commit (totals, metrics, mapping seeding) happens
only after every line chunk has been committed. Period metrics only count
lines of processed reports, so lines left by an error or a zero-total halt
never reach them.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import SessionLocal, new_id
from ..models.catalog import MenuGroup, Product, ProductMapping
from ..models.metrics import MonthlyCategorySummary, MonthlyProductSummary
from ..models.reports import TRIGGER_STATUSES, ReportStatus, SalesLine, SalesReport
from ..utils.aggregation import aggregate_lines, period_lines, safe_ratio, summary_rows
from ..utils.number_parser import parse_number
from ..utils.object_store import LocalObjectStore, fetch_to_temp, get_object_store
from ..utils.product_resolver import ProductResolver, Resolution
from ..utils.row_extractor import extract_rows
from ..utils.slack import notify_report_error, notify_report_needs_mapping, notify_report_processed

logger = logging.getLogger(__name__)


class ReportNotFoundError(LookupError):
    pass


@dataclass
class ParsedRow:
    name: str
    quantity: float
    amount: float


@dataclass
class ProcessResult:
    report_id: str
    status: str
    lines_written: int = 0
    line_chunks: int = 0
    deleted_lines: int = 0
    total_amount: float = 0.0
    total_quantity: float = 0.0
    unmapped: list[str] = field(default_factory=list)
    error: Optional[str] = None


# =============================================================================
# Trigger guard
# =============================================================================

def should_process(before_status: Optional[str], after_status: Optional[str]) -> bool:
    """
    Decide whether a write that moved a report from before_status to
    after_status starts a run. Re-writing "uploaded" always re-drives.
    """
    if not after_status:
        return False
    if before_status == after_status and after_status != ReportStatus.UPLOADED.value:
        return False
    return after_status in TRIGGER_STATUSES


# =============================================================================
# Helpers
# =============================================================================

def _chunks(items: list, size: int) -> Iterable[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _commit_chunk(db: Session, lines: list[SalesLine]) -> None:
    db.bulk_save_objects(lines)
    db.commit()


def _delete_chunk(db: Session, line_ids: list[str]) -> None:
    db.query(SalesLine).filter(SalesLine.id.in_(line_ids)).delete(synchronize_session=False)
    db.commit()


def column_mapping_for(report: SalesReport) -> dict[str, str]:
    mapping = report.column_mapping or {}
    return {
        "productName": mapping.get("productName") or settings.default_product_name_column,
        "quantity": mapping.get("quantity") or settings.default_quantity_column,
        "amount": mapping.get("amount") or settings.default_amount_column,
    }


def parse_rows(rows: list[dict[str, str]], mapping: dict[str, str]) -> list[ParsedRow]:
    parsed = []
    for index, row in enumerate(rows):
        name = str(row.get(mapping["productName"]) or "").strip()
        if not name:
            continue
        raw_qty = row.get(mapping["quantity"])
        raw_amount = row.get(mapping["amount"])
        quantity = parse_number(raw_qty)
        amount = parse_number(raw_amount)
        if index < 3:
            logger.debug(
                "Row %d: quantity %r → %s, amount %r → %s",
                index + 1, raw_qty, quantity, raw_amount, amount,
            )
        parsed.append(ParsedRow(name=name, quantity=quantity, amount=amount))
    return parsed


def period_key_for(report: SalesReport) -> str:
    return report.period_key or report.report_date.strftime("%Y-%m")


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def _build_line(report: SalesReport, row: ParsedRow, product: Product, period_key: str) -> SalesLine:
    quantity = _finite(row.quantity)
    amount = _finite(row.amount)
    return SalesLine(
        id=new_id(),
        report_id=report.id,
        workspace_id=report.workspace_id,
        product_id=product.id,
        product_name_raw=row.name,
        quantity=quantity,
        amount=amount,
        unit_price=safe_ratio(amount, max(quantity, 1)),
        product_name_at_sale=product.name,
        category_at_sale=product.category_id,
        subcategory_at_sale=product.subcategory_id,
        is_extra_at_sale=bool(product.is_extra),
        period_key=period_key,
        report_date=report.report_date,
    )


def _unmatched_names(resolved: list[tuple[ParsedRow, Resolution]]) -> list[str]:
    # First-seen order, no duplicates
    seen: dict[str, None] = {}
    for row, resolution in resolved:
        if not resolution.matched:
            seen.setdefault(row.name, None)
    return list(seen)


def _category_labels(db: Session, workspace_id: str) -> dict[str, str]:
    groups = db.query(MenuGroup).filter(MenuGroup.workspace_id == workspace_id).all()
    return {g.id: g.label for g in groups}


# =============================================================================
# Writes
# =============================================================================

def _delete_existing_lines(db: Session, report_id: str, batch_size: int) -> int:
    ids = [row.id for row in db.query(SalesLine.id).filter(SalesLine.report_id == report_id).all()]
    for chunk in _chunks(ids, batch_size):
        _delete_chunk(db, chunk)
    if ids:
        logger.info("Deleted %d existing line(s) for report %s", len(ids), report_id)
    return len(ids)


def _insert_lines(db: Session, lines: list[SalesLine], batch_size: int) -> int:
    chunks = 0
    for chunk in _chunks(lines, batch_size):
        _commit_chunk(db, chunk)
        chunks += 1
        logger.debug("Committed line chunk %d (%d line(s))", chunks, len(chunk))
    return chunks


def _replace_summaries(
    db: Session,
    workspace_id: str,
    period_keys: set[str],
    labels: dict[str, str],
    include_report_id: Optional[str] = None,
) -> int:
    """
    Recompute every metric row of the given periods from the lines of processed
    reports (plus include_report_id, the run being committed).
    """
    totals = aggregate_lines(period_lines(db, workspace_id, period_keys, include_report_id))
    rows = summary_rows(totals, workspace_id, labels)
    fresh_ids = {row.id for row in rows}

    for model in (MonthlyProductSummary, MonthlyCategorySummary):
        stale = (
            db.query(model)
            .filter(model.workspace_id == workspace_id, model.period_key.in_(list(period_keys)))
            .all()
        )
        for row in stale:
            if row.id not in fresh_ids:
                db.delete(row)
    for row in rows:
        db.merge(row)
    return len(rows)


def _seed_mappings(db: Session, report: SalesReport, resolver: ProductResolver) -> int:
    """Persist the report's manual mapping as workspace ProductMappings for future runs."""
    manual = report.product_mapping or {}
    if not manual:
        return 0
    existing = {
        m.unmapped_product_name: m
        for m in db.query(ProductMapping).filter(ProductMapping.workspace_id == report.workspace_id).all()
    }
    seeded = 0
    for raw_name, product_id in manual.items():
        if resolver.product(product_id) is None:
            continue
        mapping = existing.get(raw_name)
        if mapping is None:
            db.add(ProductMapping(
                id=new_id(),
                workspace_id=report.workspace_id,
                unmapped_product_name=raw_name,
                product_id=product_id,
            ))
        elif mapping.product_id != product_id:
            mapping.product_id = product_id
        else:
            continue
        seeded += 1
    return seeded


def _refresh_after_failure(db: Session, report: SalesReport, period_key: str) -> None:
    """An errored report stops counting towards its period: recompute that period without it."""
    try:
        _replace_summaries(db, report.workspace_id, {period_key}, _category_labels(db, report.workspace_id))
        db.commit()
    except SQLAlchemyError:
        logger.exception("Could not refresh %s metrics after report %s failed", period_key, report.id)
        db.rollback()


def _halt_needs_mapping(db: Session, report: SalesReport, unmapped: list[str], result: ProcessResult) -> ProcessResult:
    report.status = ReportStatus.NEEDS_MAPPING.value
    report.unmapped_products = unmapped
    db.commit()
    logger.info("Report %s needs mapping: %d unmapped name(s)", report.id, len(unmapped))
    notify_report_needs_mapping(report.id, report.original_filename, unmapped)
    result.status = ReportStatus.NEEDS_MAPPING.value
    result.unmapped = unmapped
    return result


# =============================================================================
# Pipeline
# =============================================================================

def process_report(
    db: Session,
    report_id: str,
    store: Optional[LocalObjectStore] = None,
    batch_size: Optional[int] = None,
) -> ProcessResult:
    report = db.get(SalesReport, report_id)
    if report is None:
        raise ReportNotFoundError(f"Sales report not found: {report_id}")

    store = store or get_object_store()
    batch_size = max(1, batch_size or settings.write_batch_size)
    result = ProcessResult(report_id=report_id, status=ReportStatus.PROCESSING.value)

    report.status = ReportStatus.PROCESSING.value
    report.error_message = None
    db.commit()
    logger.info("Processing report %s (%s)", report_id, report.source_file_path)

    touched_period: Optional[str] = None
    try:
        with fetch_to_temp(store, report.source_file_path) as tmp_path:
            rows = extract_rows(tmp_path)

        parsed = parse_rows(rows, column_mapping_for(report))
        manual_mapping = report.product_mapping or {}
        resolver = ProductResolver.from_db(db, report.workspace_id, manual_mapping=manual_mapping)
        labels = _category_labels(db, report.workspace_id)

        resolved = [(row, resolver.resolve(row.name)) for row in parsed]
        unmapped = _unmatched_names(resolved)
        matched = sum(1 for _, r in resolved if r.matched)
        logger.info(
            "Report %s: %d row(s), %d matched, %d unmapped name(s)",
            report_id, len(parsed), matched, len(unmapped),
        )

        if unmapped and not (manual_mapping and matched > 0):
            return _halt_needs_mapping(db, report, unmapped, result)

        period_key = period_key_for(report)
        lines = [
            _build_line(report, row, resolution.product, period_key)
            for row, resolution in resolved
            if resolution.matched
        ]
        touched_period = period_key
        result.deleted_lines = _delete_existing_lines(db, report_id, batch_size)
        result.line_chunks = _insert_lines(db, lines, batch_size)
        result.lines_written = len(lines)
        total_amount = sum(line.amount for line in lines)
        total_quantity = sum(line.quantity for line in lines)

        if total_amount == 0 and total_quantity == 0:
            logger.info("Report %s produced no sales, marking needs_mapping", report_id)
            # The report no longer counts towards its period
            _replace_summaries(db, report.workspace_id, {period_key}, labels)
            return _halt_needs_mapping(db, report, unmapped, result)

        _replace_summaries(db, report.workspace_id, {period_key}, labels, include_report_id=report_id)
        seeded = _seed_mappings(db, report, resolver)

        report.status = ReportStatus.PROCESSED.value
        report.period_key = period_key
        report.total_amount = total_amount
        report.total_quantity = total_quantity
        report.unmapped_products = unmapped
        report.processed_at = datetime.now(timezone.utc).replace(tzinfo=None)
        db.commit()

        logger.info(
            "Report %s processed: %d line(s) in %d chunk(s), amount=%.2f qty=%.2f, %d mapping(s) saved",
            report_id, len(lines), result.line_chunks, total_amount, total_quantity, seeded,
        )
        notify_report_processed(report_id, report.original_filename, len(lines), total_amount, len(unmapped))

        result.status = ReportStatus.PROCESSED.value
        result.total_amount = total_amount
        result.total_quantity = total_quantity
        result.unmapped = unmapped
        return result

    except Exception as exc:
        logger.exception("Report %s failed", report_id)
        db.rollback()
        report = db.get(SalesReport, report_id)
        report.status = ReportStatus.ERROR.value
        report.error_message = str(exc) or exc.__class__.__name__
        db.commit()
        failed_period = touched_period or report.period_key
        if failed_period:
            _refresh_after_failure(db, report, failed_period)
        notify_report_error(report_id, report.original_filename, report.error_message)
        result.status = ReportStatus.ERROR.value
        result.error = report.error_message
        return result


def run_report_pipeline(report_id: str) -> None:
    """Background-task entry point: owns its session for the whole run."""
    db = SessionLocal()
    try:
        process_report(db, report_id)
    except ReportNotFoundError as exc:
        logger.warning("%s", exc)
    finally:
        db.close()
