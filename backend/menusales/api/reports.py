"""
Sales report API.

POST  /api/reports                      upload a POS export, start processing
GET   /api/reports                      list reports (workspace / status filter)
GET   /api/reports/{id}                 one report
PATCH /api/reports/{id}                 edit status / column_mapping / product_mapping
GET   /api/reports/{id}/lines           resolved sales lines
GET   /api/reports/{id}/suggestions     ranked candidates for each unmapped name
POST  /api/reports/{id}/auto-match      threshold-gated auto mapping of unmapped names

Processing runs as a background task after the response is sent. A run is
started only by writes made here (and by scripts/), never by the processor's
own status updates, so a run cannot retrigger itself.
"""

import logging
import os
from datetime import date
from typing import Optional

from fastapi import (
    APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status,
)
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db, new_id
from ..models.reports import ReportStatus, SalesLine, SalesReport
from ..schemas.matching import (
    AutoMatchOut, AutoMatchRequest, AutoMatchResult, Candidate, NameSuggestions,
)
from ..schemas.reports import ReportOut, ReportUpdate, ReportUpdateResult, SalesLineOut
from ..services.report_processor import run_report_pipeline, should_process
from ..utils.auto_match import auto_match_products, suggest_matches
from ..utils.object_store import LocalObjectStore, get_object_store
from ..utils.product_resolver import load_allies, load_products

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024
ALLOWED_EXTENSIONS = {".csv", ".xlsx", ".xlsm", ".xls"}


# ─── helpers ──────────────────────────────────────────────────────────────────

def _get_report(db: Session, report_id: str) -> SalesReport:
    report = db.get(SalesReport, report_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return report


def _schedule_if_needed(
    background_tasks: BackgroundTasks,
    report_id: str,
    before_status: Optional[str],
    after_status: Optional[str],
) -> bool:
    if not should_process(before_status, after_status):
        return False
    background_tasks.add_task(run_report_pipeline, report_id)
    logger.info("Scheduled processing for report %s (%s → %s)", report_id, before_status, after_status)
    return True


# =============================================================================
# Upload + read
# =============================================================================

@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ReportOut,
    summary="Upload a POS sales export",
    description=(
        "Store the file, create a report with status 'uploaded' and start processing "
        "in the background. Column names default to Product Name / Quantity / Amount."
    ),
)
async def upload_report(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="CSV or Excel export from the till"),
    report_date: date = Form(...),
    workspace_id: Optional[str] = Form(None),
    period_key: Optional[str] = Form(None, pattern=r"^\d{4}-\d{2}$"),
    product_name_column: Optional[str] = Form(None),
    quantity_column: Optional[str] = Form(None),
    amount_column: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    store: LocalObjectStore = Depends(get_object_store),
):
    filename = file.filename or "upload.csv"
    ext = os.path.splitext(filename)[1].lower() or ".csv"
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": f"Unsupported file type '{ext}'", "allowed": sorted(ALLOWED_EXTENSIONS)},
        )

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File exceeds 50 MB limit")

    workspace = workspace_id or settings.default_workspace_id
    report_id = new_id()
    object_path = store.put(f"{workspace}/uploads/{report_id}{ext}", content)

    column_mapping = {
        "productName": product_name_column or settings.default_product_name_column,
        "quantity": quantity_column or settings.default_quantity_column,
        "amount": amount_column or settings.default_amount_column,
    }
    report = SalesReport(
        id=report_id,
        workspace_id=workspace,
        report_date=report_date,
        period_key=period_key or report_date.strftime("%Y-%m"),
        source="excel_upload",
        status=ReportStatus.UPLOADED.value,
        source_file_path=object_path,
        original_filename=filename,
        column_mapping=column_mapping,
        product_mapping={},
        unmapped_products=[],
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info("Uploaded report %s (%s, %d bytes)", report_id, filename, len(content))

    _schedule_if_needed(background_tasks, report_id, None, report.status)
    return report


@router.get("", response_model=list[ReportOut])
def list_reports(
    workspace_id: Optional[str] = Query(None),
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    q = db.query(SalesReport).filter(
        SalesReport.workspace_id == (workspace_id or settings.default_workspace_id)
    )
    if status_filter:
        q = q.filter(SalesReport.status == status_filter.value)
    return q.order_by(SalesReport.report_date.desc(), SalesReport.created_at.desc()).limit(limit).all()


@router.get("/{report_id}", response_model=ReportOut)
def get_report(report_id: str, db: Session = Depends(get_db)):
    return _get_report(db, report_id)


@router.get("/{report_id}/lines", response_model=list[SalesLineOut])
def get_report_lines(report_id: str, db: Session = Depends(get_db)):
    _get_report(db, report_id)
    return (
        db.query(SalesLine)
        .filter(SalesLine.report_id == report_id)
        .order_by(SalesLine.product_name_at_sale, SalesLine.product_name_raw)
        .all()
    )


# =============================================================================
# Operator edits
# =============================================================================

@router.patch(
    "/{report_id}",
    response_model=ReportUpdateResult,
    summary="Edit a report's status or mappings",
    description=(
        "Setting status to 'uploaded' (or moving it into 'processing') starts a new run. "
        "Mapping edits on a report that is already 'uploaded' also start a run."
    ),
)
def update_report(
    report_id: str,
    body: ReportUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    report = _get_report(db, report_id)
    before_status = report.status

    if body.column_mapping is not None:
        report.column_mapping = body.column_mapping.model_dump(exclude_none=True)
    if body.product_mapping is not None:
        report.product_mapping = dict(body.product_mapping)
    if body.status is not None:
        report.status = body.status.value
    db.commit()
    db.refresh(report)

    triggered = _schedule_if_needed(background_tasks, report.id, before_status, report.status)
    return ReportUpdateResult(report=ReportOut.model_validate(report), triggered=triggered)


# =============================================================================
# Matching assistance
# =============================================================================

@router.get("/{report_id}/suggestions", response_model=list[NameSuggestions])
def get_suggestions(
    report_id: str,
    name: Optional[str] = Query(None, description="Suggest for this raw name instead of the report's unmapped list"),
    limit: int = Query(5, ge=1, le=20),
    db: Session = Depends(get_db),
):
    report = _get_report(db, report_id)
    names = [name] if name else list(report.unmapped_products or [])
    products = load_products(db, report.workspace_id)
    allies = load_allies(db)
    return [
        NameSuggestions(
            raw_name=raw,
            candidates=[
                Candidate(
                    product_id=m.product.id,
                    product_name=m.product.name,
                    score=round(m.score, 4),
                    reason=m.reason,
                )
                for m in suggest_matches(raw, products, allies=allies, max_results=limit)
            ],
        )
        for raw in names
    ]


@router.post("/{report_id}/auto-match", response_model=AutoMatchResult)
def auto_match_report(
    report_id: str,
    background_tasks: BackgroundTasks,
    body: Optional[AutoMatchRequest] = None,
    db: Session = Depends(get_db),
):
    report = _get_report(db, report_id)
    threshold = body.threshold if body and body.threshold is not None else settings.auto_match_threshold

    names = list(report.unmapped_products or [])
    products = load_products(db, report.workspace_id)
    matches = auto_match_products(names, products, threshold=threshold, allies=load_allies(db))

    triggered = False
    if matches:
        before_status = report.status
        # New dict so the JSON column registers the change
        mapping = dict(report.product_mapping or {})
        mapping.update({raw: m.product_id for raw, m in matches.items()})
        report.product_mapping = mapping
        report.status = ReportStatus.UPLOADED.value
        db.commit()
        triggered = _schedule_if_needed(background_tasks, report.id, before_status, report.status)

    return AutoMatchResult(
        report_id=report.id,
        threshold=threshold,
        mapped={
            raw: AutoMatchOut(product_id=m.product_id, score=round(m.score, 4), reason=m.reason)
            for raw, m in matches.items()
        },
        remaining=[n for n in names if n not in matches],
        triggered=triggered,
    )
