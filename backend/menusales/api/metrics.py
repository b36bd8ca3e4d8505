from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..schemas.metrics import CategorySummaryOut, ProductSummaryOut
from ..utils.aggregation import category_summaries, product_summaries

router = APIRouter()

_PERIOD = r"^\d{4}-\d{2}$"


@router.get("/products", response_model=list[ProductSummaryOut])
def monthly_product_summaries(
    workspace_id: Optional[str] = Query(None),
    period_key: Optional[str] = Query(None, pattern=_PERIOD, description="YYYY-MM"),
    db: Session = Depends(get_db),
):
    return product_summaries(db, workspace_id or settings.default_workspace_id, period_key)


@router.get("/categories", response_model=list[CategorySummaryOut])
def monthly_category_summaries(
    workspace_id: Optional[str] = Query(None),
    period_key: Optional[str] = Query(None, pattern=_PERIOD, description="YYYY-MM"),
    db: Session = Depends(get_db),
):
    return category_summaries(db, workspace_id or settings.default_workspace_id, period_key)
