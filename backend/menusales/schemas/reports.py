"""
Pydantic schemas for the sales report API.
"""
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..models.reports import ReportStatus


class ColumnMapping(BaseModel):
    """Which export columns hold the product name, quantity and amount."""
    productName: Optional[str] = None
    quantity: Optional[str] = None
    amount: Optional[str] = None


class ReportOut(BaseModel):
    id: str
    workspace_id: str
    report_date: date
    period_key: Optional[str] = None
    source: str
    status: ReportStatus
    source_file_path: str
    original_filename: Optional[str] = None
    column_mapping: Optional[dict] = None
    product_mapping: Optional[dict[str, str]] = None
    unmapped_products: Optional[list[str]] = None
    total_amount: Optional[float] = None
    total_quantity: Optional[float] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReportUpdate(BaseModel):
    """
    Operator edit of a report. Any subset of fields may be sent; a status of
    "uploaded" (or a move into "processing") starts a processing run.
    """
    status: Optional[ReportStatus] = None
    column_mapping: Optional[ColumnMapping] = None
    product_mapping: Optional[dict[str, str]] = None


class ReportUpdateResult(BaseModel):
    report: ReportOut
    triggered: bool


class SalesLineOut(BaseModel):
    id: str
    report_id: str
    product_id: str
    product_name_raw: str
    quantity: float
    amount: float
    unit_price: float
    product_name_at_sale: Optional[str] = None
    category_at_sale: Optional[str] = None
    subcategory_at_sale: Optional[str] = None
    is_extra_at_sale: bool
    period_key: str
    report_date: date

    model_config = ConfigDict(from_attributes=True)
