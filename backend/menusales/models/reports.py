from enum import Enum

from sqlalchemy import (
    Column, String, Boolean, Date, DateTime, Float, Text, JSON,
    ForeignKey, func,
)
from sqlalchemy.orm import relationship
from ..database import Base, new_id


class ReportStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    NEEDS_MAPPING = "needs_mapping"
    PROCESSED = "processed"
    ERROR = "error"


# Statuses that (re)start the ingestion pipeline when written to a report
TRIGGER_STATUSES = {ReportStatus.UPLOADED.value, ReportStatus.PROCESSING.value}


class SalesReport(Base):
    """
    One uploaded POS export.
    Mutated only by the report processor and by operator mapping edits; writing
    status / column_mapping / product_mapping is the only way to drive a run.
    """
    __tablename__ = "sales_reports"

    id                = Column(String(64), primary_key=True, default=new_id)
    workspace_id      = Column(String(64), nullable=False, index=True)
    report_date       = Column(Date, nullable=False)
    period_key        = Column(String(7))                   # YYYY-MM
    source            = Column(String(20), nullable=False, default="excel_upload")
    status            = Column(String(20), nullable=False, default=ReportStatus.UPLOADED.value, index=True)
    source_file_path  = Column(String(500), nullable=False)
    original_filename = Column(String(500))
    column_mapping    = Column(JSON)                        # {productName, quantity, amount}
    product_mapping   = Column(JSON, default=dict)          # raw name → product id (report-scoped)
    unmapped_products = Column(JSON, default=list)
    total_amount      = Column(Float)
    total_quantity    = Column(Float)
    error_message     = Column(Text)
    created_at        = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at        = Column(DateTime, onupdate=func.now())
    processed_at      = Column(DateTime)

    lines = relationship(
        "SalesLine", back_populates="report",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class SalesLine(Base):
    """
    Grain: one resolved row of one report.
    The full set for a report is deleted and regenerated on every successful run.
    """
    __tablename__ = "sales_lines"

    id                   = Column(String(64), primary_key=True, default=new_id)
    report_id            = Column(String(64), ForeignKey("sales_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    workspace_id         = Column(String(64), nullable=False)
    product_id           = Column(String(64), nullable=False, index=True)
    product_name_raw     = Column(String(500), nullable=False)
    quantity             = Column(Float, nullable=False, default=0)
    amount               = Column(Float, nullable=False, default=0)
    unit_price           = Column(Float, nullable=False, default=0)
    product_name_at_sale = Column(String(500))
    category_at_sale     = Column(String(64))
    subcategory_at_sale  = Column(String(64))
    is_extra_at_sale     = Column(Boolean, nullable=False, default=False)
    period_key           = Column(String(7), nullable=False, index=True)
    report_date          = Column(Date, nullable=False)

    report = relationship("SalesReport", back_populates="lines")
