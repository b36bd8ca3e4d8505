from sqlalchemy import Column, String, Float, DateTime, func
from ..database import Base


def product_summary_id(period_key: str, product_id: str) -> str:
    return f"monthlyProductSummary_{period_key}_{product_id}"


def category_summary_id(period_key: str, category_id: str) -> str:
    return f"monthlyCategorySummary_{period_key}_{category_id}"


class MonthlyProductSummary(Base):
    """
    Grain: (period, product).
    Primary key is (workspace_id, stable id from product_summary_id()); reruns overwrite in place.
    """
    __tablename__ = "monthly_product_summaries"

    id                     = Column(String(200), primary_key=True)
    workspace_id           = Column(String(64), primary_key=True)
    period_key             = Column(String(7), nullable=False, index=True)
    product_id             = Column(String(64), nullable=False)
    product_name_snapshot  = Column(String(500))
    category_snapshot      = Column(String(64))
    subcategory_snapshot   = Column(String(64))
    total_qty              = Column(Float, nullable=False, default=0)
    total_amount           = Column(Float, nullable=False, default=0)
    avg_unit_price         = Column(Float, nullable=False, default=0)
    updated_at             = Column(DateTime, server_default=func.now(), onupdate=func.now())


class MonthlyCategorySummary(Base):
    """Grain: (period, menu group). Keyed by (workspace_id, category_summary_id())."""
    __tablename__ = "monthly_category_summaries"

    id                      = Column(String(200), primary_key=True)
    workspace_id            = Column(String(64), primary_key=True)
    period_key              = Column(String(7), nullable=False, index=True)
    category_id             = Column(String(64), nullable=False)
    category_label_snapshot = Column(String(200))
    total_qty               = Column(Float, nullable=False, default=0)
    total_amount            = Column(Float, nullable=False, default=0)
    share_of_total          = Column(Float, nullable=False, default=0)
    updated_at              = Column(DateTime, server_default=func.now(), onupdate=func.now())
