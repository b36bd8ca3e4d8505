from ..database import Base
from .catalog import MenuGroup, Product, ProductAlly, ProductMapping
from .reports import ReportStatus, SalesReport, SalesLine, TRIGGER_STATUSES
from .metrics import (
    MonthlyProductSummary, MonthlyCategorySummary,
    product_summary_id, category_summary_id,
)

__all__ = [
    "Base",
    # Catalog + mapping tables
    "MenuGroup", "Product", "ProductAlly", "ProductMapping",
    # Reports
    "ReportStatus", "SalesReport", "SalesLine", "TRIGGER_STATUSES",
    # Derived aggregates
    "MonthlyProductSummary", "MonthlyCategorySummary",
    "product_summary_id", "category_summary_id",
]
