from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ProductSummaryOut(BaseModel):
    id: str
    period_key: str
    product_id: str
    product_name_snapshot: Optional[str] = None
    category_snapshot: Optional[str] = None
    subcategory_snapshot: Optional[str] = None
    total_qty: float
    total_amount: float
    avg_unit_price: float
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CategorySummaryOut(BaseModel):
    id: str
    period_key: str
    category_id: str
    category_label_snapshot: Optional[str] = None
    total_qty: float
    total_amount: float
    share_of_total: float
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
