import importlib
import warnings
from datetime import date

from pydantic import PydanticDeprecatedSince20

from menusales.models import MonthlyProductSummary, SalesLine
from menusales.schemas import metrics as metric_schemas
from menusales.schemas import reports as report_schemas
from menusales.schemas.metrics import ProductSummaryOut
from menusales.schemas.reports import SalesLineOut


def test_schema_modules_import_without_deprecation_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error", PydanticDeprecatedSince20)
        importlib.reload(report_schemas)
        importlib.reload(metric_schemas)


def test_orm_objects_validate_from_attributes():
    line = SalesLine(
        id="l1", report_id="r1", workspace_id="w", product_id="L", product_name_raw="LATTE",
        quantity=2.0, amount=6.0, unit_price=3.0, is_extra_at_sale=False,
        period_key="2024-03", report_date=date(2024, 3, 1),
    )
    out = SalesLineOut.model_validate(line)
    assert (out.product_id, out.unit_price) == ("L", 3.0)

    summary = MonthlyProductSummary(
        id="monthlyProductSummary_2024-03_L", workspace_id="w", period_key="2024-03",
        product_id="L", total_qty=2.0, total_amount=6.0, avg_unit_price=3.0,
    )
    assert ProductSummaryOut.model_validate(summary).total_amount == 6.0
