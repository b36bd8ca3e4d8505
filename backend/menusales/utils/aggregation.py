"""
Period aggregates derived from sales lines.

aggregate_lines() is pure: it folds resolved lines into per-(period, product)
and per-(period, category) totals. The processor recomputes the totals of
every (period, product) and (period, category) touched by a run from all lines
in that period, so several reports in one month add up and reruns overwrite.
Only processed reports count; share_of_total is a category's share of the
period's total amount.
"""
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.metrics import (
    MonthlyCategorySummary, MonthlyProductSummary,
    category_summary_id, product_summary_id,
)
from ..models.reports import ReportStatus, SalesLine, SalesReport

UNCATEGORIZED = "uncategorized"


@dataclass
class ProductTotals:
    period_key: str
    product_id: str
    name: Optional[str]
    category_id: Optional[str]
    subcategory_id: Optional[str]
    qty: float = 0.0
    amount: float = 0.0

    @property
    def avg_unit_price(self) -> float:
        return safe_ratio(self.amount, max(self.qty, 1))


@dataclass
class CategoryTotals:
    period_key: str
    category_id: str
    qty: float = 0.0
    amount: float = 0.0


@dataclass
class PeriodTotals:
    products: dict[tuple[str, str], ProductTotals] = field(default_factory=dict)
    categories: dict[tuple[str, str], CategoryTotals] = field(default_factory=dict)
    amount_by_period: dict[str, float] = field(default_factory=dict)


def safe_ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    value = numerator / denominator
    return value if math.isfinite(value) else 0.0


def aggregate_lines(lines: Iterable[SalesLine]) -> PeriodTotals:
    totals = PeriodTotals()
    for line in lines:
        category = line.category_at_sale or UNCATEGORIZED

        pkey = (line.period_key, line.product_id)
        product = totals.products.get(pkey)
        if product is None:
            product = ProductTotals(
                period_key=line.period_key,
                product_id=line.product_id,
                name=line.product_name_at_sale,
                category_id=line.category_at_sale,
                subcategory_id=line.subcategory_at_sale,
            )
            totals.products[pkey] = product
        product.qty += line.quantity
        product.amount += line.amount

        ckey = (line.period_key, category)
        cat = totals.categories.setdefault(ckey, CategoryTotals(line.period_key, category))
        cat.qty += line.quantity
        cat.amount += line.amount

        totals.amount_by_period[line.period_key] = (
            totals.amount_by_period.get(line.period_key, 0.0) + line.amount
        )
    return totals


def period_lines(
    db: Session,
    workspace_id: str,
    period_keys: Iterable[str],
    include_report_id: Optional[str] = None,
) -> list[SalesLine]:
    """
    Lines that count towards period metrics: those of processed reports, plus
    include_report_id (the report whose run is being committed). Lines left
    by failed or halted runs are ignored.
    """
    counted = SalesReport.status == ReportStatus.PROCESSED.value
    if include_report_id:
        counted = or_(counted, SalesReport.id == include_report_id)
    return (
        db.query(SalesLine)
        .join(SalesReport, SalesLine.report_id == SalesReport.id)
        .filter(
            SalesLine.workspace_id == workspace_id,
            SalesLine.period_key.in_(list(period_keys)),
            counted,
        )
        .all()
    )


def summary_rows(
    totals: PeriodTotals,
    workspace_id: str,
    category_labels: dict[str, str],
) -> list:
    """Metric rows keyed by their stable ids, ready for db.merge()."""
    rows: list = []
    for p in totals.products.values():
        rows.append(MonthlyProductSummary(
            id=product_summary_id(p.period_key, p.product_id),
            workspace_id=workspace_id,
            period_key=p.period_key,
            product_id=p.product_id,
            product_name_snapshot=p.name,
            category_snapshot=p.category_id,
            subcategory_snapshot=p.subcategory_id,
            total_qty=p.qty,
            total_amount=p.amount,
            avg_unit_price=p.avg_unit_price,
        ))
    for c in totals.categories.values():
        rows.append(MonthlyCategorySummary(
            id=category_summary_id(c.period_key, c.category_id),
            workspace_id=workspace_id,
            period_key=c.period_key,
            category_id=c.category_id,
            category_label_snapshot=category_labels.get(c.category_id, c.category_id),
            total_qty=c.qty,
            total_amount=c.amount,
            share_of_total=safe_ratio(c.amount, totals.amount_by_period.get(c.period_key, 0.0)),
        ))
    return rows


# ─── Read side (API) ──────────────────────────────────────────────────────────

def product_summaries(
    db: Session, workspace_id: str, period_key: Optional[str] = None,
) -> list[MonthlyProductSummary]:
    q = db.query(MonthlyProductSummary).filter(MonthlyProductSummary.workspace_id == workspace_id)
    if period_key:
        q = q.filter(MonthlyProductSummary.period_key == period_key)
    return q.order_by(
        MonthlyProductSummary.period_key, MonthlyProductSummary.total_amount.desc()
    ).all()


def category_summaries(
    db: Session, workspace_id: str, period_key: Optional[str] = None,
) -> list[MonthlyCategorySummary]:
    q = db.query(MonthlyCategorySummary).filter(MonthlyCategorySummary.workspace_id == workspace_id)
    if period_key:
        q = q.filter(MonthlyCategorySummary.period_key == period_key)
    return q.order_by(
        MonthlyCategorySummary.period_key, MonthlyCategorySummary.total_amount.desc()
    ).all()
