"""
Unattended auto-mapping pass over reports waiting for product mapping.

For every needs_mapping report, runs auto-match on its unmapped names with the
stricter unattended threshold (settings.unattended_auto_match_threshold, 0.9
by default), merges the hits into the report's product_mapping and, when
anything was mapped, re-runs processing.

Usage:
  python scripts/auto_map_reports.py
  python scripts/auto_map_reports.py --workspace cafe-1 --threshold 0.95
  python scripts/auto_map_reports.py --dry-run   # show proposed mappings only
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from dotenv import load_dotenv
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    from menusales.config import settings

    ap = argparse.ArgumentParser(description="Auto-map unmapped product names on needs_mapping reports")
    ap.add_argument("--workspace", help="Only reports of this workspace")
    ap.add_argument(
        "--threshold", type=float, default=settings.unattended_auto_match_threshold,
        help="Minimum score to accept a match (default: %(default)s)",
    )
    ap.add_argument("--dry-run", action="store_true", help="Print proposed mappings; do not modify the DB")
    args = ap.parse_args()

    from menusales.database import SessionLocal
    from menusales.models import ReportStatus, SalesReport
    from menusales.services.report_processor import process_report
    from menusales.utils.auto_match import auto_match_products
    from menusales.utils.product_resolver import load_allies, load_products

    db = SessionLocal()
    try:
        q = db.query(SalesReport).filter(SalesReport.status == ReportStatus.NEEDS_MAPPING.value)
        if args.workspace:
            q = q.filter(SalesReport.workspace_id == args.workspace)
        reports = q.order_by(SalesReport.report_date).all()
        logger.info("%d report(s) need mapping", len(reports))

        allies = load_allies(db)
        catalogs: dict[str, list] = {}
        mapped_total = 0

        for report in reports:
            if report.workspace_id not in catalogs:
                catalogs[report.workspace_id] = load_products(db, report.workspace_id)
            names = list(report.unmapped_products or [])
            matches = auto_match_products(
                names, catalogs[report.workspace_id], threshold=args.threshold, allies=allies,
            )
            logger.info("Report %s: %d/%d name(s) matched", report.id, len(matches), len(names))
            for raw, m in matches.items():
                logger.info("  %-40s → %s (%.2f, %s)", raw, m.product_id, m.score, m.reason)

            if args.dry_run or not matches:
                continue

            mapping = dict(report.product_mapping or {})
            mapping.update({raw: m.product_id for raw, m in matches.items()})
            report.product_mapping = mapping
            report.status = ReportStatus.UPLOADED.value
            db.commit()
            mapped_total += len(matches)

            result = process_report(db, report.id)
            logger.info("  reprocessed → %s (%d line(s))", result.status, result.lines_written)

        logger.info("Done: %d name(s) mapped across %d report(s)", mapped_total, len(reports))
    finally:
        db.close()


if __name__ == "__main__":
    main()
