"""
Re-run the processing pipeline for one or more sales reports.

Processing is idempotent by replacement: each run deletes the report's
existing sales lines and rewrites them, and period metrics are recomputed.

Usage:
  python scripts/reprocess_report.py <report_id> [<report_id> ...]
  python scripts/reprocess_report.py --status error            # every failed report
  python scripts/reprocess_report.py --status needs_mapping --workspace cafe-1
  python scripts/reprocess_report.py --status error --dry-run  # list only
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
    ap = argparse.ArgumentParser(description="Re-process sales reports")
    ap.add_argument("report_ids", nargs="*", help="Report id(s) to reprocess")
    ap.add_argument("--status", help="Reprocess every report currently in this status")
    ap.add_argument("--workspace", help="Limit --status selection to one workspace")
    ap.add_argument("--batch-size", type=int, default=None, help="Line write chunk size (default: settings)")
    ap.add_argument("--dry-run", action="store_true", help="List the selected reports; do not process")
    args = ap.parse_args()

    if not args.report_ids and not args.status:
        ap.error("give report id(s) or --status")

    from menusales.database import SessionLocal
    from menusales.models import SalesReport
    from menusales.services.report_processor import ReportNotFoundError, process_report

    db = SessionLocal()
    try:
        report_ids = list(args.report_ids)
        if args.status:
            q = db.query(SalesReport.id).filter(SalesReport.status == args.status)
            if args.workspace:
                q = q.filter(SalesReport.workspace_id == args.workspace)
            report_ids += [row.id for row in q.order_by(SalesReport.report_date).all()]

        if not report_ids:
            logger.info("No reports selected, nothing to do")
            return

        logger.info("%d report(s) selected", len(report_ids))
        if args.dry_run:
            for report_id in report_ids:
                logger.info("  %s", report_id)
            return

        failed = 0
        for report_id in report_ids:
            try:
                result = process_report(db, report_id, batch_size=args.batch_size)
            except ReportNotFoundError as exc:
                logger.error("%s", exc)
                failed += 1
                continue
            logger.info(
                "  %s → %s (%d line(s), %d unmapped)",
                report_id, result.status, result.lines_written, len(result.unmapped),
            )
            if result.status == "error":
                failed += 1
    finally:
        db.close()

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
