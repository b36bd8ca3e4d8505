"""
Slack notification utilities for the menu sales pipeline.
Posts when a report stops for manual mapping or fails; silent when no webhook is configured.
"""
import logging
from typing import Optional

import requests

from ..config import settings

logger = logging.getLogger(__name__)

_MAX_LISTED_NAMES = 10


def _post(payload: dict) -> bool:
    if not settings.slack_webhook_url:
        logger.debug("SLACK_WEBHOOK_URL not configured; skipping notification")
        return False
    try:
        resp = requests.post(
            settings.slack_webhook_url,
            json=payload,
            timeout=10,
        )
        resp.raise_for_status()
        return True
    except requests.RequestException as exc:
        logger.error("Slack notification failed: %s", exc)
        return False


def notify_report_needs_mapping(
    report_id: str,
    filename: Optional[str],
    unmapped: list[str],
) -> bool:
    lines = [
        "🧩 *Report needs product mapping*",
        f"Report: {filename or report_id} (`{report_id}`)",
        f"Unmapped names: {len(unmapped)}",
    ]
    for name in unmapped[:_MAX_LISTED_NAMES]:
        lines.append(f"  ├─ {name}")
    if len(unmapped) > _MAX_LISTED_NAMES:
        lines.append(f"  └─ … and {len(unmapped) - _MAX_LISTED_NAMES} more")
    return _post({"text": "\n".join(lines)})


def notify_report_error(report_id: str, filename: Optional[str], error: str) -> bool:
    text = (
        f"🚨 *Report processing failed*\n"
        f"Report: {filename or report_id} (`{report_id}`)\n"
        f"Error: {error}"
    )
    return _post({"text": text})


def notify_report_processed(
    report_id: str,
    filename: Optional[str],
    lines_written: int,
    total_amount: float,
    residual_unmapped: int,
) -> bool:
    icon = "✅" if not residual_unmapped else "⚠️"
    text = (
        f"{icon} *Report processed*\n"
        f"Report: {filename or report_id} (`{report_id}`)\n"
        f"Lines: {lines_written:,} | Amount: {total_amount:,.2f}"
    )
    if residual_unmapped:
        text += f"\nSkipped unmapped names: {residual_unmapped}"
    return _post({"text": text})
