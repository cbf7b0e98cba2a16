"""
HTML comparison report.

Renders a single self-contained page that steps through every compared
screenshot with its baseline, current capture and diff side by side.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from ..comparison.screenshots import ComparisonOptions, ComparisonResult, ComparisonStatus
from ..logging import get_logger

logger = get_logger(__name__)

REPORT_FILE_NAME = "screenshot-comparison-report.html"

STATUS_BADGES = {
    ComparisonStatus.MATCH: ("status-match", "✅ Match"),
    ComparisonStatus.DIFFER: ("status-differ", "❌ Different"),
    ComparisonStatus.MISSING_BASELINE: ("status-missing", "⚠️ Missing Baseline"),
}


@dataclass(frozen=True)
class ReportItem:
    """One screenshot as shown in the report."""
    index: int
    filename: str
    status: str
    status_class: str
    status_text: str
    baseline_src: Optional[str]
    current_src: Optional[str]
    diff_src: Optional[str]


def _relative(path: Path, start: Path) -> str:
    return Path(os.path.relpath(path, start)).as_posix()


def build_report_items(
    result: ComparisonResult,
    options: ComparisonOptions,
    report_dir: Path,
) -> List[ReportItem]:
    items = []
    for index, detail in enumerate(result.details):
        baseline_path = Path(options.baseline_dir) / detail.filename
        current_path = Path(options.screenshots_dir) / detail.filename
        status_class, status_text = STATUS_BADGES.get(detail.status, ("status-missing", "❓ Unknown"))

        has_diff = (
            detail.status is ComparisonStatus.DIFFER
            and detail.diff_path is not None
            and Path(detail.diff_path).exists()
        )

        items.append(ReportItem(
            index=index,
            filename=detail.filename,
            status=detail.status.value,
            status_class=status_class,
            status_text=status_text,
            baseline_src=_relative(baseline_path, report_dir) if baseline_path.exists() else None,
            current_src=_relative(current_path, report_dir) if current_path.exists() else None,
            diff_src=_relative(Path(detail.diff_path), report_dir) if has_diff else None,
        ))
    return items


def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("rn_storybook_test", "output/templates"),
        autoescape=select_autoescape(["html", "j2"]),
    )


def generate_html_report(
    result: ComparisonResult,
    options: ComparisonOptions,
    generated_at: Optional[datetime] = None,
) -> Path:
    """
    Write the HTML report next to the diffs directory.

    Args:
        result: comparison outcome
        options: the options the comparison ran with (for directory layout)
        generated_at: timestamp shown in the header (defaults to now)

    Returns:
        Path of the written report
    """
    report_dir = Path(options.diffs_dir).parent
    report_path = report_dir / REPORT_FILE_NAME
    report_dir.mkdir(parents=True, exist_ok=True)

    items = build_report_items(result, options, report_dir)
    template = _environment().get_template("report.html.j2")
    html = template.render(
        generated_at=(generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S"),
        total=result.total,
        items=items,
    )

    report_path.write_text(html, encoding="utf-8")
    logger.info(f"Wrote HTML report to {report_path}")
    return report_path
