"""HTML report generation for screenshot comparisons."""

from .report import REPORT_FILE_NAME, ReportItem, build_report_items, generate_html_report

__all__ = [
    "REPORT_FILE_NAME",
    "ReportItem",
    "build_report_items",
    "generate_html_report",
]
