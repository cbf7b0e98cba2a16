"""Screenshot comparison against baselines using the odiff binary."""

from .odiff import OdiffError, OdiffResult, compare_with_odiff
from .screenshots import (
    ComparisonDetail,
    ComparisonOptions,
    ComparisonResult,
    ComparisonStatus,
    clear_directory,
    compare_screenshots,
    list_screenshots,
    update_baseline,
)

__all__ = [
    "OdiffError",
    "OdiffResult",
    "compare_with_odiff",
    "ComparisonDetail",
    "ComparisonOptions",
    "ComparisonResult",
    "ComparisonStatus",
    "clear_directory",
    "compare_screenshots",
    "list_screenshots",
    "update_baseline",
]
