"""
Screenshot comparison against a baseline directory.

Every screenshot is compared with the file of the same name in the baseline
directory. Comparisons are independent and run on a thread pool; the result
keeps the screenshot order.
"""

import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ..config import DEFAULT_TOLERANCE
from ..logging import get_logger
from ..regions.detection import DiffRegion
from ..regions.flags import valid_ignore_regions
from .odiff import OdiffError, compare_with_odiff

logger = get_logger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg")


class ComparisonStatus(str, Enum):
    MATCH = "match"
    DIFFER = "differ"
    MISSING_BASELINE = "missing-baseline"


@dataclass
class ComparisonOptions:
    screenshots_dir: Path
    baseline_dir: Path
    diffs_dir: Path
    tolerance: float = DEFAULT_TOLERANCE
    strict: bool = False
    ignore_regions: List[DiffRegion] = field(default_factory=list)
    odiff_bin: str = "odiff"
    max_workers: Optional[int] = None


@dataclass(frozen=True)
class ComparisonDetail:
    filename: str
    status: ComparisonStatus
    diff_path: Optional[Path] = None


@dataclass
class ComparisonResult:
    total: int = 0
    matches: int = 0
    differences: int = 0
    missing_baselines: int = 0
    details: List[ComparisonDetail] = field(default_factory=list)

    def add(self, detail: ComparisonDetail) -> None:
        self.details.append(detail)
        if detail.status is ComparisonStatus.MATCH:
            self.matches += 1
        elif detail.status is ComparisonStatus.DIFFER:
            self.differences += 1
        elif detail.status is ComparisonStatus.MISSING_BASELINE:
            self.missing_baselines += 1


def list_screenshots(directory: Path) -> List[str]:
    """Image file names in a directory, sorted."""
    return sorted(
        path.name for path in Path(directory).iterdir()
        if path.is_file() and path.suffix.lower() in IMAGE_SUFFIXES
    )


def _compare_one(
    filename: str,
    options: ComparisonOptions,
    ignore_regions: List[DiffRegion],
) -> ComparisonDetail:
    current_path = Path(options.screenshots_dir) / filename
    baseline_path = Path(options.baseline_dir) / filename
    diff_path = Path(options.diffs_dir) / f"diff_{filename}"

    if not baseline_path.exists():
        logger.warning(f"No baseline for: {filename}")
        return ComparisonDetail(filename, ComparisonStatus.MISSING_BASELINE)

    try:
        outcome = compare_with_odiff(
            baseline_path,
            current_path,
            diff_path,
            tolerance=options.tolerance,
            strict=options.strict,
            ignore_regions=ignore_regions or None,
            odiff_bin=options.odiff_bin,
        )
    except OdiffError as exc:
        logger.error(f"Error comparing {filename}: {exc}")
        return ComparisonDetail(filename, ComparisonStatus.DIFFER)

    if outcome.equal:
        logger.info(f"{filename}: Match")
        return ComparisonDetail(filename, ComparisonStatus.MATCH)

    logger.info(f"{filename}: Differs")
    return ComparisonDetail(filename, ComparisonStatus.DIFFER, outcome.diff_path)


def compare_screenshots(options: ComparisonOptions) -> ComparisonResult:
    """
    Compare every screenshot in ``options.screenshots_dir`` against its baseline.

    Args:
        options: directories, tolerance and ignore regions for the run

    Returns:
        ComparisonResult with one detail per screenshot, in file name order
    """
    Path(options.diffs_dir).mkdir(parents=True, exist_ok=True)

    screenshots = list_screenshots(options.screenshots_dir)
    ignore_regions = valid_ignore_regions(options.ignore_regions)

    details_by_name: Dict[str, ComparisonDetail] = {}
    if screenshots:
        with ThreadPoolExecutor(max_workers=options.max_workers) as pool:
            fut_to_name = {
                pool.submit(_compare_one, name, options, ignore_regions): name
                for name in screenshots
            }
            for fut in as_completed(fut_to_name):
                name = fut_to_name[fut]
                details_by_name[name] = fut.result()

    result = ComparisonResult(total=len(screenshots))
    for name in screenshots:
        result.add(details_by_name[name])

    logger.info(
        f"Compared {result.total} screenshots: {result.matches} match, "
        f"{result.differences} differ, {result.missing_baselines} missing baseline"
    )
    return result


def update_baseline(screenshots_dir: Path, baseline_dir: Path) -> int:
    """Copy current screenshots into the baseline directory."""
    baseline_dir = Path(baseline_dir)
    baseline_dir.mkdir(parents=True, exist_ok=True)

    screenshots = list_screenshots(screenshots_dir)
    for name in screenshots:
        shutil.copyfile(Path(screenshots_dir) / name, baseline_dir / name)
        logger.info(f"Copied: {name}")

    logger.info(f"Updated {len(screenshots)} baseline screenshots")
    return len(screenshots)


def clear_directory(directory: Path) -> int:
    """Remove everything inside a directory, keeping the directory itself."""
    directory = Path(directory)
    if not directory.exists():
        return 0

    entries = list(directory.iterdir())
    for entry in entries:
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()

    logger.info(f"Cleared {len(entries)} files from {directory}")
    return len(entries)
