"""Thin wrapper around the ``odiff`` image comparison binary."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..logging import get_logger
from ..regions.detection import DiffRegion

logger = get_logger(__name__)

DIFF_COLOR = "#FF00FF"

# odiff exit codes
EXIT_MATCH = 0
EXIT_LAYOUT_DIFF = 21
EXIT_PIXEL_DIFF = 22


class OdiffError(Exception):
    """Raised when odiff cannot be run or reports an unexpected failure."""


@dataclass(frozen=True)
class OdiffResult:
    equal: bool
    diff_path: Optional[Path] = None


def format_ignore_argument(regions: Sequence[DiffRegion]) -> str:
    """Render regions as odiff's ``x1:y1-x2:y2,...`` ignore list."""
    parts = []
    for region in regions:
        x1, y1, x2, y2 = region.to_corners()
        parts.append(f"{x1}:{y1}-{x2}:{y2}")
    return ",".join(parts)


def build_command(
    baseline_path: Path,
    current_path: Path,
    diff_path: Path,
    tolerance: float,
    strict: bool,
    ignore_regions: Optional[Sequence[DiffRegion]] = None,
    odiff_bin: str = "odiff",
) -> List[str]:
    command = [
        odiff_bin,
        str(baseline_path),
        str(current_path),
        str(diff_path),
        f"--threshold={tolerance / 100}",
        f"--diff-color={DIFF_COLOR}",
    ]
    if not strict:
        command.append("--antialiasing")
    if ignore_regions:
        command.append(f"--ignore={format_ignore_argument(ignore_regions)}")
    return command


def compare_with_odiff(
    baseline_path: Path,
    current_path: Path,
    diff_path: Path,
    tolerance: float = 2.5,
    strict: bool = False,
    ignore_regions: Optional[Sequence[DiffRegion]] = None,
    odiff_bin: str = "odiff",
) -> OdiffResult:
    """
    Compare two images with odiff, writing a diff image on mismatch.

    Args:
        baseline_path: reference screenshot
        current_path: freshly captured screenshot
        diff_path: where odiff writes the diff image
        tolerance: colour difference threshold in percent
        strict: disable anti-aliasing detection
        ignore_regions: areas excluded from the comparison
        odiff_bin: odiff executable

    Returns:
        OdiffResult with ``diff_path`` set when the images differ

    Raises:
        OdiffError: if odiff is missing or exits with an unexpected code
    """
    command = build_command(
        baseline_path, current_path, diff_path, tolerance, strict, ignore_regions, odiff_bin
    )
    logger.debug(f"Running: {' '.join(command)}")

    try:
        completed = subprocess.run(command, capture_output=True, text=True)
    except OSError as exc:
        raise OdiffError(f"Failed to run {odiff_bin}: {exc}") from exc

    if completed.returncode == EXIT_MATCH:
        return OdiffResult(equal=True)
    if completed.returncode in (EXIT_LAYOUT_DIFF, EXIT_PIXEL_DIFF):
        return OdiffResult(equal=False, diff_path=Path(diff_path))

    message = (completed.stderr or completed.stdout or "").strip()
    raise OdiffError(f"odiff exited with code {completed.returncode}: {message}")
