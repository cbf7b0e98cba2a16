"""Loading diff images from disk and turning them into ignore-region suggestions."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import numpy as np
from PIL import Image

from ..logging import get_logger
from .detection import DiffRegion, RegionExtractionConfig, extract_diff_regions
from .rendering import render_region_preview

logger = get_logger(__name__)

PNG_SIGNATURE = b"\x89PNG"
DIFF_PREFIX = "diff_"
PREVIEW_PREFIX = "preview_ignore_regions_"


class DiffImageError(Exception):
    """Raised when a diff image cannot be read or decoded."""


@dataclass(frozen=True)
class DiffAnalysis:
    """Result of analysing one diff image."""
    diff_path: Path
    regions: List[DiffRegion] = field(default_factory=list)
    preview_path: Optional[Path] = None


def list_diff_images(diffs_dir: Path) -> List[Path]:
    """Return ``diff_*.png`` files in a directory, sorted by name."""
    return sorted(
        path for path in Path(diffs_dir).iterdir()
        if path.is_file() and path.name.startswith(DIFF_PREFIX) and path.suffix == ".png"
    )


def story_name_from_diff(diff_path: Path) -> str:
    """``diff_Button-Primary.png`` -> ``Button-Primary``."""
    return Path(diff_path).stem.replace(DIFF_PREFIX, "", 1)


def load_diff_image(path: Path) -> np.ndarray:
    """
    Read a PNG diff image as an RGBA array.

    Raises:
        DiffImageError: if the file is missing, not a PNG, or cannot be decoded
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DiffImageError(f"Cannot read diff image {path}: {exc}") from exc

    if not data.startswith(PNG_SIGNATURE):
        raise DiffImageError(f"File is not a valid PNG image: {path}")

    try:
        with Image.open(path) as img:
            return np.array(img.convert("RGBA"))
    except Exception as exc:
        raise DiffImageError(f"Failed to decode PNG {path}: {exc}") from exc


def analyze_diff_image(
    diff_path: Path,
    screenshots_dir: Path,
    config: Optional[RegionExtractionConfig] = None,
) -> DiffAnalysis:
    """
    Extract ignore regions from a diff image and render a preview.

    The preview is written beside the diff image when the screenshot the diff
    was produced from can be found in ``screenshots_dir``. A diff image that
    cannot be decoded yields an empty analysis rather than an error.
    """
    diff_path = Path(diff_path)

    try:
        pixels = load_diff_image(diff_path)
    except DiffImageError as exc:
        logger.warning(f"Could not analyze {diff_path}: {exc}")
        return DiffAnalysis(diff_path=diff_path)

    logger.info(f"Image dimensions: {pixels.shape[1]}x{pixels.shape[0]}")
    regions = extract_diff_regions(pixels, config)

    if not regions:
        logger.info(f"No diff pixels found in {diff_path.name}")
        return DiffAnalysis(diff_path=diff_path)

    original_path = Path(screenshots_dir) / diff_path.name.replace(DIFF_PREFIX, "", 1)
    if not original_path.exists():
        logger.warning(f"Original image not found at {original_path}, preview skipped")
        return DiffAnalysis(diff_path=diff_path, regions=regions)

    preview_path = diff_path.with_name(diff_path.name.replace(DIFF_PREFIX, PREVIEW_PREFIX, 1))
    try:
        render_region_preview(original_path, regions, preview_path)
    except (OSError, ValueError) as exc:
        logger.warning(f"Could not generate preview image: {exc}")
        return DiffAnalysis(diff_path=diff_path, regions=regions)

    return DiffAnalysis(diff_path=diff_path, regions=regions, preview_path=preview_path)
