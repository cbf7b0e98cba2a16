"""
Ignore-region extraction from diff images.

The diff tool paints every differing pixel in a marker colour (magenta by
default). This module finds those pixels and turns them into a handful of
rectangles that can be passed back as ignore regions on the next comparison.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ColorBand:
    """Channel bounds for one accepted near-match of the diff marker.

    A pixel matches when R > min_red, G < max_green and B > min_blue.
    """

    min_red: int
    max_green: int
    min_blue: int


# Lossy recompression and anti-aliasing smear the #FF00FF marker, so a few
# progressively looser bands are accepted.
DEFAULT_DIFF_COLOR_BANDS: Tuple[ColorBand, ...] = (
    ColorBand(min_red=240, max_green=50, min_blue=240),
    ColorBand(min_red=200, max_green=100, min_blue=150),
    ColorBand(min_red=200, max_green=150, min_blue=200),
)


@dataclass
class RegionExtractionConfig:
    """Configuration for ignore-region extraction."""

    # Height of the horizontal bands used for clustering
    band_height: int = 10

    # A band qualifies when it holds more than this share of all diff pixels
    band_share: float = 0.1

    # Pixels within this distance (exclusive) of the band start form its vicinity
    vicinity: int = 15

    # The vicinity needs more than this many pixels to yield a region
    min_band_pixels: int = 50

    # Margin added around band regions before clamping to the image
    padding: int = 5

    # Regions with area at or below this are dropped
    min_area: int = 100

    # Maximum number of regions returned
    max_regions: int = 5

    color_bands: Tuple[ColorBand, ...] = field(default=DEFAULT_DIFF_COLOR_BANDS)


@dataclass(frozen=True)
class DiffRegion:
    """A rectangular area in image coordinates (x, y, width, height)."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def contains(self, other: "DiffRegion") -> bool:
        """True when ``other`` lies entirely inside this region."""
        return (
            self.x <= other.x
            and self.y <= other.y
            and self.x + self.width >= other.x + other.width
            and self.y + self.height >= other.y + other.height
        )

    def to_corners(self) -> Tuple[int, int, int, int]:
        """Return (x1, y1, x2, y2) with an exclusive bottom-right corner."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_flag(self) -> str:
        return f"{self.x},{self.y},{self.width},{self.height}"


def _as_rgba(image: np.ndarray) -> np.ndarray:
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(f"Expected an RGB or RGBA raster, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise ValueError(f"Diff image has zero size: {image.shape}")
    return image


def diff_pixel_mask(
    image: np.ndarray,
    color_bands: Tuple[ColorBand, ...] = DEFAULT_DIFF_COLOR_BANDS,
) -> np.ndarray:
    """
    Classify every pixel of a raster against the diff marker colour.

    Args:
        image: uint8 array of shape (height, width, 4) or (height, width, 3)
        color_bands: accepted near-match bands

    Returns:
        Boolean array of shape (height, width)
    """
    image = _as_rgba(image)

    # Widen to avoid uint8 comparisons wrapping on odd inputs
    r = image[..., 0].astype(np.int16)
    g = image[..., 1].astype(np.int16)
    b = image[..., 2].astype(np.int16)

    mask = np.zeros(image.shape[:2], dtype=bool)
    for band in color_bands:
        mask |= (r > band.min_red) & (g < band.max_green) & (b > band.min_blue)

    if image.shape[2] == 4:
        mask &= image[..., 3] > 0

    return mask


def find_diff_pixels(
    image: np.ndarray,
    config: Optional[RegionExtractionConfig] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return the (xs, ys) coordinates of diff pixels in row-major order."""
    if config is None:
        config = RegionExtractionConfig()

    mask = diff_pixel_mask(image, config.color_bands)
    ys, xs = np.nonzero(mask)
    return xs, ys


def _tight_bbox(xs: np.ndarray, ys: np.ndarray) -> Tuple[int, int, int, int]:
    return int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())


def find_bounding_regions(
    xs: np.ndarray,
    ys: np.ndarray,
    image_width: int,
    image_height: int,
    config: Optional[RegionExtractionConfig] = None,
) -> List[DiffRegion]:
    """
    Cluster diff pixel coordinates into candidate ignore regions.

    The first candidate is always the overall bounding box. Horizontal bands
    that hold a large share of the diff pixels (status bars, home indicators)
    add a padded box around their vicinity. Small and redundant candidates
    are then dropped.

    Args:
        xs: x coordinates of diff pixels
        ys: y coordinates of diff pixels, same length as ``xs``
        image_width: raster width, used for clamping
        image_height: raster height, used for clamping
        config: extraction configuration (uses defaults if None)

    Returns:
        At most ``config.max_regions`` regions, overall box first, then
        band regions in ascending band order
    """
    if config is None:
        config = RegionExtractionConfig()

    total = len(xs)
    if total == 0:
        return []

    min_x, min_y, max_x, max_y = _tight_bbox(xs, ys)
    candidates = [DiffRegion(min_x, min_y, max_x - min_x + 1, max_y - min_y + 1)]

    band_starts = (ys // config.band_height) * config.band_height
    bands, counts = np.unique(band_starts, return_counts=True)

    for band, count in zip(bands.tolist(), counts.tolist()):
        if count <= total * config.band_share:
            continue

        in_vicinity = np.abs(ys - band) < config.vicinity
        vicinity_count = int(np.count_nonzero(in_vicinity))
        if vicinity_count <= config.min_band_pixels:
            continue

        bx0, by0, bx1, by1 = _tight_bbox(xs[in_vicinity], ys[in_vicinity])
        left = max(0, bx0 - config.padding)
        top = max(0, by0 - config.padding)
        right = min(image_width, bx1 + 1 + config.padding)
        bottom = min(image_height, by1 + 1 + config.padding)
        candidates.append(DiffRegion(left, top, right - left, bottom - top))

        logger.debug(f"Band y={band}: {count} pixels, {vicinity_count} in vicinity")

    sized = [region for region in candidates if region.area > config.min_area]
    unique = _drop_contained(sized)

    logger.debug(
        f"{total} diff pixels -> {len(candidates)} candidates -> "
        f"{len(sized)} above min area -> {len(unique)} non-redundant"
    )

    return unique[:config.max_regions]


def _drop_contained(regions: List[DiffRegion]) -> List[DiffRegion]:
    """Remove regions contained in another region; identical ones keep the first."""
    kept = []
    for i, region in enumerate(regions):
        redundant = False
        for j, other in enumerate(regions):
            if i == j or not other.contains(region):
                continue
            if other == region and j > i:
                continue
            redundant = True
            break
        if not redundant:
            kept.append(region)
    return kept


def extract_diff_regions(
    image: np.ndarray,
    config: Optional[RegionExtractionConfig] = None,
) -> List[DiffRegion]:
    """
    Extract suggested ignore regions from a decoded diff image.

    Args:
        image: uint8 RGBA (or RGB) array of shape (height, width, channels)
        config: extraction configuration (uses defaults if None)

    Returns:
        Ordered list of regions; empty when no diff pixels are found

    Raises:
        ValueError: if the array is not a non-empty RGB/RGBA raster
    """
    if config is None:
        config = RegionExtractionConfig()

    image = _as_rgba(image)
    height, width = image.shape[:2]

    xs, ys = find_diff_pixels(image, config)
    logger.debug(f"Found {len(xs)} diff pixels in {width}x{height} image")

    return find_bounding_regions(xs, ys, width, height, config)
