"""Parsing and formatting of the ``--ignore-regions`` flag value."""

from typing import Iterable, List

from ..logging import get_logger
from .detection import DiffRegion

logger = get_logger(__name__)

FLAG_FORMAT_HINT = 'Expected format: "x,y,w,h;x2,y2,w2,h2" (semicolon-separated regions)'


class IgnoreRegionFormatError(ValueError):
    """Raised when a single region in the flag value is malformed."""


def _parse_region(text: str) -> DiffRegion:
    parts = [part.strip() for part in text.strip().split(",")]
    if len(parts) != 4:
        raise IgnoreRegionFormatError(
            f'Invalid region format: "{text}". Expected "x,y,width,height"'
        )
    try:
        x, y, width, height = (int(part) for part in parts)
    except ValueError as exc:
        raise IgnoreRegionFormatError(
            f'Invalid region format: "{text}". Expected "x,y,width,height"'
        ) from exc
    return DiffRegion(x=x, y=y, width=width, height=height)


def parse_ignore_regions(text: str) -> List[DiffRegion]:
    """
    Parse ``"x,y,w,h;x2,y2,w2,h2"`` into regions.

    A blank value yields no regions. A malformed value is logged and also
    yields no regions, so a typo never aborts a comparison run.
    """
    if not text or not text.strip():
        return []

    try:
        regions = [_parse_region(part) for part in text.split(";")]
    except IgnoreRegionFormatError as exc:
        logger.error(f"Error parsing ignore regions: {exc}")
        logger.error(FLAG_FORMAT_HINT)
        return []

    logger.info(f"Parsed {len(regions)} custom ignore regions")
    for index, region in enumerate(regions, start=1):
        logger.info(
            f"   Region {index}: x={region.x}, y={region.y}, w={region.width}, h={region.height}"
        )
    return regions


def format_ignore_regions(regions: Iterable[DiffRegion]) -> str:
    return ";".join(region.to_flag() for region in regions)


def valid_ignore_regions(regions: Iterable[DiffRegion]) -> List[DiffRegion]:
    """Keep regions with a non-negative origin and positive size."""
    valid = []
    for region in regions:
        if region.x >= 0 and region.y >= 0 and region.width > 0 and region.height > 0:
            valid.append(region)
        else:
            logger.warning(
                f"Invalid ignore region: x={region.x}, y={region.y}, "
                f"w={region.width}, h={region.height}"
            )
    return valid
