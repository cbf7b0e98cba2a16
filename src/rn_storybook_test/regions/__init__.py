"""
Ignore-region detection for screenshot comparisons.

This module finds the areas painted by the diff tool in a diff image and
suggests rectangles to exclude from future comparisons.
"""

from .detection import (
    ColorBand,
    DiffRegion,
    RegionExtractionConfig,
    diff_pixel_mask,
    extract_diff_regions,
    find_bounding_regions,
    find_diff_pixels,
)
from .analysis import DiffAnalysis, DiffImageError, analyze_diff_image, list_diff_images, load_diff_image
from .flags import format_ignore_regions, parse_ignore_regions, valid_ignore_regions
from .rendering import draw_regions, render_region_preview

__all__ = [
    'ColorBand',
    'DiffRegion',
    'RegionExtractionConfig',
    'diff_pixel_mask',
    'extract_diff_regions',
    'find_bounding_regions',
    'find_diff_pixels',
    'DiffAnalysis',
    'DiffImageError',
    'analyze_diff_image',
    'list_diff_images',
    'load_diff_image',
    'format_ignore_regions',
    'parse_ignore_regions',
    'valid_ignore_regions',
    'draw_regions',
    'render_region_preview',
]
