"""Tests for loading diff images and rendering region previews."""

import numpy as np
import pytest
from PIL import Image

from rn_storybook_test.regions.analysis import (
    DiffImageError,
    analyze_diff_image,
    list_diff_images,
    load_diff_image,
    story_name_from_diff,
)
from rn_storybook_test.regions.detection import DiffRegion
from rn_storybook_test.regions.rendering import draw_regions, render_region_preview

from helpers.image_factory import MAGENTA, blank_image, diff_image, paint_rect, save_png

RED = [255, 0, 0, 255]


class TestLoadDiffImage:
    def test_loads_png_as_rgba(self, tmp_path):
        path = save_png(diff_image(8, 6, [(1, 1)]), tmp_path / "diff_a.png")
        pixels = load_diff_image(path)
        assert pixels.shape == (6, 8, 4)
        assert pixels[1, 1].tolist() == list(MAGENTA)

    def test_rgb_png_gets_alpha(self, tmp_path):
        path = tmp_path / "diff_rgb.png"
        Image.new("RGB", (4, 4), (255, 0, 255)).save(path)
        assert load_diff_image(path)[0, 0].tolist() == [255, 0, 255, 255]

    def test_rejects_non_png(self, tmp_path):
        path = tmp_path / "diff_a.png"
        path.write_bytes(b"GIF89a not a png")
        with pytest.raises(DiffImageError, match="not a valid PNG"):
            load_diff_image(path)

    def test_rejects_truncated_png(self, tmp_path):
        path = tmp_path / "diff_a.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n")
        with pytest.raises(DiffImageError):
            load_diff_image(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DiffImageError):
            load_diff_image(tmp_path / "missing.png")


class TestDiffListing:
    def test_lists_only_diff_pngs_sorted(self, tmp_path):
        for name in ["diff_b.png", "diff_a.png", "a.png", "diff_c.jpg", "preview_ignore_regions_a.png"]:
            (tmp_path / name).write_bytes(b"")
        assert [p.name for p in list_diff_images(tmp_path)] == ["diff_a.png", "diff_b.png"]

    def test_story_name(self, tmp_path):
        assert story_name_from_diff(tmp_path / "diff_Forms-Button---Primary.png") == "Forms-Button---Primary"


class TestDrawRegions:
    def test_outline_is_drawn_inside_region(self):
        image = blank_image(50, 50)
        result = draw_regions(image, [DiffRegion(10, 10, 20, 20)])

        assert result[10, 15].tolist() == RED
        assert result[11, 15].tolist() == RED
        assert result[29, 15].tolist() == RED
        assert result[20, 20].tolist() == [255, 255, 255, 255]
        assert result[9, 15].tolist() == [255, 255, 255, 255]

    def test_source_image_untouched(self):
        image = blank_image(20, 20)
        draw_regions(image, [DiffRegion(0, 0, 20, 20)])
        assert (image == 255).all()

    def test_region_at_image_edge_is_visible(self):
        image = blank_image(100, 100)
        result = draw_regions(image, [DiffRegion(0, 85, 100, 11)])
        assert result[85, 50].tolist() == RED
        assert result[95, 50].tolist() == RED
        assert result[90, 99].tolist() == RED


class TestAnalyzeDiffImage:
    def test_regions_and_preview(self, tmp_path):
        diffs_dir = tmp_path / "diffs"
        screenshots_dir = tmp_path / "current"
        image = diff_image(100, 100, [(x, 90) for x in range(100)])
        diff_path = save_png(image, diffs_dir / "diff_story.png")
        save_png(blank_image(100, 100), screenshots_dir / "story.png")

        analysis = analyze_diff_image(diff_path, screenshots_dir)

        assert analysis.regions == [DiffRegion(0, 85, 100, 11)]
        assert analysis.preview_path == diffs_dir / "preview_ignore_regions_story.png"
        with Image.open(analysis.preview_path) as preview:
            pixels = np.array(preview.convert("RGBA"))
        assert pixels[85, 50].tolist() == RED

    def test_missing_original_skips_preview(self, tmp_path):
        image = paint_rect(blank_image(100, 100), 10, 10, 20, 20)
        diff_path = save_png(image, tmp_path / "diff_story.png")

        analysis = analyze_diff_image(diff_path, tmp_path / "nowhere")

        assert analysis.regions == [DiffRegion(5, 5, 30, 30)]
        assert analysis.preview_path is None

    def test_undecodable_diff_yields_empty_analysis(self, tmp_path):
        diff_path = tmp_path / "diff_story.png"
        diff_path.write_bytes(b"garbage")

        analysis = analyze_diff_image(diff_path, tmp_path)
        assert analysis.regions == []
        assert analysis.preview_path is None

    def test_clean_diff_has_no_regions(self, tmp_path):
        diff_path = save_png(blank_image(30, 30), tmp_path / "diff_story.png")
        assert analyze_diff_image(diff_path, tmp_path).regions == []


def test_render_region_preview_writes_png(tmp_path):
    original = save_png(blank_image(40, 40), tmp_path / "story.png")
    output = tmp_path / "preview.png"

    assert render_region_preview(original, [DiffRegion(0, 0, 40, 40)], output) == output
    with Image.open(output) as preview:
        assert preview.size == (40, 40)
        assert preview.getpixel((0, 20)) == (255, 0, 0, 255)
