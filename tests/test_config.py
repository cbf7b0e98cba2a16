import logging
from pathlib import Path

from hypothesis import given, strategies as st

from rn_storybook_test.config import Settings, resolve_path
from rn_storybook_test.logging import get_logger


class TestSettings:
    def test_default_values(self, monkeypatch):
        """Test that Settings has sensible defaults."""
        monkeypatch.delenv("ODIFF_BIN", raising=False)
        settings = Settings()
        assert settings.maestro_dir == Path(".maestro")
        assert settings.screenshots_root == Path("screenshots")
        assert settings.odiff_bin == "odiff"

    def test_odiff_bin_from_environment(self, monkeypatch):
        monkeypatch.setenv("ODIFF_BIN", "/opt/bin/odiff")
        assert Settings().odiff_bin == "/opt/bin/odiff"

    def test_directory_layouts(self):
        settings = Settings(maestro_dir=Path("out"), screenshots_root=Path("shots"))
        assert settings.maestro_screenshots_dir == Path("out/screenshots")
        assert settings.maestro_baseline_dir == Path("out/baseline")
        assert settings.maestro_diffs_dir == Path("out/diffs")
        assert settings.ws_screenshots_dir == Path("shots/current")
        assert settings.ws_baseline_dir == Path("shots/baseline")
        assert settings.ws_diffs_dir == Path("shots/diffs")


class TestResolvePath:
    def test_absolute_path_is_kept(self, tmp_path):
        assert resolve_path(tmp_path) == tmp_path

    @given(st.lists(st.sampled_from(["a", "b", "screens", ".maestro"]), min_size=1, max_size=4))
    def test_relative_paths_resolve_under_cwd(self, parts):
        """For any relative path, the result is absolute and rooted at the cwd."""
        resolved = resolve_path(Path(*parts))
        assert resolved.is_absolute()
        assert resolved == Path.cwd().joinpath(*parts)


class TestGetLogger:
    def test_cli_logger_defaults_to_info(self, monkeypatch):
        monkeypatch.delenv("RN_STORYBOOK_TEST_LOG_LEVEL", raising=False)
        assert get_logger("tests.logging_probe.cli").level == logging.INFO

    def test_library_logger_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("RN_STORYBOOK_TEST_LOG_LEVEL", "debug")
        assert get_logger("tests.logging_probe.library").level == logging.DEBUG

    def test_unknown_level_falls_back(self, monkeypatch):
        monkeypatch.setenv("RN_STORYBOOK_TEST_LOG_LEVEL", "chatty")
        assert get_logger("tests.logging_probe.fallback").level == logging.WARNING

    def test_handler_added_once(self):
        logger = get_logger("tests.logging_probe.once")
        assert get_logger("tests.logging_probe.once") is logger
        assert len(logger.handlers) == 1
