import os
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_APP_ID = "host.exp.Exponent"
DEFAULT_BASE_URI = "exp://127.0.0.1:8081/--/"
DEFAULT_TOLERANCE = 2.5


@dataclass
class Settings:
    maestro_dir: Path = Path(".maestro")
    screenshots_root: Path = Path("screenshots")
    odiff_bin: str = field(default_factory=lambda: os.getenv("ODIFF_BIN", "odiff"))

    @property
    def maestro_screenshots_dir(self) -> Path:
        return self.maestro_dir / "screenshots"

    @property
    def maestro_baseline_dir(self) -> Path:
        return self.maestro_dir / "baseline"

    @property
    def maestro_diffs_dir(self) -> Path:
        return self.maestro_dir / "diffs"

    @property
    def ws_screenshots_dir(self) -> Path:
        return self.screenshots_root / "current"

    @property
    def ws_baseline_dir(self) -> Path:
        return self.screenshots_root / "baseline"

    @property
    def ws_diffs_dir(self) -> Path:
        return self.screenshots_root / "diffs"


def resolve_path(path: Path) -> Path:
    """Resolve a CLI path against the current working directory."""
    path = Path(path)
    if path.is_absolute():
        return path
    return Path.cwd() / path
