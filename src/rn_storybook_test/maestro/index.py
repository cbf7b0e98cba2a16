"""Reading the Storybook story index."""

from __future__ import annotations

import json
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..logging import get_logger

logger = get_logger(__name__)

SKIP_TAG = "skip-screenshot"


class StoryIndexError(Exception):
    """Raised when the story index cannot be built or read."""


@dataclass(frozen=True)
class StoryEntry:
    """A single story from the Storybook index."""
    id: str
    title: str
    name: str
    type: str = "story"
    tags: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """``Forms/Button`` + ``Primary`` -> ``Forms-Button - Primary``."""
        return f"{self.title.replace('/', '-')} - {self.name}"

    @property
    def screenshot_name(self) -> str:
        return self.display_name.replace(" ", "-")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StoryEntry:
        try:
            return cls(
                id=data["id"],
                title=data["title"],
                name=data["name"],
                type=data.get("type", "story"),
                tags=list(data.get("tags") or []),
            )
        except KeyError as exc:
            raise StoryIndexError(f"Index entry missing field {exc}: {data!r}") from exc


def read_index_file(index_file: Path) -> List[StoryEntry]:
    """Parse a Storybook ``index.json`` into entries, keeping index order."""
    try:
        data = json.loads(Path(index_file).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise StoryIndexError(f"Failed to read story index {index_file}: {exc}") from exc

    entries = data.get("entries") if isinstance(data, dict) else None
    if not isinstance(entries, dict):
        raise StoryIndexError(f"Story index {index_file} has no 'entries' mapping")

    return [StoryEntry.from_dict(entry) for entry in entries.values()]


def build_index_file(config_dir: Path, output_file: Path) -> Path:
    """Ask the Storybook CLI to write ``index.json`` for a config directory."""
    command = [
        "npx", "storybook", "index",
        "--config-dir", str(config_dir),
        "--output-file", str(output_file),
    ]
    logger.info(f"Building story index from: {config_dir}")
    try:
        completed = subprocess.run(command, capture_output=True, text=True)
    except OSError as exc:
        raise StoryIndexError(f"Failed to run Storybook CLI: {exc}") from exc

    if completed.returncode != 0:
        message = (completed.stderr or completed.stdout or "").strip()
        raise StoryIndexError(f"storybook index failed ({completed.returncode}): {message}")
    return Path(output_file)


def load_story_index(config_dir: Path, index_file: Optional[Path] = None) -> List[StoryEntry]:
    """
    Load all index entries for a Storybook project.

    Args:
        config_dir: Storybook config directory (e.g. ``.rnstorybook``)
        index_file: prebuilt ``index.json``; built with the Storybook CLI if None

    Returns:
        Entries in index order

    Raises:
        StoryIndexError: if the index cannot be built or parsed
    """
    if index_file is not None:
        return read_index_file(index_file)

    with tempfile.TemporaryDirectory() as temp_dir:
        built = build_index_file(config_dir, Path(temp_dir) / "index.json")
        return read_index_file(built)


def select_stories(entries: List[StoryEntry]) -> List[StoryEntry]:
    """Stories that should be screenshotted (docs and skip-tagged entries excluded)."""
    return [
        entry for entry in entries
        if entry.type == "story" and SKIP_TAG not in entry.tags
    ]
