"""Maestro flow generation for Storybook stories."""

from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..logging import get_logger
from .index import StoryEntry, StoryIndexError

logger = get_logger(__name__)

FLOW_NAME = "Take screenshots of all Storybook stories"


def build_flow_steps(
    stories: List[StoryEntry],
    app_id: str,
    base_uri: str,
    screenshots_path: str,
) -> List[Dict[str, Any]]:
    """Maestro commands that open each story by deep link and screenshot it."""
    steps: List[Dict[str, Any]] = [{"stopApp": app_id}]
    for story in stories:
        steps.extend([
            {"openLink": f"{base_uri}?STORYBOOK_STORY_ID={story.id}"},
            "waitForAnimationToEnd",
            {"assertVisible": {"id": story.id}},
            {"takeScreenshot": f"{screenshots_path}/{story.screenshot_name}"},
        ])
    return steps


def generate_maestro_flow(
    stories: List[StoryEntry],
    app_id: str,
    base_uri: str,
    screenshots_path: str = "screenshots",
) -> str:
    """Render the flow as Maestro YAML: a config document, then the commands."""
    header = {"appId": app_id, "name": FLOW_NAME}
    steps = build_flow_steps(stories, app_id, base_uri, screenshots_path)
    return yaml.safe_dump_all(
        [header, steps],
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=1000,
    )


def write_maestro_test(
    stories: List[StoryEntry],
    output_dir: Path,
    app_id: str,
    base_uri: str,
    test_name: str,
    screenshots_path: str = "screenshots",
) -> Path:
    """
    Write ``<output_dir>/<test_name>.yaml``.

    Raises:
        StoryIndexError: if there are no stories to screenshot
    """
    if not stories:
        raise StoryIndexError(
            "No stories found. Make sure your Storybook config directory is correct."
        )

    logger.info(f"Found {len(stories)} stories")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    test_path = output_dir / f"{test_name}.yaml"
    test_path.write_text(
        generate_maestro_flow(stories, app_id, base_uri, screenshots_path),
        encoding="utf-8",
    )

    logger.info(f"Generated Maestro test file: {test_path}")
    return test_path
