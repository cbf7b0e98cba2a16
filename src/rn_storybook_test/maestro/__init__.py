"""Maestro test generation from the Storybook story index."""

from .index import StoryEntry, StoryIndexError, load_story_index, read_index_file, select_stories
from .generator import build_flow_steps, generate_maestro_flow, write_maestro_test

__all__ = [
    "StoryEntry",
    "StoryIndexError",
    "load_story_index",
    "read_index_file",
    "select_stories",
    "build_flow_steps",
    "generate_maestro_flow",
    "write_maestro_test",
]
