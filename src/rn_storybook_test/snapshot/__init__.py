"""Screenshot capture over the Storybook WebSocket channel (iOS Simulator)."""

from .session import SnapshotOptions, SnapshotSession, StoryTimeoutError, encode_event, snapshot_stories

__all__ = [
    "SnapshotOptions",
    "SnapshotSession",
    "StoryTimeoutError",
    "encode_event",
    "snapshot_stories",
]
