"""
Tests for the WebSocket snapshot session.

A real relay is started on an ephemeral local port. The React Native app is
played by a small websockets client that answers story changes the way the
Storybook runtime does. The simulator is a mock.
"""

import asyncio
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from websockets.asyncio.client import connect

from rn_storybook_test.maestro.index import StoryEntry
from rn_storybook_test.snapshot.session import (
    CURRENT_STORY_WAS_SET,
    SET_CURRENT_STORY,
    STORY_RENDERED,
    SnapshotOptions,
    SnapshotSession,
    StoryTimeoutError,
    encode_event,
    snapshot_stories,
)

STORIES = [
    StoryEntry(id="forms-button--primary", title="Forms/Button", name="Primary"),
    StoryEntry(id="card--basic", title="Card", name="Basic"),
]


def make_options(**overrides):
    values = dict(
        app_id="com.example",
        host="127.0.0.1",
        port=0,
        wait_time=2000,
        story_timeout=1.0,
        max_retries=2,
        retry_delay=0.01,
        ping_interval=60,
        settle_delay=0,
    )
    values.update(overrides)
    return SnapshotOptions(**values)


async def fake_app(url, seen):
    """Announce a first render, then acknowledge every story change."""
    async with connect(url) as ws:
        await ws.send(json.dumps({"type": STORY_RENDERED, "args": ["initial"]}))
        async for message in ws:
            event = json.loads(message)
            if event.get("type") != SET_CURRENT_STORY:
                continue
            story_id = event["args"][0]["storyId"]
            seen.append(story_id)
            await ws.send(json.dumps({"type": CURRENT_STORY_WAS_SET, "args": [{"storyId": story_id}]}))


class TestSnapshotOptions:
    def test_urls(self):
        assert make_options(port=7007).url() == "ws://127.0.0.1:7007"
        assert make_options(secured=True).url(9000) == "wss://127.0.0.1:9000"

    def test_encode_event(self):
        assert json.loads(encode_event(SET_CURRENT_STORY, {"storyId": "a"})) == {
            "type": SET_CURRENT_STORY,
            "args": [{"storyId": "a"}],
            "from": "manager",
        }


class TestRelay:
    def test_messages_are_rebroadcast_and_garbage_dropped(self):
        async def scenario():
            async with SnapshotSession(make_options(), simulator=MagicMock()) as session:
                url = session.options.url(session.port)
                async with connect(url) as sender, connect(url) as receiver:
                    await sender.send("not json")
                    await sender.send(json.dumps({"type": "custom", "args": [1]}))
                    message = await asyncio.wait_for(receiver.recv(), 2)
            return json.loads(message)

        assert asyncio.run(scenario()) == {"type": "custom", "args": [1]}


class TestSetStory:
    def test_story_acknowledged_by_app(self):
        async def scenario():
            seen = []
            async with SnapshotSession(make_options(), simulator=MagicMock()) as session:
                rendered = session.expect((STORY_RENDERED,))
                app = asyncio.create_task(fake_app(session.options.url(session.port), seen))
                await asyncio.wait_for(rendered, 2)

                await session.set_story(STORIES[0])
                app.cancel()
            return seen

        assert asyncio.run(scenario()) == ["forms-button--primary"]

    def test_unanswered_story_times_out_after_retries(self):
        async def scenario():
            options = make_options(story_timeout=0.05, max_retries=3)
            async with SnapshotSession(options, simulator=MagicMock()) as session:
                await session.set_story(STORIES[1])

        with pytest.raises(StoryTimeoutError, match="after 3 attempts: Card - Basic"):
            asyncio.run(scenario())

    def test_emit_requires_started_session(self):
        session = SnapshotSession(make_options(), simulator=MagicMock())
        with pytest.raises(RuntimeError):
            asyncio.run(session.emit(SET_CURRENT_STORY, {"storyId": "x"}))


class TestRun:
    """End-to-end capture with a mocked simulator."""

    def test_captures_every_story(self, tmp_path):
        simulator = MagicMock()
        simulator.boot_best.return_value = "UDID-1"
        seen = []

        async def scenario():
            session = SnapshotSession(make_options(wait_time=300), simulator=simulator)

            async def app_when_ready():
                while not session.is_running:
                    await asyncio.sleep(0.01)
                await fake_app(session.options.url(session.port), seen)

            app = asyncio.create_task(app_when_ready())
            try:
                return await session.run(STORIES, tmp_path)
            finally:
                app.cancel()

        paths = asyncio.run(scenario())

        assert paths == [tmp_path / "forms-button--primary.png", tmp_path / "card--basic.png"]
        assert seen == ["forms-button--primary", "card--basic"]
        assert [c.args[0] for c in simulator.screenshot.call_args_list] == paths
        simulator.ensure_installed.assert_called_once_with("com.example")
        simulator.launch.assert_called_once_with("com.example")
        simulator.open_url.assert_not_called()
        assert simulator.terminate.call_count == 2

    def test_deep_link_is_opened_instead_of_launch(self, tmp_path):
        simulator = MagicMock()
        options = make_options(deep_link="exp://127.0.0.1:8081", wait_time=50)

        paths = snapshot_stories([], tmp_path, options, simulator=simulator)

        assert paths == []
        simulator.open_url.assert_called_once_with("exp://127.0.0.1:8081")
        simulator.launch.assert_not_called()

    def test_session_is_stopped_on_failure(self, tmp_path):
        simulator = MagicMock()
        simulator.boot_best.side_effect = RuntimeError("no simulator")
        session = SnapshotSession(make_options(), simulator=simulator)

        with pytest.raises(RuntimeError):
            asyncio.run(session.run(STORIES, Path(tmp_path)))
        assert not session.is_running
