"""
Screenshot capture driven over the Storybook WebSocket channel.

The React Native Storybook app connects to a local relay server. The session
joins the same relay as the "manager" page, switches stories with Storybook
channel events and captures each rendered story from the simulator.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from websockets.asyncio.client import ClientConnection, connect
from websockets.asyncio.server import Server, ServerConnection, broadcast, serve
from websockets.exceptions import ConnectionClosed

from ..logging import get_logger
from ..maestro.index import StoryEntry
from ..simulator.simctl import Simulator

logger = get_logger(__name__)

# Storybook core channel events
SET_CURRENT_STORY = "setCurrentStory"
CURRENT_STORY_WAS_SET = "currentStoryWasSet"
STORY_RENDERED = "storyRendered"
PING = "ping"

CHANNEL_PAGE = "manager"


class StoryTimeoutError(Exception):
    """Raised when a story is not set or rendered in time."""


@dataclass
class SnapshotOptions:
    app_id: str
    host: str = "localhost"
    port: int = 7007
    secured: bool = False
    wait_time: int = 2000  # ms to wait for the app before the first story
    deep_link: Optional[str] = None
    story_timeout: float = 5.0
    max_retries: int = 3
    retry_delay: float = 0.5
    ping_interval: float = 5.0
    settle_delay: float = 0.1

    def url(self, port: Optional[int] = None) -> str:
        scheme = "wss" if self.secured else "ws"
        return f"{scheme}://{self.host}:{port or self.port}"


def encode_event(event_type: str, *args: Any) -> str:
    return json.dumps({"type": event_type, "args": list(args), "from": CHANNEL_PAGE})


def _event_story_id(event: Dict[str, Any]) -> Optional[str]:
    args = event.get("args") or []
    if args and isinstance(args[0], dict):
        return args[0].get("storyId")
    return None


class SnapshotSession:
    """
    Owns the relay server, the manager channel and the simulator for one run.

    Use as an async context manager or call ``start``/``stop`` explicitly.
    """

    def __init__(self, options: SnapshotOptions, simulator: Optional[Simulator] = None) -> None:
        self.options = options
        self.simulator = simulator or Simulator()
        self.port = options.port
        self._server: Optional[Server] = None
        self._channel: Optional[ClientConnection] = None
        self._tasks: List[asyncio.Task] = []
        self._listeners: List[Tuple[Callable[[Dict[str, Any]], bool], asyncio.Future]] = []

    @property
    def is_running(self) -> bool:
        return self._server is not None

    async def start(self) -> None:
        if self.is_running:
            return

        self._server = await serve(self._relay, self.options.host, self.options.port)
        # Port 0 binds an ephemeral port
        self.port = self._server.sockets[0].getsockname()[1]
        logger.info(f"WebSocket server is ready on {self.options.host}:{self.port}")

        self._channel = await connect(self.options.url(self.port))
        self._tasks = [
            asyncio.create_task(self._read_channel()),
            asyncio.create_task(self._keep_alive()),
        ]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        if self._channel is not None:
            await self._channel.close()
            self._channel = None

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        for _, future in self._listeners:
            if not future.done():
                future.cancel()
        self._listeners = []

    async def __aenter__(self) -> SnapshotSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def _relay(self, connection: ServerConnection) -> None:
        """Re-broadcast every JSON message to all connected clients."""
        logger.info("websocket connection established")
        try:
            async for message in connection:
                try:
                    payload = json.loads(message)
                except (TypeError, ValueError):
                    logger.warning(f"error parsing message {message!r}")
                    continue
                broadcast(self._server.connections, json.dumps(payload))
        except ConnectionClosed as exc:
            logger.debug(f"websocket connection closed: {exc}")

    async def _keep_alive(self) -> None:
        message = json.dumps({"type": PING, "args": []})
        while True:
            await asyncio.sleep(self.options.ping_interval)
            if self._server is not None:
                broadcast(self._server.connections, message)

    async def _read_channel(self) -> None:
        try:
            async for message in self._channel:
                try:
                    event = json.loads(message)
                except (TypeError, ValueError):
                    continue
                if isinstance(event, dict):
                    self._dispatch(event)
        except ConnectionClosed as exc:
            logger.debug(f"channel closed: {exc}")

    def _dispatch(self, event: Dict[str, Any]) -> None:
        for predicate, future in list(self._listeners):
            if not future.done() and predicate(event):
                future.set_result(event)

    def expect(self, event_types: Tuple[str, ...], story_id: Optional[str] = None) -> asyncio.Future:
        """Future resolved by the next channel event matching type (and story id)."""
        future = asyncio.get_running_loop().create_future()

        def predicate(event: Dict[str, Any]) -> bool:
            if event.get("type") not in event_types:
                return False
            return story_id is None or _event_story_id(event) == story_id

        def forget(done: asyncio.Future) -> None:
            if (predicate, done) in self._listeners:
                self._listeners.remove((predicate, done))

        self._listeners.append((predicate, future))
        future.add_done_callback(forget)
        return future

    async def emit(self, event_type: str, *args: Any) -> None:
        if self._channel is None:
            raise RuntimeError("Snapshot session is not started")
        await self._channel.send(encode_event(event_type, *args))

    async def set_story(self, story: StoryEntry) -> None:
        """
        Switch the app to a story and wait until it is set or rendered.

        Raises:
            StoryTimeoutError: if every attempt times out
        """
        for attempt in range(1, self.options.max_retries + 1):
            waiter = self.expect((CURRENT_STORY_WAS_SET, STORY_RENDERED), story.id)
            await self.emit(SET_CURRENT_STORY, {"storyId": story.id})
            try:
                event = await asyncio.wait_for(waiter, self.options.story_timeout)
                logger.info(f"story {event['type']}: {story.id}")
                return
            except asyncio.TimeoutError:
                logger.warning(
                    f"Attempt {attempt}/{self.options.max_retries} failed for "
                    f"{story.title} - {story.name}"
                )

            if attempt < self.options.max_retries:
                await asyncio.sleep(self.options.retry_delay)

        raise StoryTimeoutError(
            f"Failed to set story after {self.options.max_retries} attempts: "
            f"{story.title} - {story.name} (timeout {self.options.story_timeout}s)"
        )

    async def snapshot_all(self, stories: List[StoryEntry], screenshots_dir: Path) -> List[Path]:
        paths = []
        for story in stories:
            logger.info(f"story {story.title} {story.name}")
            await self.set_story(story)

            path = Path(screenshots_dir) / f"{story.id}.png"
            await asyncio.to_thread(self.simulator.screenshot, path)
            paths.append(path)

            await asyncio.sleep(self.options.settle_delay)
        return paths

    async def prepare_device(self) -> asyncio.Future:
        """Boot the simulator and (re)start the app; returns a first-render waiter."""
        sim = self.simulator
        udid = await asyncio.to_thread(sim.boot_best)
        logger.info(f"Using simulator: {udid}")

        await asyncio.to_thread(sim.wait_until_booted)
        await asyncio.to_thread(sim.override_status_bar)
        await asyncio.to_thread(sim.ensure_installed, self.options.app_id)
        await asyncio.to_thread(sim.terminate, self.options.app_id)

        first_render = self.expect((STORY_RENDERED,))
        if self.options.deep_link:
            await asyncio.to_thread(sim.open_url, self.options.deep_link)
            await asyncio.sleep(1)
        else:
            await asyncio.to_thread(sim.launch, self.options.app_id)
        return first_render

    async def run(self, stories: List[StoryEntry], screenshots_dir: Path) -> List[Path]:
        """Full capture: start, prepare the device, screenshot every story, stop."""
        await self.start()
        try:
            first_render = await self.prepare_device()

            logger.info("Starting storybook testing")
            try:
                await asyncio.wait_for(first_render, self.options.wait_time / 1000)
                # extra moment for the dev client to settle
                await asyncio.sleep(0.25)
            except asyncio.TimeoutError:
                logger.debug("No story rendered before wait time elapsed")

            logger.info("Going through all stories")
            paths = await self.snapshot_all(stories, screenshots_dir)

            await asyncio.to_thread(self.simulator.terminate, self.options.app_id)
            return paths
        finally:
            await self.stop()


def snapshot_stories(
    stories: List[StoryEntry],
    screenshots_dir: Path,
    options: SnapshotOptions,
    simulator: Optional[Simulator] = None,
) -> List[Path]:
    """Blocking entry point for the CLI."""
    session = SnapshotSession(options, simulator)
    return asyncio.run(session.run(stories, screenshots_dir))
