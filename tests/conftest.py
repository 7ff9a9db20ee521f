import asyncio
import random
from typing import List, Tuple

import pytest

from tracker.config import TrackerConfig
from tracker.persistence import MemoryStore
from tracker.progress_tracker import ProgressTracker
from tracker.status_source import SimulatedStatusSource

START_MS = 1_700_000_000_000


class VirtualTime:
    """Manually advanced clock and sleep for driving the recurring checks"""

    def __init__(self, start_ms: int = START_MS):
        self.now_ms = start_ms
        self.sleepers: List[Tuple[int, asyncio.Future]] = []
        self.sleep_calls: List[float] = []

    def clock(self) -> int:
        return self.now_ms

    async def sleep(self, delay: float):
        self.sleep_calls.append(delay)
        future = asyncio.get_running_loop().create_future()
        entry = (self.now_ms + int(delay * 1000), future)
        self.sleepers.append(entry)
        try:
            await future
        finally:
            if entry in self.sleepers:
                self.sleepers.remove(entry)

    async def settle(self):
        for _ in range(20):
            await asyncio.sleep(0)

    async def advance(self, seconds: float):
        target = self.now_ms + int(seconds * 1000)
        while True:
            await self.settle()
            due = sorted(
                (entry for entry in self.sleepers if entry[0] <= target and not entry[1].done()),
                key=lambda entry: entry[0]
            )
            if not due:
                break
            wake_at, future = due[0]
            self.now_ms = max(self.now_ms, wake_at)
            future.set_result(None)
        self.now_ms = target
        await self.settle()


@pytest.fixture
def vtime():
    return VirtualTime()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def status_source(vtime):
    return SimulatedStatusSource(latency=1.0, rng=random.Random(1234), sleep=vtime.sleep)


@pytest.fixture
def tracker(store, status_source, vtime):
    return ProgressTracker(
        store=store,
        status_source=status_source,
        config=TrackerConfig(),
        clock=vtime.clock,
        sleep=vtime.sleep
    )
