"""
Shared fakes for the capture pipeline tests.
"""

import asyncio
import threading

import numpy as np
import pytest

from ocr_processor import RecognitionResult


def make_checkerboard(width=320, height=240):
    """BGR frame with pixels alternating 0/255."""
    board = (np.indices((height, width)).sum(axis=0) % 2 * 255).astype(np.uint8)
    return np.dstack([board, board, board])


def make_uniform(value, width=320, height=240):
    return np.full((height, width, 3), value, dtype=np.uint8)


class FakeFrameSource:
    def __init__(self, frame=None):
        self.frame = frame
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.frame is None:
            return False, None
        return True, self.frame.copy()


class FakeEngine:
    def __init__(self, text="HELLO", confidence=0.9, ready=True, error=None):
        self.text = text
        self.confidence = confidence
        self._ready = ready
        self.error = error
        self.calls = []

    def ready(self):
        return self._ready

    def recognize(self, image):
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        return RecognitionResult(self.text, self.confidence)


class BlockingEngine(FakeEngine):
    """recognize() blocks in the executor thread until release is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def recognize(self, image):
        self.started.set()
        self.release.wait(timeout=5)
        return super().recognize(image)


class RecordingNotifier:
    def __init__(self):
        self.notices = []

    def notify(self, message, level="error"):
        self.notices.append((message, level))


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def checkerboard():
    return make_checkerboard()


@pytest.fixture
def frame_source(checkerboard):
    return FakeFrameSource(checkerboard)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return FakeClock()
