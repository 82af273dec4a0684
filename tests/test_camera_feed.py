"""
Tests for camera_feed.py

Camera acquisition, release and the facing switch, with a fake VideoCapture.
"""

import pytest

import camera_feed
from camera_feed import CameraSource, VideoStream
from conftest import make_checkerboard
from errors import DeviceUnavailable, PermissionDenied


@pytest.fixture(autouse=True)
def no_warmup(monkeypatch):
    monkeypatch.setattr(camera_feed, "CAMERA_WARMUP_TIME", 0)


class FakeCapture:
    def __init__(self, src, opened=True, frame=None):
        self.src = src
        self.opened = opened
        self.frame = frame if frame is not None else make_checkerboard(64, 48)
        self.released = False

    def isOpened(self):
        return self.opened and not self.released

    def read(self):
        if not self.isOpened():
            return False, None
        return True, self.frame

    def release(self):
        self.released = True


class FakeDevices:
    """capture_factory that records every capture it opens."""

    def __init__(self, broken=(), denied=()):
        self.broken = set(broken)
        self.denied = set(denied)
        self.opened = []
        self.events = []

    def __call__(self, src):
        if src in self.denied:
            raise PermissionError(f"camera {src}: not authorized")
        capture = FakeCapture(src, opened=src not in self.broken)
        original_release = capture.release

        def release():
            self.events.append(("release", src))
            original_release()

        capture.release = release
        self.opened.append(capture)
        self.events.append(("open", src))
        return capture


class TestVideoStream:
    def test_reads_latest_frame(self):
        stream = VideoStream(0, capture_factory=FakeDevices())
        try:
            assert stream.is_initialized()
            assert stream.is_ready()
            ok, frame = stream.read()
            assert ok
            assert frame.shape == (48, 64, 3)
        finally:
            stream.stop()

    def test_read_returns_copy(self):
        stream = VideoStream(0, capture_factory=FakeDevices())
        try:
            _, frame = stream.read()
            frame[:] = 7
            _, again = stream.read()
            assert again.max() == 255
        finally:
            stream.stop()

    def test_unopened_device(self):
        devices = FakeDevices(broken={0})
        stream = VideoStream(0, capture_factory=devices)
        assert not stream.is_initialized()
        assert stream.read() == (False, None)
        assert devices.opened[0].released

    def test_stop_releases(self):
        devices = FakeDevices()
        stream = VideoStream(0, capture_factory=devices)
        stream.stop()
        assert devices.opened[0].released
        assert not stream.is_ready()


class TestCameraSource:
    def test_acquire_and_release(self):
        devices = FakeDevices()
        camera = CameraSource({"environment": 0, "user": 1}, capture_factory=devices)

        stream = camera.acquire("environment")
        assert camera.stream is stream
        assert camera.is_ready()
        assert camera.read()[0] is True

        camera.release()
        assert camera.stream is None
        assert devices.opened[0].released
        assert camera.read() == (False, None)

    def test_device_unavailable(self):
        camera = CameraSource({"environment": 0, "user": 1}, capture_factory=FakeDevices(broken={0}))
        with pytest.raises(DeviceUnavailable):
            camera.acquire("environment")
        assert camera.stream is None

    def test_permission_denied(self):
        camera = CameraSource({"environment": 0, "user": 1}, capture_factory=FakeDevices(denied={0}))
        with pytest.raises(PermissionDenied):
            camera.acquire("environment")

    def test_unknown_facing(self):
        camera = CameraSource({"environment": 0}, capture_factory=FakeDevices())
        with pytest.raises(DeviceUnavailable):
            camera.acquire("user")

    def test_switch_releases_before_acquiring(self):
        devices = FakeDevices()
        camera = CameraSource({"environment": 0, "user": 1}, capture_factory=devices)
        camera.acquire("environment")

        try:
            camera.switch()
            assert camera.facing == "user"
            assert devices.events.index(("release", 0)) < devices.events.index(("open", 1))
        finally:
            camera.release()

    def test_failed_switch_leaves_previous_released(self):
        devices = FakeDevices(broken={1})
        camera = CameraSource({"environment": 0, "user": 1}, capture_factory=devices)
        camera.acquire("environment")

        with pytest.raises(DeviceUnavailable):
            camera.switch()

        assert devices.opened[0].released
        assert devices.opened[1].released
        assert camera.stream is None
        assert camera.facing == "user"
