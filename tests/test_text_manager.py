"""
Tests for text_manager.py and the still-image helpers in utils.py
"""

import os

import numpy as np
import pytest

from capture_coordinator import CaptureResult, CaptureSource, CaptureState
from conftest import FakeClock, make_checkerboard
from errors import CaptureError
from frame_sampler import region_of_interest
from text_manager import TextManager
from utils import decode_still, encode_still, save_still


class FakeClipboard:
    def __init__(self, fail=False):
        self.fail = fail
        self.copied = []

    def copy(self, text):
        if self.fail:
            raise RuntimeError("no display")
        self.copied.append(text)


def finished(text, confidence=0.8):
    return CaptureResult(image=b"jpeg", source=CaptureSource.MANUAL,
                         state=CaptureState.IDLE, text=text, confidence=confidence)


class TestTextManager:
    def test_show_and_clear(self):
        manager = TextManager(clipboard=FakeClipboard())
        manager.show_result(finished("HELLO"))
        assert manager.text == "HELLO"
        manager.clear_text()
        assert manager.text == ""
        assert manager.confidence is None

    def test_failed_result_clears_text(self):
        manager = TextManager(clipboard=FakeClipboard())
        manager.show_result(finished("HELLO"))
        manager.show_result(finished(None, None))
        assert manager.text == ""

    def test_copy(self):
        clipboard = FakeClipboard()
        manager = TextManager(clipboard=clipboard)
        manager.show_result(finished("HELLO"))
        assert manager.copy_text() is True
        assert clipboard.copied == ["HELLO"]

    def test_copy_failure_becomes_notice(self):
        manager = TextManager(clipboard=FakeClipboard(fail=True))
        assert manager.copy_text() is False
        assert manager.active_notices() == [("Copy failed", "error")]

    def test_notices_expire(self):
        clock = FakeClock()
        manager = TextManager(clipboard=FakeClipboard(), clock=clock)
        manager.notify("Camera is not available")
        assert manager.active_notices() == [("Camera is not available", "error")]
        clock.advance(10)
        assert manager.active_notices() == []

    def test_wraps_long_lines(self):
        manager = TextManager(clipboard=FakeClipboard())
        manager.show_result(finished("word " * 30 + "\n\nshort"))
        lines = manager.get_formatted_text_for_display(width=20)
        assert all(len(line) <= 20 for line in lines)
        assert lines[-1] == "short"

    def test_saves_text_to_file(self, tmp_path):
        path = tmp_path / "text.txt"
        manager = TextManager(clipboard=FakeClipboard(), save_to_file=True, text_file_path=str(path))
        manager.show_result(finished("HELLO"))
        content = path.read_text(encoding='utf-8')
        assert "New Session Started" in content
        assert "HELLO" in content

    def test_draw_overlay_keeps_frame_shape(self):
        frame = make_checkerboard(320, 240)
        manager = TextManager(clipboard=FakeClipboard())
        manager.notify("OCR failed")
        roi = region_of_interest(320, 240)
        out = manager.draw_overlay(frame, roi, ["Auto: OFF"], processing=True)
        assert out.shape == (240, 320, 3)
        # Outside the guide box is dimmed
        assert frame[0:5, 0:5].max() < 255

    def test_preview_follows_capture(self):
        manager = TextManager(clipboard=FakeClipboard())
        still = encode_still(make_checkerboard(320, 240))
        result = CaptureResult(image=still, source=CaptureSource.AUTO,
                               state=CaptureState.IDLE, text="HELLO", confidence=0.9)
        manager.show_result(result)
        assert manager.preview.shape == (120, 160, 3)

    def test_undecodable_still_has_no_preview(self):
        manager = TextManager(clipboard=FakeClipboard())
        manager.set_preview(encode_still(make_checkerboard(320, 240)))
        manager.show_result(finished("HELLO"))
        assert manager.preview is None

    def test_preview_skipped_when_frame_too_small(self):
        manager = TextManager(clipboard=FakeClipboard())
        manager.set_preview(encode_still(make_checkerboard(320, 240)))
        frame = np.zeros((60, 100, 3), dtype=np.uint8)
        manager.draw_preview(frame)
        assert frame.max() == 0


class TestStillImage:
    def test_encode_is_jpeg(self):
        image = encode_still(make_checkerboard(64, 48))
        assert image[:2] == b"\xff\xd8"
        assert decode_still(image).shape == (48, 64, 3)

    def test_encode_rejects_missing_frame(self):
        with pytest.raises(CaptureError):
            encode_still(None)
        with pytest.raises(CaptureError):
            encode_still(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_save_does_not_overwrite(self, tmp_path):
        first = save_still(b"one", str(tmp_path))
        second = save_still(b"two", str(tmp_path))
        assert os.path.basename(first) == "capture.jpg"
        assert first != second
        with open(first, 'rb') as f:
            assert f.read() == b"one"

    def test_save_nothing(self, tmp_path):
        assert save_still(None, str(tmp_path)) is None
        assert os.listdir(tmp_path) == []
