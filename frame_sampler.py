import logging
import time
from collections import namedtuple

import numpy as np

from config import AUTO_CAPTURE_COOLDOWN, CAPTURE_THRESHOLD, ROI_RATIOS, THRESHOLD_RANGE

logger = logging.getLogger(__name__)

RegionOfInterest = namedtuple("RegionOfInterest", ["x", "y", "width", "height"])
SampleResult = namedtuple("SampleResult", ["roi", "mean", "variance"])

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = {"r": 0.299, "g": 0.587, "b": 0.114}


def region_of_interest(frame_width, frame_height, ratios=ROI_RATIOS):
    """
    Centered sub-rectangle of the frame covering the given width/height ratios.
    Returns None when the frame or the resulting region is empty.
    """
    if not frame_width or not frame_height or frame_width <= 0 or frame_height <= 0:
        return None

    width_ratio, height_ratio = ratios
    box_w = int(frame_width * width_ratio)
    box_h = int(frame_height * height_ratio)
    if box_w <= 0 or box_h <= 0:
        return None

    box_x = (frame_width - box_w) // 2
    box_y = (frame_height - box_h) // 2
    return RegionOfInterest(box_x, box_y, box_w, box_h)


def luma_statistics(pixels, channel_order="bgr"):
    """
    Population mean and variance of the luma of a pixel block.

    pixels: array of shape (H, W, C) with at least three color channels.
    channel_order: order of the first three channels, "bgr" for OpenCV frames.

    Uses a single running sum and sum of squares, so
    variance = mean(x^2) - mean(x)^2. Values are shifted by the first pixel
    before accumulating; a uniform block yields exactly 0.
    """
    pixels = np.asarray(pixels)
    if pixels.ndim != 3 or pixels.shape[2] < 3 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ValueError(f"Expected a non-empty (H, W, C>=3) pixel block, got shape {pixels.shape}")

    weights = np.array([LUMA_WEIGHTS[c] for c in channel_order.lower()], dtype=np.float64)
    luma = pixels[:, :, :3].astype(np.float64) @ weights

    count = luma.size
    shifted = luma.ravel() - luma.flat[0]
    total = shifted.sum()
    total_sq = np.dot(shifted, shifted)

    shifted_mean = total / count
    variance = total_sq / count - shifted_mean * shifted_mean
    mean = luma.flat[0] + shifted_mean
    return float(mean), float(max(variance, 0.0))


def clamp_threshold(value):
    low, high = THRESHOLD_RANGE
    return float(min(max(value, low), high))


class FrameSampler:
    """
    Decides from the live frame whether the guide box likely contains text.

    A frame triggers when the luma variance inside the region of interest
    exceeds the threshold, no recognition is running and the cooldown that
    follows an automatic capture has elapsed.
    """

    def __init__(self, threshold=CAPTURE_THRESHOLD, cooldown=AUTO_CAPTURE_COOLDOWN,
                 ratios=ROI_RATIOS, channel_order="bgr", clock=time.monotonic):
        self._threshold = clamp_threshold(threshold)
        self.cooldown = cooldown
        self.ratios = ratios
        self.channel_order = channel_order
        self._clock = clock
        self._cooldown_until = None
        self.last_sample = None
        logger.info(f"FrameSampler initialized: threshold={self._threshold:.0f}, cooldown={cooldown}s, ratios={ratios}")

    @property
    def threshold(self):
        return self._threshold

    @threshold.setter
    def threshold(self, value):
        self._threshold = clamp_threshold(value)
        logger.info(f"Auto-capture threshold set to {self._threshold:.0f}")

    def measure(self, frame):
        """
        Crop the region of interest and compute its luma statistics.
        Returns None when the frame is not ready (missing or zero-sized).
        """
        if frame is None or getattr(frame, "ndim", 0) != 3:
            return None

        frame_height, frame_width = frame.shape[:2]
        roi = region_of_interest(frame_width, frame_height, self.ratios)
        if roi is None:
            return None

        region = frame[roi.y:roi.y + roi.height, roi.x:roi.x + roi.width]
        mean, variance = luma_statistics(region, self.channel_order)
        self.last_sample = SampleResult(roi, mean, variance)
        return self.last_sample

    def cooling_down(self):
        return self._cooldown_until is not None and self._clock() < self._cooldown_until

    def exceeds_threshold(self, variance):
        return variance > self._threshold

    def should_trigger(self, frame, recognizing=False):
        if recognizing or self.cooling_down():
            return False

        try:
            sample = self.measure(frame)
        except ValueError as e:
            logger.warning(f"Skipping sample: {e}")
            return False

        if sample is None:
            return False

        if self.exceeds_threshold(sample.variance):
            logger.info(f"Contrast trigger: variance {sample.variance:.1f} > {self._threshold:.0f}")
            return True
        return False

    def mark_captured(self):
        """Start the post-capture cooldown."""
        self._cooldown_until = self._clock() + self.cooldown
