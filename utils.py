import cv2
import logging
import os
from datetime import datetime

import numpy as np

from config import DOWNLOAD_DIR, DOWNLOAD_FILENAME, JPEG_QUALITY
from errors import CaptureError

logger = logging.getLogger(__name__)


def encode_still(frame, quality=JPEG_QUALITY):
    """
    Encode a BGR frame as a self-contained JPEG still.
    The bytes are used both for recognition and for download.
    """
    if frame is None or getattr(frame, "size", 0) == 0:
        raise CaptureError("No frame to encode")

    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise CaptureError("JPEG encoding failed")
    return buffer.tobytes()


def decode_still(image_bytes):
    """Decode JPEG bytes back into a BGR frame (for previews)."""
    array = np.frombuffer(image_bytes, dtype=np.uint8)
    return cv2.imdecode(array, cv2.IMREAD_COLOR)


def save_still(image_bytes, directory=DOWNLOAD_DIR, filename=DOWNLOAD_FILENAME):
    """
    Write the captured still to disk. An existing file is not overwritten;
    a timestamped name is used instead.
    Returns the written path, or None if there is nothing to save.
    """
    if not image_bytes:
        logger.warning("No captured image to save")
        return None

    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, filename)
    if os.path.exists(path):
        stem, ext = os.path.splitext(filename)
        stamp = datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        path = os.path.join(directory, f"{stem}-{stamp}{ext}")

    with open(path, 'wb') as f:
        f.write(image_bytes)
    logger.info(f"Saved captured image to {path}")
    return path


def dim_outside(frame, roi, alpha):
    """Darken everything outside the region of interest, in place."""
    x, y, w, h = roi
    inside = frame[y:y + h, x:x + w].copy()
    frame[:] = (frame * (1.0 - alpha)).astype(frame.dtype)
    frame[y:y + h, x:x + w] = inside
    return frame


def draw_dashed_rectangle(frame, roi, color, thickness=2, dash=12):
    x, y, w, h = roi
    x2, y2 = x + w, y + h
    for start in range(x, x2, dash * 2):
        end = min(start + dash, x2)
        cv2.line(frame, (start, y), (end, y), color, thickness)
        cv2.line(frame, (start, y2), (end, y2), color, thickness)
    for start in range(y, y2, dash * 2):
        end = min(start + dash, y2)
        cv2.line(frame, (x, start), (x, end), color, thickness)
        cv2.line(frame, (x2, start), (x2, end), color, thickness)
    return frame


def draw_crosshair(frame, roi, color, thickness=1):
    x, y, w, h = roi
    cv2.line(frame, (x, y + h // 2), (x + w, y + h // 2), color, thickness)
    cv2.line(frame, (x + w // 2, y), (x + w // 2, y + h), color, thickness)
    return frame


def draw_lines(frame, lines, origin, color, line_height, scale=0.6, thickness=1):
    """Draw text lines top to bottom, clamped to the frame."""
    height, width = frame.shape[:2]
    x, y = origin
    for line in lines:
        if y >= height:
            break
        cv2.putText(frame, line, (max(0, min(x, width - 1)), y),
                    cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness)
        y += line_height
    return frame
