import cv2
import logging
import time
from threading import Lock, Thread

from config import (CAMERA_WARMUP_TIME, DEFAULT_FACING, FACING_SOURCES,
                    MAX_CONSECUTIVE_FAILURES)
from errors import DeviceUnavailable, PermissionDenied

logger = logging.getLogger(__name__)

PERMISSION_HINTS = ("permission", "not authorized", "not permitted", "access denied")


class VideoStream:
    """
    Camera stream with a background thread that keeps the latest frame.
    """

    def __init__(self, src=0, capture_factory=cv2.VideoCapture):
        logger.info(f"Initializing VideoStream with source: {src}")
        self.src = src
        self.cap = None
        self.ret = False
        self.frame = None
        self.stopped = False
        self.thread = None
        self.initialization_successful = False
        self.permission_denied = False
        self._lock = Lock()

        try:
            self.cap = capture_factory(src)
            if not self.cap.isOpened():
                logger.error(f"Failed to open camera source {src}")
                self.cleanup()
                return

            # Test reading first frame
            self.ret, self.frame = self.cap.read()
            if not self.ret or self.frame is None:
                logger.error("Failed to read initial frame from camera")
                self.cleanup()
                return

            logger.info(f"Camera resolution: {self.frame.shape[1]}x{self.frame.shape[0]}")

            logger.info("Starting background thread for frame updates")
            self.thread = Thread(target=self.update, args=(), daemon=True)
            self.thread.start()

            # Wait a moment for thread to start
            time.sleep(CAMERA_WARMUP_TIME)
            if self.thread.is_alive():
                self.initialization_successful = True
                logger.info("VideoStream initialization completed successfully")
            else:
                logger.error("Background thread failed to start")
                self.cleanup()

        except PermissionError as e:
            logger.error(f"Camera access denied for source {src}: {e}")
            self.permission_denied = True
            self.cleanup()
        except cv2.error as e:
            logger.error(f"OpenCV error opening camera source {src}: {e}")
            self.permission_denied = any(hint in str(e).lower() for hint in PERMISSION_HINTS)
            self.cleanup()

    def is_initialized(self):
        """Check if the video stream was initialized successfully"""
        return self.initialization_successful and self.cap is not None and self.cap.isOpened()

    def is_ready(self):
        """A frame with known, non-zero dimensions is available."""
        frame = self.frame
        return (self.is_initialized() and frame is not None
                and frame.ndim == 3 and frame.shape[0] > 0 and frame.shape[1] > 0)

    def update(self):
        """Method to read frames from camera in background thread"""
        logger.info("Background update thread started")
        frame_count = 0
        consecutive_failures = 0

        while not self.stopped:
            with self._lock:
                if self.cap is None or not self.cap.isOpened():
                    logger.error("Camera not available in background thread")
                    break
                ret, frame = self.cap.read()

            if ret and frame is not None:
                self.ret = ret
                self.frame = frame
                consecutive_failures = 0
                frame_count += 1

                # Only log every 300 frames (about every ten seconds at 30fps)
                if frame_count % 300 == 0:
                    logger.debug(f"Background thread: Read {frame_count} frames successfully")
            else:
                consecutive_failures += 1
                logger.warning(f"Background thread: Failed to read frame (attempt {consecutive_failures}/{MAX_CONSECUTIVE_FAILURES})")

                if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                    logger.error("Too many consecutive failures in background thread, stopping")
                    self.ret = False
                    break

                time.sleep(0.01)  # Brief pause before retry

        logger.info("Background update thread stopped")

    def read(self):
        """Return the latest frame"""
        if not self.is_initialized():
            return False, None

        frame = self.frame
        if frame is None:
            logger.warning("No frame available")
            return False, None

        return self.ret, frame.copy()  # Return a copy to avoid threading issues

    def stop(self):
        """Stop the video stream and release camera"""
        logger.info(f"Stopping video stream {self.src}")
        self.stopped = True

        # Wait for background thread to finish
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2.0)
            if self.thread.is_alive():
                logger.warning("Background thread did not finish gracefully")

        self.cleanup()
        self.initialization_successful = False

    def cleanup(self):
        """Release the capture device"""
        with self._lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
                logger.info("Camera released successfully")


class CameraSource:
    """
    Owns the single camera stream of the app. Switching facing releases the
    previous stream before a new one is acquired.
    """

    def __init__(self, facing_sources=None, capture_factory=cv2.VideoCapture):
        self.facing_sources = dict(facing_sources or FACING_SOURCES)
        self.capture_factory = capture_factory
        self.stream = None
        self.facing = None

    def acquire(self, facing=DEFAULT_FACING):
        """
        Open the camera for the given facing mode.
        Raises PermissionDenied or DeviceUnavailable.
        """
        if facing not in self.facing_sources:
            raise DeviceUnavailable(f"Unknown facing mode: {facing}")

        src = self.facing_sources[facing]
        stream = VideoStream(src, capture_factory=self.capture_factory)
        if not stream.is_initialized():
            stream.stop()
            if stream.permission_denied:
                raise PermissionDenied(f"Camera access denied for {facing} camera (source {src})")
            raise DeviceUnavailable(f"Could not open {facing} camera (source {src})")

        self.stream = stream
        self.facing = facing
        logger.info(f"Acquired {facing} camera (source {src})")
        return stream

    def release(self, stream=None):
        stream = stream or self.stream
        if stream is None:
            return
        stream.stop()
        if stream is self.stream:
            self.stream = None
        logger.info(f"Released camera source {stream.src}")

    def switch(self, facing=None):
        """
        Release the current stream, then acquire the other (or given) facing.
        On failure the previous stream stays released and the error propagates.
        """
        if facing is None:
            facing = "user" if self.facing == "environment" else "environment"
        logger.info(f"Switching camera to {facing}")
        self.release()
        self.facing = facing
        return self.acquire(facing)

    def read(self):
        if self.stream is None:
            return False, None
        return self.stream.read()

    def is_ready(self):
        return self.stream is not None and self.stream.is_ready()
