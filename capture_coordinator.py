"""
Single-flight capture + recognize pipeline.

Both the manual capture key and the automatic contrast trigger go through
CaptureCoordinator.request_capture. At most one cycle is in flight at a time
(unless strict exclusion is turned off, in which case manual captures may
overlap an automatic one, and only the newest capture's result is kept).

State machine, re-enterable for the life of the session:

    IDLE -> CAPTURING -> RECOGNIZING -> IDLE            (text stored)
    IDLE -> CAPTURING -> RECOGNIZING -> IDLE            (failure, text cleared, notice shown)
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from config import STRICT_CAPTURE_EXCLUSION
from errors import CaptureError, EngineNotReady, RecognitionError
from utils import encode_still

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    RECOGNIZING = "recognizing"


class CaptureSource(Enum):
    MANUAL = "manual"
    AUTO = "auto"


@dataclass
class CaptureResult:
    image: bytes
    source: CaptureSource
    state: CaptureState = CaptureState.CAPTURING
    text: Optional[str] = None
    confidence: Optional[float] = None
    captured_at: float = field(default_factory=time.time)


class CaptureCoordinator:
    def __init__(self, engine, frame_source, notifier, encoder=encode_still,
                 strict_exclusive=STRICT_CAPTURE_EXCLUSION):
        """
        engine: object with ready() and a blocking recognize(image) -> (text, confidence)
        frame_source: object with read() -> (ok, frame)
        notifier: object with notify(message, level)
        """
        self._engine = engine
        self._frame_source = frame_source
        self._notifier = notifier
        self._encoder = encoder
        self.strict_exclusive = strict_exclusive
        self.current = None
        self.last_error = None
        self.capture_count = 0
        self._in_flight = 0
        self._result_listeners = []

    @property
    def state(self):
        if not self.recognizing:
            return CaptureState.IDLE
        if self.current is None or self.current.state is CaptureState.IDLE:
            return CaptureState.CAPTURING
        return self.current.state

    @property
    def recognizing(self):
        """True while a capture+recognize cycle is in flight."""
        return self._in_flight > 0

    @property
    def text(self):
        return self.current.text if self.current else None

    @property
    def last_image(self):
        return self.current.image if self.current else None

    def add_result_listener(self, listener):
        self._result_listeners.append(listener)

    def clear_text(self):
        if self.current is not None:
            self.current.text = None
            self.current.confidence = None
        logger.info("Recognized text cleared")

    def _notify(self, error):
        self.last_error = error
        logger.error(f"{type(error).__name__}: {error}")
        self._notifier.notify(error.notice, "error")

    async def request_capture(self, source=CaptureSource.MANUAL):
        """
        Take a still from the frame source and run it through the engine.
        Returns the finished CaptureResult, or None when the request was
        ignored or failed. Failures are reported through the notifier.
        """
        if self.recognizing:
            if source is CaptureSource.AUTO:
                logger.debug("Auto capture ignored: recognition in flight")
                return None
            if self.strict_exclusive:
                logger.info("Manual capture ignored: recognition in flight")
                self._notifier.notify("Recognition already in progress", "info")
                return None

        if not self._engine.ready():
            self._notify(EngineNotReady("Capture requested before the OCR engine is ready"))
            return None

        self._in_flight += 1
        result = None
        try:
            ok, frame = self._frame_source.read()
            if not ok or frame is None:
                raise CaptureError("No camera frame available")

            result = CaptureResult(image=self._encoder(frame), source=source)
            self.current = result
            self.capture_count += 1
            logger.info(f"Capture #{self.capture_count} ({source.value}): {len(result.image)} bytes")

            result.state = CaptureState.RECOGNIZING
            recognized = await self._recognize(result.image)

            if result is not self.current:
                logger.info(f"{source.value.capitalize()} capture superseded by a newer one, dropping its text")
                return None

            result.text, result.confidence = recognized
            result.state = CaptureState.IDLE
            logger.info(f"OCR confidence (approx): {result.confidence:.2f}")
            self._publish(result)
            return result

        except CaptureError as e:
            if result is not None:
                result.text = None
                result.confidence = None
                result.state = CaptureState.IDLE
                if result is self.current:
                    self._publish(result)
            self._notify(e)
            return None
        finally:
            self._in_flight -= 1

    def _publish(self, result):
        for listener in self._result_listeners:
            listener(result)

    async def _recognize(self, image):
        """Run the blocking engine call off the event loop."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._engine.recognize, image)
        except CaptureError:
            raise
        except Exception as e:
            raise RecognitionError(str(e)) from e
