import cv2
import asyncio
import logging
import sys

from auto_capture import AutoCapture
from camera_feed import CameraSource
from capture_coordinator import CaptureCoordinator, CaptureSource
from config import (DEFAULT_FACING, DISPLAY_TICK_SECONDS, DOWNLOAD_DIR, OCR_LANGUAGES,
                    THRESHOLD_SLIDER_RANGE, THRESHOLD_STEP, TRACKBAR_NAME, WINDOW_TITLE)
from errors import CaptureError
from frame_sampler import FrameSampler, region_of_interest
from ocr_processor import get_engine, init_engine
from text_manager import TextManager
from utils import save_still

logger = logging.getLogger(__name__)

KEY_HELP = "space: capture  a: auto  f: flip  d: download  y: copy  c: clear  +/-: threshold  q: quit"


class CameraOCRApp:
    """
    Wires the camera, the OCR engine and the capture pipeline to an OpenCV
    window and keyboard controls.
    """

    def __init__(self, engine, camera=None, text_manager=None, sampler=None):
        self.engine = engine
        self.camera = camera or CameraSource()
        self.text_manager = text_manager or TextManager()
        self.sampler = sampler or FrameSampler()
        self.coordinator = CaptureCoordinator(engine, self.camera, self.text_manager)
        self.coordinator.add_result_listener(self.text_manager.show_result)
        self.auto_capture = AutoCapture(self.sampler, self.coordinator, self.camera)
        self._pending = set()
        self._window_open = False
        self.running = True

        low, high = THRESHOLD_SLIDER_RANGE
        if not low <= self.sampler.threshold <= high:
            clamped = min(max(self.sampler.threshold, low), high)
            logger.warning(f"Threshold {self.sampler.threshold:.0f} is outside the slider range {low}..{high}, using {clamped:.0f}")
            self.sampler.threshold = clamped

    def open_camera(self, facing=DEFAULT_FACING):
        try:
            self.camera.acquire(facing)
        except CaptureError as e:
            logger.error(f"Camera acquisition failed: {e}")
            self.text_manager.notify(e.notice)

    def switch_camera(self):
        try:
            self.camera.switch()
        except CaptureError as e:
            logger.error(f"Camera switch failed: {e}")
            self.text_manager.notify(e.notice)

    def capture(self):
        """Fire a manual capture without blocking the display loop."""
        task = asyncio.ensure_future(self.coordinator.request_capture(CaptureSource.MANUAL))
        self._pending.add(task)
        task.add_done_callback(self._capture_done)

    def _capture_done(self, task):
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Manual capture crashed: {task.exception()!r}")

    def download_image(self):
        image = self.coordinator.last_image
        if not image:
            self.text_manager.notify("Nothing captured yet", "info")
            return None
        try:
            path = save_still(image, DOWNLOAD_DIR)
        except OSError as e:
            logger.error(f"Saving image failed: {e}")
            self.text_manager.notify("Image download failed")
            return None
        self.text_manager.notify(f"Saved {path}", "info")
        return path

    def clear_text(self):
        self.coordinator.clear_text()
        self.text_manager.clear_text()

    def set_threshold(self, value):
        low, high = THRESHOLD_SLIDER_RANGE
        self.sampler.threshold = min(max(value, low), high)
        if self._window_open:
            cv2.setTrackbarPos(TRACKBAR_NAME, WINDOW_TITLE, int(self.sampler.threshold))

    def handle_key(self, key):
        if key == ord('q'):
            logger.info("'q' key pressed, stopping")
            self.running = False
        elif key == ord(' '):
            self.capture()
        elif key == ord('a'):
            self.auto_capture.toggle()
        elif key == ord('f'):
            self.switch_camera()
        elif key == ord('d'):
            self.download_image()
        elif key == ord('y'):
            self.text_manager.copy_text()
        elif key == ord('c'):
            self.clear_text()
        elif key in (ord('+'), ord('=')):
            self.set_threshold(self.sampler.threshold + THRESHOLD_STEP)
        elif key in (ord('-'), ord('_')):
            self.set_threshold(self.sampler.threshold - THRESHOLD_STEP)

    def status_lines(self):
        sample = self.sampler.last_sample
        variance = f"{sample.variance:.0f}" if sample and self.auto_capture.enabled else "-"
        engine = "ready" if self.engine.ready() else "not ready"
        return [
            f"Auto: {'ON' if self.auto_capture.enabled else 'OFF'}  Threshold: {self.sampler.threshold:.0f}  Variance: {variance}",
            f"Camera: {self.camera.facing or '-'}  OCR: {engine}  State: {self.coordinator.state.value}",
        ]

    def _create_window(self):
        cv2.namedWindow(WINDOW_TITLE, cv2.WINDOW_NORMAL)
        low, high = THRESHOLD_SLIDER_RANGE
        cv2.createTrackbar(TRACKBAR_NAME, WINDOW_TITLE, int(self.sampler.threshold), high,
                           lambda value: None)
        cv2.setTrackbarMin(TRACKBAR_NAME, WINDOW_TITLE, low)
        self._window_open = True

    def _poll_trackbar(self):
        value = cv2.getTrackbarPos(TRACKBAR_NAME, WINDOW_TITLE)
        if value >= 0 and value != int(self.sampler.threshold):
            self.sampler.threshold = value

    async def run(self):
        self._create_window()
        self.open_camera()
        logger.info(KEY_HELP)

        try:
            while self.running:
                ok, frame = self.camera.read()
                if ok and frame is not None:
                    height, width = frame.shape[:2]
                    roi = region_of_interest(width, height, self.sampler.ratios)
                    self.text_manager.draw_overlay(frame, roi, self.status_lines(),
                                                   processing=self.coordinator.recognizing)
                    cv2.imshow(WINDOW_TITLE, frame)

                key = cv2.waitKey(1) & 0xFF
                if key != 0xFF:
                    self.handle_key(key)
                self._poll_trackbar()

                # Yield to the capture tasks
                await asyncio.sleep(DISPLAY_TICK_SECONDS)
        finally:
            await self.shutdown()

    async def shutdown(self):
        logger.info("Cleaning up resources...")
        self.auto_capture.stop()
        try:
            results = await asyncio.gather(self.auto_capture.wait_closed(), *self._pending,
                                           return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Capture task crashed: {result!r}")
        finally:
            self.camera.release()
            if self._window_open:
                cv2.destroyAllWindows()
                self._window_open = False
            logger.info("All windows closed")


async def process_feed():
    app = CameraOCRApp(get_engine())

    async def load_engine():
        # Language data loads off the event loop; captures before it finishes get EngineNotReady
        engine = await asyncio.get_running_loop().run_in_executor(None, init_engine, OCR_LANGUAGES)
        if not engine.ready():
            app.text_manager.notify("OCR engine failed to initialize")

    loading = asyncio.ensure_future(load_engine())
    try:
        await app.run()
    finally:
        await loading


def cli():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    try:
        logger.info("Starting camera OCR application")
        logger.info("Align the document with the guide box; auto-capture fires on high contrast")
        asyncio.run(process_feed())
        logger.info("Application finished successfully")
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application crashed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
