import asyncio
import logging

from capture_coordinator import CaptureSource
from config import DISPLAY_TICK_SECONDS

logger = logging.getLogger(__name__)


class AutoCapture:
    """
    Cancellable periodic task that feeds live frames to the FrameSampler and
    fires automatic captures into the CaptureCoordinator.

    Ticks run one after another; a tick that triggers a capture waits for
    the recognition to finish and then for the sampler's cooldown before the
    next tick. stop() ends the scheduling of ticks but lets an in-flight
    recognition complete.
    """

    def __init__(self, sampler, coordinator, frame_source, interval=DISPLAY_TICK_SECONDS):
        self.sampler = sampler
        self.coordinator = coordinator
        self.frame_source = frame_source
        self.interval = interval
        self.trigger_count = 0
        self._task = None
        self._stop_event = None

    @property
    def running(self):
        return self._task is not None and not self._task.done()

    def start(self):
        """Start ticking. Must be called from within the running event loop."""
        if self.running:
            # Still finishing its last tick; resume it
            self._stop_event.clear()
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Auto-capture enabled")

    def stop(self):
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()
            logger.info("Auto-capture disabled")

    def toggle(self):
        if self.enabled:
            self.stop()
            return False
        self.start()
        return True

    @property
    def enabled(self):
        return self.running and not self._stop_event.is_set()

    async def wait_closed(self):
        if self._task is not None:
            await self._task

    async def tick(self):
        """
        One sampling step. Returns True if an automatic capture was issued.
        Unready frames are skipped silently.
        """
        ok, frame = self.frame_source.read()
        if not ok or frame is None:
            return False

        if not self.sampler.should_trigger(frame, self.coordinator.recognizing):
            return False

        self.trigger_count += 1
        capture = asyncio.ensure_future(self.coordinator.request_capture(CaptureSource.AUTO))
        try:
            await asyncio.shield(capture)
        finally:
            self.sampler.mark_captured()
        return True

    async def _run(self):
        while not self._stop_event.is_set():
            triggered = await self.tick()
            await self._wait(self.sampler.cooldown if triggered else self.interval)
        logger.info(f"Auto-capture stopped after {self.trigger_count} triggers")

    async def _wait(self, seconds):
        """Sleep, waking early when stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
