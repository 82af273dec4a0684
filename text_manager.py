import cv2
import logging
import time
from collections import deque
from datetime import datetime

from config import (DIM_ALPHA, GUIDE_COLOR, INFO_TEXT_COLOR, MAX_DISPLAY_LINES,
                    NOTICE_COLOR, NOTICE_DURATION, PREVIEW_BORDER_COLOR, PREVIEW_WIDTH,
                    SAVE_TEXT_TO_FILE, TEXT_COLOR, TEXT_FILE_PATH, TEXT_HEIGHT, TEXT_MARGIN)
from utils import decode_still, dim_outside, draw_crosshair, draw_dashed_rectangle, draw_lines

logger = logging.getLogger(__name__)


class TkClipboard:
    """System clipboard through a hidden Tk root window."""

    def copy(self, text):
        import tkinter as tk

        root = tk.Tk()
        try:
            root.withdraw()
            root.clipboard_clear()
            root.clipboard_append(text)
            root.update()  # Keep the text after the window is destroyed
        finally:
            root.destroy()


class TextManager:
    def __init__(self, clipboard=None, save_to_file=SAVE_TEXT_TO_FILE,
                 text_file_path=TEXT_FILE_PATH, clock=time.monotonic):
        """
        Holds the recognized text shown to the user and short-lived notices.
        """
        self.text = ""
        self.confidence = None
        self.clipboard = clipboard or TkClipboard()
        self.save_to_file = save_to_file
        self.text_file_path = text_file_path
        self._clock = clock
        self._notices = deque(maxlen=5)
        self.preview = None

        if self.save_to_file:
            self.setup_text_storage()

        logger.info(f"TextManager initialized, text storage enabled: {self.save_to_file}")

    def setup_text_storage(self):
        """Start a new session in the text file"""
        try:
            with open(self.text_file_path, 'a', encoding='utf-8') as f:
                f.write(f"\n=== New Session Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')} ===\n\n")
            logger.info(f"Text file appended: {self.text_file_path}")
        except OSError as e:
            logger.error(f"Error setting up text storage: {e}")
            self.save_to_file = False

    def notify(self, message, level="error"):
        """Queue a user-visible notice."""
        log = logger.error if level == "error" else logger.info
        log(f"Notice: {message}")
        self._notices.append((message, level, self._clock() + NOTICE_DURATION))

    def active_notices(self):
        now = self._clock()
        while self._notices and self._notices[0][2] <= now:
            self._notices.popleft()
        return [(message, level) for message, level, _ in self._notices]

    def show_result(self, result):
        """Result listener for CaptureCoordinator."""
        self.text = result.text or ""
        self.confidence = result.confidence
        self.set_preview(result.image)
        if self.text:
            self.save_text_to_file(self.text)

    def set_preview(self, image_bytes, width=PREVIEW_WIDTH):
        """
        Decode the last captured still into a thumbnail shown in the corner.
        """
        frame = decode_still(image_bytes) if image_bytes else None
        if frame is None:
            logger.warning("Could not decode captured image for preview")
            self.preview = None
            return None

        height = max(1, round(frame.shape[0] * width / frame.shape[1]))
        self.preview = cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)
        return self.preview

    def draw_preview(self, frame):
        """Paste the thumbnail into the top-right corner, if it fits."""
        if self.preview is None:
            return frame

        thumb_h, thumb_w = self.preview.shape[:2]
        height, width = frame.shape[:2]
        x = width - TEXT_MARGIN - thumb_w
        y = TEXT_MARGIN
        if x < 0 or y + thumb_h > height:
            return frame

        frame[y:y + thumb_h, x:x + thumb_w] = self.preview
        cv2.rectangle(frame, (x - 1, y - 1), (x + thumb_w, y + thumb_h), PREVIEW_BORDER_COLOR, 1)
        return frame

    def save_text_to_file(self, text):
        """Save text to file if enabled"""
        if not self.save_to_file or not text:
            return
        try:
            with open(self.text_file_path, 'a', encoding='utf-8') as f:
                timestamp = datetime.now().strftime('%H:%M:%S')
                f.write(f"[{timestamp}] {text}\n")
            logger.info(f"Saved {len(text)} chars to {self.text_file_path}")
        except OSError as e:
            logger.error(f"Error saving text to file: {e}")

    def clear_text(self):
        logger.info("Clearing recognized text")
        self.text = ""
        self.confidence = None

    def copy_text(self):
        """
        Copy the current text to the clipboard. Returns True on success.
        """
        try:
            self.clipboard.copy(self.text)
        except Exception as e:
            logger.error(f"Clipboard copy failed: {e}")
            self.notify("Copy failed", "error")
            return False
        self.notify("Text copied to clipboard", "info")
        return True

    def get_formatted_text_for_display(self, width=60):
        """
        Returns the text wrapped into display lines.
        """
        if not self.text:
            return []

        formatted_lines = []
        for line in self.text.split('\n'):
            if not line.strip():
                continue
            if len(line) <= width:
                formatted_lines.append(line)
                continue

            # Simple word wrapping
            current_line = ""
            for word in line.split():
                if len(current_line + " " + word) <= width:
                    current_line += (" " + word) if current_line else word
                else:
                    if current_line:
                        formatted_lines.append(current_line)
                    current_line = word
            if current_line:
                formatted_lines.append(current_line)

        return formatted_lines

    def draw_overlay(self, frame, roi, status_lines=(), processing=False):
        """
        Draws the guide box, recognized text, status and notices on the frame.
        """
        if frame is None:
            return frame

        height = frame.shape[0]
        if roi is not None:
            dim_outside(frame, roi, DIM_ALPHA)
            draw_dashed_rectangle(frame, roi, GUIDE_COLOR)
            draw_crosshair(frame, roi, GUIDE_COLOR)

        draw_lines(frame, list(status_lines), (TEXT_MARGIN, TEXT_MARGIN + TEXT_HEIGHT),
                   INFO_TEXT_COLOR, TEXT_HEIGHT)

        if processing:
            result_lines = ["Processing..."]
        else:
            result_lines = self.get_formatted_text_for_display() or ["No OCR result yet"]
        result_lines = result_lines[:MAX_DISPLAY_LINES]
        top = height - TEXT_MARGIN - TEXT_HEIGHT * (len(result_lines) - 1)
        draw_lines(frame, result_lines, (TEXT_MARGIN, top), TEXT_COLOR, TEXT_HEIGHT, scale=0.7, thickness=2)

        self.draw_preview(frame)

        notices = [message for message, _ in self.active_notices()]
        if notices:
            notice_top = TEXT_MARGIN + TEXT_HEIGHT * (len(status_lines) + 2)
            draw_lines(frame, notices, (TEXT_MARGIN, notice_top), NOTICE_COLOR, TEXT_HEIGHT, thickness=2)

        return frame
