"""
Configuration file for the camera OCR capture app.
"""
import os

# Camera configuration
CAMERA_SOURCE = int(os.getenv("CAMERA_SOURCE", "0"))  # Device index used for the rear ("environment") camera
FACING_SOURCES = {
    "environment": CAMERA_SOURCE,      # Rear camera
    "user": CAMERA_SOURCE + 1,         # Front camera, next device index
}
DEFAULT_FACING = "environment"         # Rear camera by default
CAMERA_WARMUP_TIME = 0.1               # Seconds to wait for the reader thread to start
MAX_CONSECUTIVE_FAILURES = 30          # Maximum consecutive frame read failures in the reader thread

# Guide box / region of interest, as fractions of the frame (centered)
ROI_RATIOS = (0.6, 0.2)                # 60% width, 20% height

# Auto-capture configuration
CAPTURE_THRESHOLD = float(os.getenv("CAPTURE_THRESHOLD", "500"))  # Luma variance cutoff, needs per-device tuning
THRESHOLD_RANGE = (0.0, 2000.0)        # Internal variance domain
THRESHOLD_SLIDER_RANGE = (100, 2000)   # Trackbar range, mapped 1:1 onto the variance domain
THRESHOLD_STEP = 50                    # Step for the +/- keys
AUTO_CAPTURE_COOLDOWN = 1.5            # Seconds before auto-capture may trigger again
DISPLAY_TICK_SECONDS = 1 / 30          # Sampling cadence, roughly one display refresh
STRICT_CAPTURE_EXCLUSION = True        # Ignore manual captures while a recognition is in flight

# OCR configuration
OCR_LANGUAGES = tuple(os.getenv("OCR_LANGUAGES", "eng+kor").split("+"))
TESSERACT_CONFIG = '--oem 3 --psm 6'

# Still image configuration
JPEG_QUALITY = 92                      # Quality of captured stills (0-100)
DOWNLOAD_DIR = os.getenv("DOWNLOAD_DIR", ".")
DOWNLOAD_FILENAME = "capture.jpg"

# Display configuration
WINDOW_TITLE = "Camera OCR"
TRACKBAR_NAME = "Threshold"
GUIDE_COLOR = (255, 255, 255)          # White guide box and crosshair
DIM_ALPHA = 0.25                       # Darkening applied outside the guide box
TEXT_COLOR = (0, 255, 0)               # Green color for recognized text
INFO_TEXT_COLOR = (255, 255, 255)      # White color for status text
NOTICE_COLOR = (0, 0, 255)             # Red color for notices
NOTICE_DURATION = 3.0                  # Seconds a notice stays on screen
MAX_DISPLAY_LINES = 6                  # Recognized text lines drawn on the frame
PREVIEW_WIDTH = 160                    # Width of the last-capture thumbnail
PREVIEW_BORDER_COLOR = (255, 255, 255) # White border around the thumbnail
TEXT_HEIGHT = 22                       # Height allocated for each line of text
TEXT_MARGIN = 10                       # Margin from frame edges

# Text storage configuration
SAVE_TEXT_TO_FILE = False              # Append recognized text to a file
TEXT_FILE_PATH = "extracted_text.txt"  # File path for saving text
