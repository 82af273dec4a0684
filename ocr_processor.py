import io
import logging
from collections import namedtuple

import pytesseract
from PIL import Image

from config import OCR_LANGUAGES, TESSERACT_CONFIG
from errors import EngineNotReady, InitError, RecognitionError

logger = logging.getLogger(__name__)

RecognitionResult = namedtuple("RecognitionResult", ["text", "confidence"])


class OCRProcessor:
    """
    Tesseract-backed recognition engine.

    Lifecycle: initialize(languages) -> ready() -> recognize(...) -> teardown().
    A failed initialize leaves the engine non-ready.
    """

    def __init__(self, tesseract_config=TESSERACT_CONFIG):
        self.tesseract_config = tesseract_config
        self.languages = ()
        self.initialization_successful = False
        self.recognize_count = 0

    def initialize(self, languages=OCR_LANGUAGES):
        logger.info(f"Initializing OCRProcessor with Tesseract, languages: {'+'.join(languages)}")
        self.initialization_successful = False

        if not languages:
            raise InitError("At least one OCR language is required")

        try:
            version = pytesseract.get_tesseract_version()
            logger.info(f"Tesseract {version} is available")
            installed = set(pytesseract.get_languages(config=''))
        except Exception as e:
            logger.error(f"Failed to initialize Tesseract: {e}")
            logger.error("Please install Tesseract: brew install tesseract (macOS) or apt-get install tesseract-ocr (Ubuntu)")
            raise InitError(str(e)) from e

        missing = [lang for lang in languages if lang not in installed]
        if missing:
            logger.error(f"Tesseract language data not installed: {', '.join(missing)}")
            raise InitError(f"Missing Tesseract language data: {', '.join(missing)}")

        self.languages = tuple(languages)
        self.initialization_successful = True
        logger.info("Tesseract OCR processor initialized successfully")
        return self

    def ready(self):
        """Check if OCR processor was initialized successfully"""
        return self.initialization_successful

    def teardown(self):
        logger.info("Tearing down OCRProcessor")
        self.initialization_successful = False
        self.languages = ()

    def recognize(self, image):
        """
        Run Tesseract on an encoded still image (JPEG/PNG bytes).
        Returns RecognitionResult(text, confidence) with confidence in 0..1.
        """
        if not self.ready():
            raise EngineNotReady("OCR processor not initialized")

        if not image:
            raise RecognitionError("No image to recognize")

        self.recognize_count += 1
        logger.info(f"Starting recognition #{self.recognize_count} ({len(image)} bytes)")

        try:
            with Image.open(io.BytesIO(image)) as pil_image:
                pil_image.load()
                data = pytesseract.image_to_data(
                    pil_image,
                    lang='+'.join(self.languages),
                    config=self.tesseract_config,
                    output_type=pytesseract.Output.DICT
                )
        except Exception as e:
            logger.error(f"Tesseract OCR processing failed: {e}")
            raise RecognitionError(str(e)) from e

        result = self._collect_result(data)
        logger.info(f"Recognized {len(result.text)} chars with confidence {result.confidence:.2f}")
        return result

    def _collect_result(self, data):
        """
        Join recognized words back into lines and average word confidences.
        """
        lines = {}
        confidences = []

        for i in range(len(data['text'])):
            text = data['text'][i].strip()
            try:
                confidence = float(data['conf'][i])
            except (TypeError, ValueError):
                confidence = -1.0

            if not text:
                continue

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(text)
            if confidence >= 0:  # Tesseract reports -1 for non-word boxes
                confidences.append(confidence)

        text = '\n'.join(' '.join(words) for _, words in sorted(lines.items()))
        confidence = (sum(confidences) / len(confidences) / 100.0) if confidences else 0.0
        return RecognitionResult(text, confidence)


_engine = None


def get_engine():
    """Process-wide recognition engine, created on first use."""
    global _engine
    if _engine is None:
        _engine = OCRProcessor()
    return _engine


def init_engine(languages=OCR_LANGUAGES):
    """
    Initialize the shared engine once. Failures are logged and leave the
    engine non-ready; callers query ready().
    """
    engine = get_engine()
    if engine.ready():
        return engine
    try:
        engine.initialize(languages)
    except InitError as e:
        logger.error(f"OCR engine not ready: {e}")
    return engine
