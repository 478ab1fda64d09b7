import logging
import os
import threading
from typing import Optional, Protocol, Sequence

from config import settings
from .errors import ToolFailure
from .video import extract_frame_at

logger = logging.getLogger(__name__)

HOOK_FRAME_OFFSETS = (0.0, 0.5, 1.0)
HOOK_TEXT_MAX_CHARS = 80


class TextReader(Protocol):
    def read_text(self, image_path: str) -> str:
        ...


class EasyOcrReader:
    """Local OCR backed by EasyOCR. The model loads on first use."""

    def __init__(self, languages: Sequence[str]):
        self.languages = list(languages)
        self._reader = None
        self._lock = threading.Lock()

    def _init_easyocr(self) -> None:
        # Concurrent analyses share one reader; only the first caller loads the model.
        with self._lock:
            if self._reader is not None:
                return
            import easyocr

            self._reader = easyocr.Reader(self.languages, gpu=False)

    def read_text(self, image_path: str) -> str:
        if self._reader is None:
            self._init_easyocr()
        # Each result is [bbox, text, confidence]
        results = self._reader.readtext(image_path)
        return " ".join(text for _, text, _ in results if text.strip())


_text_reader: Optional[TextReader] = None


def get_text_reader() -> Optional[TextReader]:
    """Process-wide OCR reader, or None when OCR is disabled."""
    global _text_reader
    backend = (settings.OCR_BACKEND or "none").strip().lower()
    if backend == "none":
        return None
    if backend != "easyocr":
        logger.warning(f"Unknown OCR_BACKEND '{backend}'; OCR disabled")
        return None
    if _text_reader is None:
        _text_reader = EasyOcrReader(settings.OCR_LANGUAGES)
    return _text_reader


def normalize_hook_text(text: str, limit: int = HOOK_TEXT_MAX_CHARS) -> str:
    return " ".join((text or "").split())[:limit].strip()


def extract_hook_text(
    video_path: str,
    work_dir: str,
    reader: Optional[TextReader],
    offsets: Sequence[float] = HOOK_FRAME_OFFSETS,
) -> str:
    """
    OCR the opening frames in order and return the first non-empty text.
    Returns "" when OCR is disabled or no frame carries text.
    """
    if reader is None:
        return ""

    for index, offset in enumerate(offsets):
        frame_path = os.path.join(work_dir, f"hook_{index}.jpg")
        try:
            extract_frame_at(video_path, offset, frame_path)
        except ToolFailure as e:
            logger.warning(f"Could not extract hook frame at {offset}s: {e}")
            continue
        if not os.path.exists(frame_path):
            # Offset past the end of a very short clip
            continue

        try:
            text = normalize_hook_text(reader.read_text(frame_path))
        except Exception as e:
            logger.warning(f"OCR failed on hook frame at {offset}s: {e}")
            continue
        if text:
            return text
    return ""
