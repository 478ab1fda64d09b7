"""
Video analysis router: upload a short video and get a diagnostic report.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from config import settings
from multimodal.errors import (
    AnalysisError,
    InputError,
    SuggestionServiceError,
    SuggestionServiceUnavailable,
)
from multimodal.models import CreatorContext
from services.video_analysis import analyze_video

router = APIRouter()
logger = logging.getLogger(__name__)

ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".webm", ".avi", ".mkv"}
ALLOWED_VIDEO_MIME_PREFIXES = ("video/",)
UPLOAD_CHUNK_BYTES = 1024 * 1024

_analysis_slots: Optional[asyncio.Semaphore] = None


def _get_analysis_slots() -> asyncio.Semaphore:
    global _analysis_slots
    if _analysis_slots is None:
        _analysis_slots = asyncio.Semaphore(max(int(settings.MAX_CONCURRENT_ANALYSES), 1))
    return _analysis_slots


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": code, "message": message})


def _sanitize_filename(filename: str) -> str:
    base = os.path.basename(filename or "upload.mp4")
    safe = "".join(ch if ch.isalnum() or ch in ("-", "_", ".") else "_" for ch in base)
    return safe or "upload.mp4"


def _split_csv(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


async def _store_upload(file: UploadFile) -> Path:
    """Stream the upload to disk, enforcing the size limit."""
    original_filename = _sanitize_filename(file.filename or "upload.mp4")
    suffix = Path(original_filename).suffix.lower()
    content_type = (file.content_type or "").lower()

    if suffix not in ALLOWED_VIDEO_EXTENSIONS and not content_type.startswith(ALLOWED_VIDEO_MIME_PREFIXES):
        raise _error(
            422,
            "unsupported_type",
            "Unsupported file type. Upload a video file (mp4, mov, m4v, webm, avi, mkv).",
        )

    max_bytes = int(settings.MAX_UPLOAD_MB) * 1024 * 1024
    upload_dir = Path(settings.ANALYSIS_UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    destination = upload_dir / f"{uuid.uuid4().hex}_{original_filename}"

    total_size = 0
    try:
        with destination.open("wb") as out:
            while True:
                chunk = await file.read(UPLOAD_CHUNK_BYTES)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > max_bytes:
                    raise _error(
                        413,
                        "file_too_large",
                        f"File too large. Max upload size is {settings.MAX_UPLOAD_MB}MB.",
                    )
                out.write(chunk)
    except BaseException:
        # Oversized upload, client disconnect or failed write: drop the partial file
        destination.unlink(missing_ok=True)
        raise
    finally:
        await file.close()

    if total_size == 0:
        destination.unlink(missing_ok=True)
        raise InputError("Uploaded file is empty", code="unreadable_file")
    return destination


@router.post("/video")
async def analyze_uploaded_video(
    file: Optional[UploadFile] = File(None),
    niche: str = Form(""),
    tone: str = Form(""),
    goals: str = Form(""),
    pillars: str = Form(""),
):
    """Analyze an uploaded short video and return metrics plus editing suggestions."""
    upload_path: Optional[Path] = None
    try:
        if file is None or not file.filename:
            raise InputError("No video file uploaded")
        upload_path = await _store_upload(file)

        context = CreatorContext(
            niche=niche.strip(),
            tone=tone.strip(),
            goals=_split_csv(goals),
            pillars=_split_csv(pillars),
        )
        async with _get_analysis_slots():
            report = await analyze_video(str(upload_path), context)
        return report.model_dump(by_alias=True)

    except HTTPException:
        raise
    except InputError as e:
        raise _error(400, e.code, str(e))
    except SuggestionServiceUnavailable as e:
        logger.error(f"Suggestion service unavailable: {e}")
        raise _error(503, e.code, "Suggestion service is not configured")
    except SuggestionServiceError as e:
        logger.error(f"Suggestion service failed: {e}")
        raise _error(502, e.code, "Suggestion service call failed")
    except AnalysisError as e:
        logger.error(f"Analysis failed: {e}")
        raise _error(500, "unexpected", "Analysis failed")
    except Exception as e:
        logger.exception(f"Unexpected analysis failure: {e}")
        raise _error(500, "unexpected", "Analysis failed")
    finally:
        if upload_path is not None:
            try:
                upload_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove upload {upload_path}: {e}")
