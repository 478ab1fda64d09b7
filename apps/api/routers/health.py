"""
Health check endpoints.
"""

import shutil

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config import openai_key_configured, settings

router = APIRouter()


def _tool_status(name: str) -> str:
    return "up" if shutil.which(name) else "missing"


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "ffmpeg": _tool_status("ffmpeg"),
        "ffprobe": _tool_status("ffprobe"),
        "suggestion_service": "configured" if openai_key_configured() else "missing",
        "transcription": "enabled" if settings.ENABLE_WHISPER_TRANSCRIPTION else "disabled",
        "ocr_backend": settings.OCR_BACKEND,
    }
    if health_status["ffmpeg"] != "up" or health_status["ffprobe"] != "up":
        health_status["status"] = "degraded"
    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    missing = []
    if not shutil.which("ffmpeg"):
        missing.append("ffmpeg")
    if not shutil.which("ffprobe"):
        missing.append("ffprobe")
    if not openai_key_configured():
        missing.append("OPENAI_API_KEY")

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
