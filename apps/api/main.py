"""
Creator Co-Pilot - FastAPI Backend
Main application entry point with health check and video analysis routing.
"""

import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import openai_key_configured, settings
from routers import analyze, health

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Creator Co-Pilot API...")
    for directory in (settings.ANALYSIS_UPLOAD_DIR, settings.ANALYSIS_WORK_DIR):
        try:
            Path(directory).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            print(f"⚠️ Could not create {directory}: {exc}")
    if not shutil.which("ffmpeg"):
        print("⚠️ ffmpeg not found on PATH; every measurement stage will come back empty.")
    if not openai_key_configured():
        print("⚠️ OPENAI_API_KEY missing; /analyze/video will answer 503.")
    yield
    # Shutdown
    print("👋 Shutting down API...")


app = FastAPI(
    title="Creator Co-Pilot API",
    description="Diagnose short vertical videos and get editing suggestions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(analyze.router, prefix="/analyze", tags=["Analyze"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Creator Co-Pilot API",
        "version": "0.1.0",
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT, reload=False)
