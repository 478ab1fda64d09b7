from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config import settings
from main import app


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path):
    """Keep uploads and per-run working dirs inside the test's tmp dir."""
    upload_root = tmp_path / "uploads"
    work_root = tmp_path / "runs"
    with (
        patch.object(settings, "ANALYSIS_UPLOAD_DIR", str(upload_root)),
        patch.object(settings, "ANALYSIS_WORK_DIR", str(work_root)),
    ):
        yield {"uploads": upload_root, "runs": work_root}


@pytest.fixture
def llm_configured():
    with patch.object(settings, "OPENAI_API_KEY", "sk-live-abc123"):
        yield


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"fake-video-binary")
    return path


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
