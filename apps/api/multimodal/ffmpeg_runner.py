import logging
import subprocess
from typing import Optional

import ffmpeg

from config import settings
from .errors import ToolFailure

logger = logging.getLogger(__name__)


def run_ffmpeg(stream, timeout: Optional[float] = None) -> str:
    """
    Run an ffmpeg-python output stream and return its stderr log as text.

    Filters such as showinfo, silencedetect and volumedetect report on stderr.
    Raises ToolFailure on non-zero exit or when the timeout is exceeded; the
    process is killed in the latter case.
    """
    timeout = settings.FFMPEG_TIMEOUT_SECONDS if timeout is None else timeout
    logger.debug("Running %s", " ".join(ffmpeg.compile(stream, overwrite_output=True)))
    try:
        process = ffmpeg.run_async(
            stream,
            pipe_stdout=True,
            pipe_stderr=True,
            overwrite_output=True,
        )
    except (OSError, ffmpeg.Error) as e:
        raise ToolFailure(f"Could not start ffmpeg: {e}") from e

    try:
        _, err = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        process.kill()
        process.communicate()
        raise ToolFailure(f"ffmpeg timed out after {timeout}s") from e

    log = err.decode("utf-8", errors="replace") if err else ""
    if process.returncode != 0:
        tail = log.strip().splitlines()[-1:] or [""]
        raise ToolFailure(f"ffmpeg exited with code {process.returncode}: {tail[0]}", stderr=log)
    return log
