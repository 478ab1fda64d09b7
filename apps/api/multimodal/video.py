import os
import glob
import logging
import subprocess
from typing import List

import ffmpeg

from config import settings
from .errors import ProbeError
from .ffmpeg_runner import run_ffmpeg
from .log_events import SignalStat, events_of, parse_log
from .models import FirstSecondVisualStats, ProbeResult

logger = logging.getLogger(__name__)

OPENING_WINDOW_SECONDS = 1.2
STATS_WIDTH = 160


def probe_media(video_path: str) -> ProbeResult:
    """
    Probe container metadata and return duration in whole seconds plus
    stream presence. Raises ProbeError when the file is not decodable media.
    """
    try:
        probe = ffmpeg.probe(video_path, timeout=settings.FFMPEG_TIMEOUT_SECONDS)
    except ffmpeg.Error as e:
        detail = e.stderr.decode(errors="replace").strip() if e.stderr else str(e)
        raise ProbeError(f"Could not probe {video_path}: {detail}") from e
    except subprocess.TimeoutExpired as e:
        raise ProbeError(f"ffprobe timed out after {e.timeout}s on {video_path}") from e
    except OSError as e:
        raise ProbeError(f"Could not run ffprobe: {e}") from e

    streams = probe.get("streams", []) or []
    if not streams:
        raise ProbeError(f"No media streams found in {video_path}")

    fmt = probe.get("format", {}) or {}
    try:
        duration = float(fmt.get("duration", 0.0) or 0.0)
    except (TypeError, ValueError):
        duration = 0.0
    if duration <= 0:
        for stream in streams:
            if stream.get("codec_type") == "video":
                try:
                    duration = float(stream.get("duration", 0.0) or 0.0)
                except (TypeError, ValueError):
                    continue
                if duration > 0:
                    break
    if duration <= 0:
        logger.warning(f"No duration reported for {video_path}; using 0")

    return ProbeResult(
        duration_sec=max(0, int(round(duration))),
        has_video=any(s.get("codec_type") == "video" for s in streams),
        has_audio=any(s.get("codec_type") == "audio" for s in streams),
    )


def extract_frame_at(video_path: str, offset: float, output_path: str) -> str:
    """Extract a single still frame at `offset` seconds."""
    # ffmpeg -ss 0.5 -i video.mp4 -frames:v 1 frame.jpg
    stream = ffmpeg.input(video_path, ss=offset).output(output_path, vframes=1)
    run_ffmpeg(stream)
    return output_path


def extract_frames(video_path: str, output_dir: str, fps: float = 4.0, width: int = STATS_WIDTH) -> List[str]:
    """
    Extract downscaled frames at a fixed rate.
    Returns list of paths to extracted frames in playback order.
    """
    if not os.path.exists(output_dir):
        os.makedirs(output_dir)

    output_pattern = os.path.join(output_dir, "frame_%05d.jpg")

    # ffmpeg -i video.mp4 -vf fps=4,scale=160:-2 frame_%05d.jpg
    stream = (
        ffmpeg
        .input(video_path)
        .filter("fps", fps=fps)
        .filter("scale", width, -2)
        .output(output_pattern)
    )
    run_ffmpeg(stream)
    return sorted(glob.glob(os.path.join(output_dir, "frame_*.jpg")))


def measure_opening_stats(video_path: str, window: float = OPENING_WINDOW_SECONDS) -> FirstSecondVisualStats:
    """
    Brightness/contrast over the opening window.

    yavg is the mean of per-frame YAVG; ymin/ymax are the extremes across frames.
    """
    stream = (
        ffmpeg
        .input(video_path, t=window)
        .video
        .filter("scale", STATS_WIDTH, -2)
        .filter("signalstats")
        .filter("metadata", mode="print")
        .output("-", format="null")
    )
    stats = events_of(parse_log(run_ffmpeg(stream)), SignalStat)
    return summarize_signal_stats(stats)


def summarize_signal_stats(stats: List[SignalStat]) -> FirstSecondVisualStats:
    averages = [s.value for s in stats if s.key == "YAVG"]
    minimums = [s.value for s in stats if s.key == "YMIN"]
    maximums = [s.value for s in stats if s.key == "YMAX"]

    yavg = round(sum(averages) / len(averages), 2) if averages else None
    ymin = min(minimums) if minimums else None
    ymax = max(maximums) if maximums else None
    contrast = ymax - ymin if ymin is not None and ymax is not None else None
    return FirstSecondVisualStats(yavg=yavg, ymin=ymin, ymax=ymax, contrast=contrast)
