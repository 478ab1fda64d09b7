import logging
from typing import Any, Iterable, List

import ffmpeg
from openai import OpenAI

from config import settings
from .ffmpeg_runner import run_ffmpeg
from .log_events import SilenceEnd, SilenceStart, ToolEvent, VolumeStat, parse_log
from .models import LoudnessStats, SilenceInterval

logger = logging.getLogger(__name__)

SILENCE_NOISE_DB = -30
SILENCE_MIN_SECONDS = 0.3


def extract_audio(video_path: str, output_path: str) -> str:
    """
    Extract a mono 16 kHz PCM track for speech-to-text.
    Returns path to audio file.
    """
    # ffmpeg -i video.mp4 -vn -ac 1 -ar 16000 -acodec pcm_s16le audio.wav
    stream = (
        ffmpeg
        .input(video_path)
        .output(output_path, vn=None, ac=1, ar=16000, acodec="pcm_s16le")
    )
    run_ffmpeg(stream)
    return output_path


def transcribe_audio(audio_path: str, api_key: str) -> Any:
    """
    Transcribe audio using OpenAI Whisper API.
    Returns standard transcription object with segments/timestamps.
    """
    client = OpenAI(api_key=api_key, timeout=settings.OPENAI_TIMEOUT_SECONDS * 3)
    with open(audio_path, "rb") as audio_file:
        return client.audio.transcriptions.create(
            model=settings.WHISPER_MODEL,
            file=audio_file,
            response_format="verbose_json",
            timestamp_granularities=["segment"],
        )


def detect_silences(video_path: str) -> List[SilenceInterval]:
    # ffmpeg -i video.mp4 -af silencedetect=noise=-30dB:d=0.3 -f null -
    stream = (
        ffmpeg
        .input(video_path)
        .audio
        .filter("silencedetect", noise=f"{SILENCE_NOISE_DB}dB", d=SILENCE_MIN_SECONDS)
        .output("-", format="null")
    )
    intervals = build_silence_intervals(parse_log(run_ffmpeg(stream)))
    logger.info(f"Detected {len(intervals)} silence intervals")
    return intervals


def build_silence_intervals(events: Iterable[ToolEvent]) -> List[SilenceInterval]:
    """
    Pair silence markers. An end marker closes the most recently opened
    interval; an interval still open at stream end is kept with end=None.
    """
    intervals: List[SilenceInterval] = []
    open_index = None
    for event in events:
        if isinstance(event, SilenceStart):
            intervals.append(SilenceInterval(start=event.timestamp))
            open_index = len(intervals) - 1
        elif isinstance(event, SilenceEnd) and open_index is not None:
            opened = intervals[open_index]
            intervals[open_index] = SilenceInterval(start=opened.start, end=max(opened.start, event.timestamp))
            open_index = None
    return intervals


def silence_ratio(silences: List[SilenceInterval], duration_sec: float) -> float:
    total = sum(interval.duration for interval in silences)
    return round(min(1.0, total / max(1.0, float(duration_sec))), 3)


def measure_loudness(video_path: str) -> LoudnessStats:
    # ffmpeg -i video.mp4 -af volumedetect -f null -
    stream = (
        ffmpeg
        .input(video_path)
        .audio
        .filter("volumedetect")
        .output("-", format="null")
    )
    mean_db = None
    max_db = None
    for event in parse_log(run_ffmpeg(stream)):
        if isinstance(event, VolumeStat):
            if event.kind == "mean":
                mean_db = event.db
            elif event.kind == "max":
                max_db = event.db
    return LoudnessStats(mean_db=mean_db, max_db=max_db)
