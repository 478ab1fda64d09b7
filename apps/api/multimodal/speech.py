import logging
import os
from typing import Any, List, Optional

from .audio import extract_audio, transcribe_audio
from .models import SpeechMetrics, Transcript, TranscriptSegment

logger = logging.getLogger(__name__)

EARLY_SPEECH_WINDOW_SECONDS = 2.0


def _safe_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _segment_field(segment: Any, field: str, default: Any) -> Any:
    if isinstance(segment, dict):
        return segment.get(field, default)
    return getattr(segment, field, default)


def to_transcript(raw: Any) -> Transcript:
    """Normalize a Whisper response (SDK object or dict) into a Transcript."""
    segments_raw = _segment_field(raw, "segments", None) or []
    full_text = str(_segment_field(raw, "text", "") or "").strip()

    segments: List[TranscriptSegment] = []
    for seg in segments_raw:
        start = _safe_float(_segment_field(seg, "start", 0.0), 0.0)
        end = _safe_float(_segment_field(seg, "end", start), start)
        text = str(_segment_field(seg, "text", "") or "").strip()
        segments.append(TranscriptSegment(start=start, end=end, text=text))
    segments.sort(key=lambda s: s.start)

    if not full_text and segments:
        full_text = " ".join(seg.text for seg in segments if seg.text)
    return Transcript(text=full_text, segments=segments)


def speech_metrics(transcript: Optional[Transcript]) -> SpeechMetrics:
    if transcript is None:
        return SpeechMetrics()

    speech_seconds = sum(max(0.0, seg.end - seg.start) for seg in transcript.segments)
    word_count = len(transcript.text.split())
    words_per_sec = round(word_count / speech_seconds, 2) if speech_seconds > 0 else None
    first2s_text = " ".join(
        seg.text for seg in transcript.segments
        if seg.start < EARLY_SPEECH_WINDOW_SECONDS and seg.text
    ).strip()

    return SpeechMetrics(
        transcript=transcript,
        speech_seconds=round(speech_seconds, 2),
        words_per_sec=words_per_sec,
        first2s_text=first2s_text,
    )


def analyze_speech(video_path: str, work_dir: str, api_key: str) -> SpeechMetrics:
    """Extract audio, transcribe it and derive speech metrics. Raises on failure."""
    audio_path = os.path.join(work_dir, "audio.wav")
    extract_audio(video_path, audio_path)
    raw = transcribe_audio(audio_path, api_key)
    transcript = to_transcript(raw)
    logger.info(f"Transcribed {len(transcript.segments)} segments")
    return speech_metrics(transcript)
