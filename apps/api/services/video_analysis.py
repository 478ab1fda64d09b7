import asyncio
import logging
import os
import shutil
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from config import openai_key_configured, require_openai_api_key, settings
from multimodal.audio import detect_silences, measure_loudness, silence_ratio
from multimodal.errors import InputError
from multimodal.llm import compose_suggestions
from multimodal.models import (
    AnalysisReport,
    CreatorContext,
    Critique,
    CutDetection,
    FirstSecondVisualStats,
    LoudnessStats,
    SpeechMetrics,
    StageResult,
)
from multimodal.ocr import extract_hook_text, get_text_reader
from multimodal.scenes import CutContext, average_cut_seconds, cuts_within, detect_cuts
from multimodal.speech import analyze_speech
from multimodal.video import measure_opening_stats, probe_media

logger = logging.getLogger(__name__)

IDEAL_MIN_SECONDS = 18
IDEAL_MAX_SECONDS = 32
GOOD_PACING_CUTS = 8


@contextmanager
def working_directory(run_id: str) -> Iterator[str]:
    """Ephemeral directory owned by one run; removed on every exit path."""
    path = os.path.join(settings.ANALYSIS_WORK_DIR, f"run_{run_id}")
    os.makedirs(path)
    try:
        yield path
    finally:
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
            except Exception as e:
                logger.error(f"Error cleaning up working dir {path}: {e}")


async def _best_effort(label: str, func: Callable[..., Any], *args: Any) -> StageResult:
    """Run a blocking stage in a worker thread; any failure becomes an absent result."""
    try:
        value = await asyncio.to_thread(func, *args)
    except Exception as e:
        logger.warning(f"Stage '{label}' degraded to absent: {e}")
        return StageResult.absent(str(e))
    return StageResult.of(value)


async def _speech_stage(video_path: str, work_dir: str) -> StageResult:
    if not settings.ENABLE_WHISPER_TRANSCRIPTION:
        return StageResult.absent("transcription disabled")
    if not openai_key_configured():
        return StageResult.absent("transcription not configured")
    return await _best_effort("speech", analyze_speech, video_path, work_dir, settings.OPENAI_API_KEY)


def build_critique(duration_sec: int, cuts: int, hook_text: str, captions_present: bool) -> Critique:
    """Heuristic feedback card over the measured metrics."""
    score = 50
    parts: List[str] = []
    if IDEAL_MIN_SECONDS <= duration_sec <= IDEAL_MAX_SECONDS:
        score += 10
        parts.append("Ideal length")
    else:
        parts.append("Trim/extend to 20-30s")
    if captions_present:
        score += 10
        parts.append("Captions on")
    else:
        parts.append("Add captions (many watch muted)")
    if hook_text:
        score += 10
        parts.append("Text in first second")
    else:
        parts.append("Add text in first 1s for hook")
    if cuts >= GOOD_PACING_CUTS:
        score += 10
        parts.append("Good pacing")
    else:
        parts.append("Increase cuts to ~1s")

    if duration_sec > IDEAL_MAX_SECONDS:
        length_tip = "Trim setup; jump cut the fluff"
    elif duration_sec < IDEAL_MIN_SECONDS:
        length_tip = "Add one visual step to increase watch time"
    else:
        length_tip = "Consider a micro-tease for part 2"
    tips = [
        "Keep first frame high-contrast text" if hook_text else "Overlay a 3-5 word promise at 0.2s",
        "Hold payoff 1.5s then CTA" if cuts >= GOOD_PACING_CUTS else "Cut to a new angle/overlay every 0.8-1.2s",
        length_tip,
    ]
    return Critique(score=min(100, score), score_parts=parts, tips=tips)


def build_metrics(
    duration_sec: int,
    cuts: CutDetection,
    hook_text: str,
    silences: StageResult,
    loudness: StageResult,
    opening: StageResult,
    speech: StageResult,
) -> Dict[str, Any]:
    """Report fields minus suggestions/critique, with absent values as null/empty."""
    silence_list = silences.value or []
    speech_value: SpeechMetrics = speech.value or SpeechMetrics()
    loudness_value: LoudnessStats = loudness.value or LoudnessStats()
    opening_value: FirstSecondVisualStats = opening.value or FirstSecondVisualStats()
    timeline = [round(event.timestamp, 2) for event in (cuts.timeline or [])]

    return {
        "durationSec": duration_sec,
        "cuts": cuts.count,
        "avgCutSec": average_cut_seconds(duration_sec, cuts.count),
        "cutTimeline": timeline,
        "first3Cuts": cuts_within(cuts.timeline),
        "hookText": hook_text,
        "first2sText": speech_value.first2s_text,
        "captionsPresent": bool(hook_text),
        "silences": [interval.model_dump() for interval in silence_list],
        "silenceRatio": silence_ratio(silence_list, duration_sec),
        "loudness": loudness_value.model_dump(by_alias=True),
        "firstSecond": opening_value.model_dump(by_alias=True),
        "wordsPerSec": speech_value.words_per_sec,
        "transcript": speech_value.transcript.model_dump() if speech_value.transcript else None,
    }


async def analyze_video(
    video_path: str,
    context: Optional[CreatorContext] = None,
    run_id: Optional[str] = None,
) -> AnalysisReport:
    """
    Run every measurement stage over one uploaded video and compose suggestions.

    Measurement stages are best-effort. The suggestion service is the one
    fatal dependency: SuggestionServiceUnavailable / SuggestionServiceError
    propagate and no report is produced.
    """
    if not video_path or not os.path.isfile(video_path):
        raise InputError("Uploaded video is missing or unreadable", code="unreadable_file")

    context = context or CreatorContext()
    run_id = run_id or uuid.uuid4().hex

    with working_directory(run_id) as work_dir:
        api_key = require_openai_api_key()
        logger.info(f"Starting analysis run {run_id} for {os.path.basename(video_path)}")

        probe = await _best_effort("probe", probe_media, video_path)
        duration_sec = probe.value.duration_sec if probe.present else 0

        silences, loudness, hook, opening, speech = await asyncio.gather(
            _best_effort("silences", detect_silences, video_path),
            _best_effort("loudness", measure_loudness, video_path),
            _best_effort("hook text", extract_hook_text, video_path, work_dir, get_text_reader()),
            _best_effort("opening stats", measure_opening_stats, video_path),
            _speech_stage(video_path, work_dir),
        )

        # The silence fallback of the cut chain needs the audio profile first.
        cut_ctx = CutContext(
            video_path=video_path,
            work_dir=work_dir,
            silences=silences.value or [],
        )
        cut_result = await _best_effort("cuts", detect_cuts, cut_ctx)
        cuts: CutDetection = cut_result.value or CutDetection(strategy="none", count=0)

        hook_text = hook.value or ""
        metrics = build_metrics(duration_sec, cuts, hook_text, silences, loudness, opening, speech)
        transcript_text = (metrics["transcript"] or {}).get("text", "")

        suggestions = await asyncio.to_thread(compose_suggestions, metrics, transcript_text, context, api_key)
        critique = build_critique(duration_sec, cuts.count, hook_text, metrics["captionsPresent"])

        report = AnalysisReport.model_validate(
            {
                **metrics,
                "suggestions": suggestions,
                "critique": critique.model_dump(by_alias=True),
            }
        )
        logger.info(
            f"Analysis run {run_id} completed: duration={duration_sec}s cuts={cuts.count} "
            f"via={cuts.strategy} suggestions={len(suggestions)}"
        )
        return report
