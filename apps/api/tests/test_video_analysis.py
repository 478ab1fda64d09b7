import os
from contextlib import ExitStack
from pathlib import Path
from unittest.mock import patch

import pytest

from config import settings
from multimodal.errors import InputError, ProbeError, SuggestionServiceError, SuggestionServiceUnavailable, ToolFailure
from multimodal.models import (
    FirstSecondVisualStats,
    LoudnessStats,
    ProbeResult,
    SilenceInterval,
    SpeechMetrics,
    Transcript,
    TranscriptSegment,
)
from services.video_analysis import analyze_video, build_critique, working_directory

REPORT_KEYS = {
    "durationSec",
    "cuts",
    "avgCutSec",
    "cutTimeline",
    "first3Cuts",
    "hookText",
    "first2sText",
    "captionsPresent",
    "silences",
    "silenceRatio",
    "loudness",
    "firstSecond",
    "wordsPerSec",
    "transcript",
    "suggestions",
    "critique",
}

SUGGESTIONS = ["[pacing/high] Cut the dead air at 0:05"]


def _patch_stages(stack, **overrides):
    """Patch every external stage with a quiet default; overrides win."""
    defaults = {
        "probe_media": {"return_value": ProbeResult(duration_sec=20, has_video=True, has_audio=True)},
        "detect_silences": {"return_value": []},
        "measure_loudness": {"return_value": LoudnessStats(mean_db=-20.0, max_db=-2.0)},
        "extract_hook_text": {"return_value": ""},
        "measure_opening_stats": {"return_value": FirstSecondVisualStats(yavg=90.0, ymin=10.0, ymax=220.0, contrast=210.0)},
        "analyze_speech": {"return_value": SpeechMetrics()},
        "compose_suggestions": {"return_value": SUGGESTIONS},
    }
    defaults.update(overrides)
    return {
        name: stack.enter_context(patch(f"services.video_analysis.{name}", **kwargs))
        for name, kwargs in defaults.items()
    }


def _run_dirs():
    root = Path(settings.ANALYSIS_WORK_DIR)
    return list(root.iterdir()) if root.exists() else []


@pytest.mark.asyncio
async def test_scenario_a_evenly_cut_captioned_video(video_file, llm_configured):
    timestamps = [2.4 * i for i in range(1, 11)]
    with ExitStack() as stack:
        _patch_stages(
            stack,
            probe_media={"return_value": ProbeResult(duration_sec=24, has_video=True, has_audio=True)},
            extract_hook_text={"return_value": "3 edits that doubled my views"},
        )
        stack.enter_context(patch("multimodal.scenes.scene_change_timestamps", return_value=timestamps))
        report = await analyze_video(str(video_file))

    payload = report.model_dump(by_alias=True)
    assert set(payload) == REPORT_KEYS
    assert payload["cuts"] == 10
    assert payload["avgCutSec"] == 2.4
    assert payload["first3Cuts"] == 1
    assert payload["captionsPresent"] is True
    assert payload["hookText"]
    assert payload["suggestions"] == SUGGESTIONS
    assert _run_dirs() == []


@pytest.mark.asyncio
async def test_scenario_b_static_video_tries_every_fallback(video_file, llm_configured, tmp_path):
    frames_dir = tmp_path / "static_frames"
    frames_dir.mkdir()
    frames = []
    for index in range(8):
        frame = frames_dir / f"frame_{index:05d}.jpg"
        frame.write_bytes(b"x" * 2048)
        frames.append(str(frame))

    with ExitStack() as stack:
        _patch_stages(stack)
        scene = stack.enter_context(patch("multimodal.scenes.scene_change_timestamps", return_value=[]))
        extract = stack.enter_context(patch("multimodal.scenes.extract_frames", return_value=frames))
        report = await analyze_video(str(video_file))

    assert scene.call_count == 2
    extract.assert_called_once()
    assert report.cuts == 0
    assert report.avg_cut_sec == 20
    assert report.cut_timeline == []


@pytest.mark.asyncio
async def test_scenario_c_missing_credentials_fail_before_report(video_file):
    with patch.object(settings, "OPENAI_API_KEY", ""), ExitStack() as stack:
        stages = _patch_stages(stack)
        with pytest.raises(SuggestionServiceUnavailable):
            await analyze_video(str(video_file))

    stages["compose_suggestions"].assert_not_called()
    assert _run_dirs() == []


@pytest.mark.asyncio
async def test_scenario_d_transcription_failure_is_swallowed(video_file, llm_configured):
    with patch.object(settings, "ENABLE_WHISPER_TRANSCRIPTION", True), ExitStack() as stack:
        stages = _patch_stages(stack, analyze_speech={"side_effect": RuntimeError("whisper 500")})
        stack.enter_context(patch("multimodal.scenes.scene_change_timestamps", return_value=[3.0, 9.0]))
        report = await analyze_video(str(video_file))

    stages["analyze_speech"].assert_called_once()
    payload = report.model_dump(by_alias=True)
    assert payload["transcript"] is None
    assert payload["wordsPerSec"] is None
    assert payload["first2sText"] == ""
    assert payload["cuts"] == 2
    assert payload["loudness"] == {"meanDb": -20.0, "maxDb": -2.0}
    assert payload["suggestions"] == SUGGESTIONS


@pytest.mark.asyncio
async def test_every_measurement_absent_still_yields_full_shape(video_file, llm_configured):
    failure = {"side_effect": ToolFailure("ffmpeg missing")}
    with ExitStack() as stack:
        _patch_stages(
            stack,
            probe_media={"side_effect": ProbeError("not media")},
            detect_silences=failure,
            measure_loudness=failure,
            extract_hook_text=failure,
            measure_opening_stats=failure,
        )
        stack.enter_context(patch("multimodal.scenes.scene_change_timestamps", side_effect=ToolFailure("x")))
        stack.enter_context(patch("multimodal.scenes.extract_frames", side_effect=ToolFailure("x")))
        report = await analyze_video(str(video_file))

    payload = report.model_dump(by_alias=True)
    assert set(payload) == REPORT_KEYS
    assert payload["durationSec"] == 0
    assert payload["cuts"] == 0
    assert payload["avgCutSec"] == 0
    assert payload["silences"] == []
    assert payload["silenceRatio"] == 0
    assert payload["loudness"] == {"meanDb": None, "maxDb": None}
    assert payload["firstSecond"] == {"yavg": None, "ymin": None, "ymax": None, "contrast": None}
    assert payload["hookText"] == ""
    assert payload["captionsPresent"] is False
    assert payload["transcript"] is None
    assert payload["critique"]["score"] == 50


@pytest.mark.asyncio
async def test_transcription_skipped_when_disabled(video_file, llm_configured):
    with patch.object(settings, "ENABLE_WHISPER_TRANSCRIPTION", False), ExitStack() as stack:
        stages = _patch_stages(stack)
        stack.enter_context(patch("multimodal.scenes.scene_change_timestamps", return_value=[1.0, 2.0]))
        await analyze_video(str(video_file))

    stages["analyze_speech"].assert_not_called()


@pytest.mark.asyncio
async def test_transcript_feeds_report_and_prompt(video_file, llm_configured):
    transcript = Transcript(
        text="Form check form check",
        segments=[TranscriptSegment(start=0.0, end=2.0, text="Form check form check")],
    )
    speech = SpeechMetrics(transcript=transcript, speech_seconds=2.0, words_per_sec=2.0, first2s_text="Form check form check")
    silences = [SilenceInterval(start=4.0, end=6.0), SilenceInterval(start=15.0)]

    with patch.object(settings, "ENABLE_WHISPER_TRANSCRIPTION", True), ExitStack() as stack:
        stages = _patch_stages(
            stack,
            analyze_speech={"return_value": speech},
            detect_silences={"return_value": silences},
        )
        stack.enter_context(patch("multimodal.scenes.scene_change_timestamps", return_value=[5.0]))
        report = await analyze_video(str(video_file))

    payload = report.model_dump(by_alias=True)
    assert payload["wordsPerSec"] == 2.0
    assert payload["transcript"]["segments"][0]["text"] == "Form check form check"
    assert payload["silences"] == [{"start": 4.0, "end": 6.0}, {"start": 15.0, "end": None}]
    assert payload["silenceRatio"] == 0.1
    assert payload["avgCutSec"] == 20
    metrics, transcript_text = stages["compose_suggestions"].call_args.args[:2]
    assert transcript_text == "Form check form check"
    assert metrics["cuts"] == 1


@pytest.mark.asyncio
async def test_suggestion_failure_still_cleans_working_dir(video_file, llm_configured):
    with ExitStack() as stack:
        _patch_stages(stack, compose_suggestions={"side_effect": SuggestionServiceError("bad json")})
        stack.enter_context(patch("multimodal.scenes.scene_change_timestamps", return_value=[1.0, 2.0]))
        with pytest.raises(SuggestionServiceError):
            await analyze_video(str(video_file))

    assert _run_dirs() == []


@pytest.mark.asyncio
async def test_missing_upload_is_an_input_error(tmp_path, llm_configured):
    with pytest.raises(InputError):
        await analyze_video(str(tmp_path / "nope.mp4"))
    assert _run_dirs() == []


def test_working_directory_removed_on_exception():
    with pytest.raises(RuntimeError):
        with working_directory("boom") as path:
            Path(path, "frame.jpg").write_bytes(b"x")
            raise RuntimeError("stage crashed")

    assert not os.path.exists(path)


def test_critique_rewards_measured_strengths():
    strong = build_critique(duration_sec=24, cuts=10, hook_text="Hook", captions_present=True)
    weak = build_critique(duration_sec=45, cuts=2, hook_text="", captions_present=False)

    assert strong.score == 90
    assert "Good pacing" in strong.score_parts
    assert weak.score == 50
    assert weak.tips[0] == "Overlay a 3-5 word promise at 0.2s"
    assert weak.tips[2] == "Trim setup; jump cut the fluff"
