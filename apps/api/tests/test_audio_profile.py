from unittest.mock import patch

import pytest

from multimodal.audio import build_silence_intervals, detect_silences, measure_loudness, silence_ratio
from multimodal.errors import ToolFailure
from multimodal.log_events import SilenceEnd, SilenceStart
from multimodal.models import LoudnessStats, SilenceInterval


def test_end_marker_closes_most_recent_interval():
    intervals = build_silence_intervals(
        [SilenceStart(1.0), SilenceEnd(1.5), SilenceStart(4.0), SilenceEnd(5.25)]
    )

    assert intervals == [SilenceInterval(start=1.0, end=1.5), SilenceInterval(start=4.0, end=5.25)]


def test_unterminated_interval_is_kept_but_not_counted_in_ratio():
    intervals = build_silence_intervals([SilenceStart(2.0), SilenceEnd(3.0), SilenceStart(9.0)])

    assert len(intervals) == 2
    assert intervals[-1].end is None
    assert intervals[-1].duration == 0.0
    assert silence_ratio(intervals, 10) == 0.1


def test_stray_end_marker_is_ignored():
    assert build_silence_intervals([SilenceEnd(1.0)]) == []


def test_silence_ratio_is_zero_without_intervals():
    assert silence_ratio([], 20) == 0.0


@pytest.mark.parametrize("duration", [0, 1, 5, 20])
def test_silence_ratio_stays_within_unit_range(duration):
    intervals = [SilenceInterval(start=0.0, end=30.0)]

    ratio = silence_ratio(intervals, duration)

    assert 0.0 <= ratio <= 1.0


def test_detect_silences_parses_tool_log():
    log = (
        "[silencedetect @ 0x1] silence_start: 0.4\n"
        "[silencedetect @ 0x1] silence_end: 1.1 | silence_duration: 0.7\n"
    )
    with patch("multimodal.audio.run_ffmpeg", return_value=log):
        intervals = detect_silences("/tmp/clip.mp4")

    assert intervals == [SilenceInterval(start=0.4, end=1.1)]


def test_loudness_with_only_mean_measurement():
    with patch("multimodal.audio.run_ffmpeg", return_value="[Parsed_volumedetect_0 @ 0x2] mean_volume: -18.2 dB\n"):
        stats = measure_loudness("/tmp/clip.mp4")

    assert stats == LoudnessStats(mean_db=-18.2, max_db=None)
    assert stats.model_dump(by_alias=True) == {"meanDb": -18.2, "maxDb": None}


def test_loudness_tool_failure_propagates_to_stage_wrapper():
    with patch("multimodal.audio.run_ffmpeg", side_effect=ToolFailure("no audio stream")):
        with pytest.raises(ToolFailure):
            measure_loudness("/tmp/clip.mp4")
