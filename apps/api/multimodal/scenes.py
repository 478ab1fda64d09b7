"""
Cut detection as an ordered chain of strategies.

Each strategy returns a CutDetection; a count of zero means "no result" and the
chain moves on to the next strategy. Tool failures inside a strategy count as
zero cuts.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import ffmpeg

from .errors import ToolFailure
from .ffmpeg_runner import run_ffmpeg
from .log_events import CutDetected, events_of, parse_log
from .models import CutDetection, CutEvent, SilenceInterval
from .video import extract_frames

logger = logging.getLogger(__name__)

STRICT_SCENE_THRESHOLD = 0.32
LOOSE_SCENE_THRESHOLD = 0.15
SCENE_SCALE_WIDTH = 320
MIN_BOUNDARY_SILENCE_SECONDS = 0.25
FRAME_SAMPLE_FPS = 4.0
FRAME_SIZE_DELTA_THRESHOLD = 0.15
FIRST_CUTS_WINDOW_SECONDS = 3.0


@dataclass
class CutContext:
    video_path: str
    work_dir: str
    silences: List[SilenceInterval] = field(default_factory=list)
    previous: List[CutDetection] = field(default_factory=list)


class CutDetectionStrategy(ABC):
    name = "strategy"

    @abstractmethod
    def detect(self, ctx: CutContext) -> CutDetection:
        ...

    def none(self) -> CutDetection:
        return CutDetection(strategy=self.name, count=0)


def scene_change_timestamps(video_path: str, threshold: float) -> List[float]:
    # ffmpeg -i video.mp4 -vf scale=320:-2,select='gt(scene,0.32)',showinfo -f null -
    stream = (
        ffmpeg
        .input(video_path)
        .video
        .filter("scale", SCENE_SCALE_WIDTH, -2)
        .filter("select", f"gt(scene,{threshold})")
        .filter("showinfo")
        .output("-", format="null")
    )
    cuts = events_of(parse_log(run_ffmpeg(stream)), CutDetected)
    return sorted(cut.timestamp for cut in cuts)


class SceneChangeStrategy(CutDetectionStrategy):
    """Scene-change filter at a fixed threshold over a downscaled stream.

    With `merge_previous`, timestamps from earlier scene passes are merged in.
    """

    def __init__(self, threshold: float, name: str, merge_previous: bool = False):
        self.threshold = threshold
        self.name = name
        self.merge_previous = merge_previous

    def detect(self, ctx: CutContext) -> CutDetection:
        try:
            timestamps = scene_change_timestamps(ctx.video_path, self.threshold)
        except ToolFailure as e:
            logger.warning(f"Scene detection at {self.threshold} failed: {e}")
            return self.none()

        if self.merge_previous:
            merged = set(timestamps)
            for earlier in ctx.previous:
                if earlier.timeline:
                    merged.update(event.timestamp for event in earlier.timeline)
            timestamps = sorted(merged)

        return CutDetection(
            strategy=self.name,
            count=len(timestamps),
            timeline=[CutEvent(timestamp=t) for t in timestamps],
        )


class SilenceBoundaryStrategy(CutDetectionStrategy):
    """Treat each closed silence of at least `min_seconds` as a shot boundary."""

    name = "silence"

    def __init__(self, min_seconds: float = MIN_BOUNDARY_SILENCE_SECONDS):
        self.min_seconds = min_seconds

    def detect(self, ctx: CutContext) -> CutDetection:
        qualifying = [s for s in ctx.silences if s.closed and s.duration >= self.min_seconds]
        return CutDetection(strategy=self.name, count=max(0, len(qualifying) - 1))


class FrameSizeDeltaStrategy(CutDetectionStrategy):
    """Sample frames and count jumps in encoded size between neighbours."""

    name = "frame_diff"

    def __init__(self, fps: float = FRAME_SAMPLE_FPS, threshold: float = FRAME_SIZE_DELTA_THRESHOLD):
        self.fps = fps
        self.threshold = threshold

    def detect(self, ctx: CutContext) -> CutDetection:
        frames_dir = os.path.join(ctx.work_dir, "diff_frames")
        try:
            frames = extract_frames(ctx.video_path, frames_dir, fps=self.fps)
        except ToolFailure as e:
            logger.warning(f"Frame sampling for cut fallback failed: {e}")
            return self.none()
        sizes = [os.path.getsize(path) for path in frames]
        return CutDetection(strategy=self.name, count=count_size_jumps(sizes, self.threshold))


def count_size_jumps(sizes: Sequence[int], threshold: float = FRAME_SIZE_DELTA_THRESHOLD) -> int:
    jumps = 0
    for previous, current in zip(sizes, sizes[1:]):
        delta = abs(current - previous) / max(previous, 1)
        if delta > threshold:
            jumps += 1
    return jumps


def default_strategies() -> List[CutDetectionStrategy]:
    return [
        SceneChangeStrategy(STRICT_SCENE_THRESHOLD, name="scene_strict"),
        SceneChangeStrategy(LOOSE_SCENE_THRESHOLD, name="scene_loose", merge_previous=True),
        SilenceBoundaryStrategy(),
        FrameSizeDeltaStrategy(),
    ]


def detect_cuts(ctx: CutContext, strategies: Optional[List[CutDetectionStrategy]] = None) -> CutDetection:
    """Try each strategy in order; the next one runs only when the count is zero."""
    strategies = default_strategies() if strategies is None else strategies
    result = CutDetection(strategy="none", count=0)
    for strategy in strategies:
        result = strategy.detect(ctx)
        ctx.previous.append(result)
        logger.info(f"Cut strategy {strategy.name} found {result.count} cuts")
        if result.count > 0:
            break
    return result


def average_cut_seconds(duration_sec: float, cuts: int) -> float:
    if cuts > 1:
        return round(duration_sec / cuts, 1)
    return float(duration_sec)


def cuts_within(timeline: Optional[List[CutEvent]], window: float = FIRST_CUTS_WINDOW_SECONDS) -> int:
    if not timeline:
        return 0
    return sum(1 for event in timeline if event.timestamp <= window)
