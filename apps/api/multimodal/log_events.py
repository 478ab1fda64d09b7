"""
Incremental parser for ffmpeg diagnostic output.

Filters report their measurements as informational log lines. The parser turns
those lines into typed events so the stages never regex over raw logs.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Union


@dataclass(frozen=True)
class CutDetected:
    timestamp: float


@dataclass(frozen=True)
class SilenceStart:
    timestamp: float


@dataclass(frozen=True)
class SilenceEnd:
    timestamp: float


@dataclass(frozen=True)
class VolumeStat:
    kind: str  # "mean" or "max"
    db: float


@dataclass(frozen=True)
class SignalStat:
    key: str  # YAVG, YMIN, YMAX
    value: float


ToolEvent = Union[CutDetected, SilenceStart, SilenceEnd, VolumeStat, SignalStat]

_NUMBER = r"(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)"

_PTS_TIME = re.compile(r"pts_time:\s*" + _NUMBER)
_SILENCE_START = re.compile(r"silence_start:\s*" + _NUMBER)
_SILENCE_END = re.compile(r"silence_end:\s*" + _NUMBER)
_VOLUME = re.compile(r"(mean|max)_volume:\s*" + _NUMBER + r"\s*dB")
_SIGNALSTATS = re.compile(r"lavfi\.signalstats\.(YAVG|YMIN|YMAX)=" + _NUMBER)


class ToolLogParser:
    """Consumes log lines one at a time and emits the events they carry."""

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> List[ToolEvent]:
        """Feed raw text, which may end mid-line. Complete lines are parsed."""
        self._buffer += chunk
        *lines, self._buffer = re.split(r"\r?\n|\r", self._buffer)
        events: List[ToolEvent] = []
        for line in lines:
            events.extend(self.parse_line(line))
        return events

    def close(self) -> List[ToolEvent]:
        """Flush a trailing line that had no newline."""
        remainder, self._buffer = self._buffer, ""
        return self.parse_line(remainder) if remainder else []

    @staticmethod
    def parse_line(line: str) -> List[ToolEvent]:
        events: List[ToolEvent] = []
        # showinfo sits behind the scene select filter, so each frame it reports is a cut.
        if "showinfo" in line:
            match = _PTS_TIME.search(line)
            if match:
                events.append(CutDetected(float(match.group(1))))
        match = _SILENCE_START.search(line)
        if match:
            events.append(SilenceStart(float(match.group(1))))
        match = _SILENCE_END.search(line)
        if match:
            events.append(SilenceEnd(float(match.group(1))))
        match = _VOLUME.search(line)
        if match:
            events.append(VolumeStat(match.group(1), float(match.group(2))))
        match = _SIGNALSTATS.search(line)
        if match:
            events.append(SignalStat(match.group(1), float(match.group(2))))
        return events


def parse_log(text: str) -> Iterator[ToolEvent]:
    """Parse a complete log."""
    parser = ToolLogParser()
    yield from parser.feed(text)
    yield from parser.close()


def events_of(events: Iterable[ToolEvent], kind: type) -> List:
    return [event for event in events if isinstance(event, kind)]
