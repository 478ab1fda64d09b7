from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ProbeResult(_Frozen):
    duration_sec: int = 0  # rounded, >= 0
    has_video: bool = False
    has_audio: bool = False


class CutEvent(_Frozen):
    timestamp: float


class CutDetection(_Frozen):
    """Outcome of one cut-detection strategy.

    `timeline` is None when the strategy only yields a count.
    """
    strategy: str
    count: int = 0
    timeline: Optional[List[CutEvent]] = None


class SilenceInterval(_Frozen):
    start: float
    end: Optional[float] = None  # None while unterminated

    @property
    def closed(self) -> bool:
        return self.end is not None

    @property
    def duration(self) -> float:
        if self.end is None:
            return 0.0
        return max(0.0, self.end - self.start)


class LoudnessStats(_Frozen):
    mean_db: Optional[float] = Field(default=None, alias="meanDb")
    max_db: Optional[float] = Field(default=None, alias="maxDb")


class FirstSecondVisualStats(_Frozen):
    yavg: Optional[float] = None
    ymin: Optional[float] = None
    ymax: Optional[float] = None
    contrast: Optional[float] = None


class TranscriptSegment(_Frozen):
    start: float
    end: float
    text: str


class Transcript(_Frozen):
    text: str
    segments: List[TranscriptSegment] = []


class SpeechMetrics(_Frozen):
    transcript: Optional[Transcript] = None
    speech_seconds: float = 0.0
    words_per_sec: Optional[float] = None
    first2s_text: str = ""


class Critique(_Frozen):
    score: int
    score_parts: List[str] = Field(default_factory=list, alias="scoreParts")
    tips: List[str] = Field(default_factory=list)


class CreatorContext(_Frozen):
    """Personalization fields from the upload form. Only used in the prompt."""
    niche: str = ""
    tone: str = ""
    goals: List[str] = []
    pillars: List[str] = []


class StageResult(_Frozen, Generic[T]):
    """Value of a best-effort stage, or absent with the reason it degraded."""
    value: Optional[T] = None
    reason: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.value is not None

    @classmethod
    def of(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def absent(cls, reason: str) -> "StageResult[T]":
        return cls(reason=reason)


class AnalysisReport(_Frozen):
    """Terminal aggregate of one pipeline run. Serialize with `by_alias=True`."""
    duration_sec: int = Field(alias="durationSec")
    cuts: int
    avg_cut_sec: float = Field(alias="avgCutSec")
    cut_timeline: List[float] = Field(alias="cutTimeline")
    first3_cuts: int = Field(alias="first3Cuts")
    hook_text: str = Field(alias="hookText")
    first2s_text: str = Field(alias="first2sText")
    captions_present: bool = Field(alias="captionsPresent")
    silences: List[SilenceInterval]
    silence_ratio: float = Field(alias="silenceRatio")
    loudness: LoudnessStats
    first_second: FirstSecondVisualStats = Field(alias="firstSecond")
    words_per_sec: Optional[float] = Field(alias="wordsPerSec")
    transcript: Optional[Transcript]
    suggestions: List[str]
    critique: Critique
