"""Shared data types used across SceneForge."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Segment:
    """A contiguous time range in seconds.

    Scene segments carry ``label="scene"``; the intervals kept after silence
    removal carry ``label="keep"``.
    """

    start: float
    end: float
    label: str = "scene"

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class SilenceInterval:
    """A silent span reported by ffmpeg.

    ``end`` is None when the stream finished while still silent.
    """

    start: float
    end: float | None = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def duration(self) -> float | None:
        if self.end is None:
            return None
        return self.end - self.start


@dataclass(frozen=True)
class CandidateFrame:
    """A sampled timestamp and the quality score it earned."""

    timestamp: float
    score: float


@dataclass(frozen=True)
class VideoInfo:
    """Metadata extracted from a media file via ffprobe."""

    width: int
    height: int
    duration: float
    fps: float
    has_audio: bool = False
