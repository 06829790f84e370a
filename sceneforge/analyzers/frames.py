"""Best-frame selection for thumbnails."""

import logging
from pathlib import Path
from typing import Callable

from sceneforge.ffutil import FFmpeg
from sceneforge.models import CandidateFrame

logger = logging.getLogger(__name__)

QualityFn = Callable[[float], float]

# Intro and outro are skipped when sampling.
WINDOW_START = 0.1
WINDOW_END = 0.9


def sample_candidates(duration: float, count: int) -> list[float]:
    """Evenly spaced timestamps inside the 10%-90% window."""
    if count <= 0:
        raise ValueError(f"candidate count must be positive, got {count}")
    start = duration * WINDOW_START
    interval = (duration * WINDOW_END - start) / count
    return [start + i * interval for i in range(count)]


def select_best_frame(duration: float, candidate_count: int, quality_fn: QualityFn) -> CandidateFrame:
    """Score each sampled candidate and return the best one.

    Ties go to the earliest candidate, so an unchanged video always yields
    the same frame.
    """
    best: CandidateFrame | None = None
    for t in sample_candidates(duration, candidate_count):
        frame = CandidateFrame(timestamp=t, score=quality_fn(t))
        if best is None or frame.score > best.score:
            best = frame

    logger.info("Best frame at %.2fs (score: %.2f)", best.timestamp, best.score)
    return best


def position_quality(duration: float) -> QualityFn:
    """Favour frames near the middle of the video.

    Base score 50, up to +20 at the midpoint falling off linearly, and -20
    for anything outside the sampling window. Clamped to [0, 100].
    """

    def score(timestamp: float) -> float:
        if duration <= 0:
            return 50.0
        normalized = timestamp / duration
        value = 50.0 + 20.0 - abs(normalized - 0.5) * 40.0
        if timestamp < duration * WINDOW_START or timestamp > duration * WINDOW_END:
            value -= 20.0
        return max(0.0, min(100.0, value))

    return score


def brightness_quality(engine: FFmpeg, input_path: Path, duration: float) -> QualityFn:
    """Positional score minus up to 40 points for frames far from mid-grey.

    Costs one ffmpeg call per candidate.
    """
    positional = position_quality(duration)

    def score(timestamp: float) -> float:
        luma = engine.frame_brightness(input_path, timestamp)
        penalty = abs(luma - 128.0) / 128.0 * 40.0
        return max(0.0, min(100.0, positional(timestamp) - penalty))

    return score
