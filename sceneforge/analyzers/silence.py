"""Silence detection analyzer."""

import logging
from pathlib import Path
from typing import Sequence

from sceneforge.config import SilenceConfig
from sceneforge.errors import InputNotFoundError
from sceneforge.ffutil import FFmpeg
from sceneforge.models import Segment, SilenceInterval

logger = logging.getLogger(__name__)


def analyze_silence(
    engine: FFmpeg, input_path: Path, config: SilenceConfig
) -> list[SilenceInterval]:
    """Detect silent intervals in ``input_path``."""
    input_path = Path(input_path)
    if not input_path.is_file():
        raise InputNotFoundError(input_path)

    logger.info(
        "Detecting silence (threshold: %sdB, min: %ss)", config.threshold_db, config.min_duration
    )
    silences = engine.detect_silence(
        input_path, noise_db=config.threshold_db, min_duration=config.min_duration
    )
    logger.info("Found %d silence intervals", len(silences))
    return silences


def complement_of_silence(
    silences: Sequence[SilenceInterval],
    total_duration: float,
    padding: float,
) -> list[Segment]:
    """Return the "keep" intervals between silences.

    Each keep interval runs ``padding`` seconds into the following silence
    and the next one starts ``padding`` seconds before that silence ends, so
    speech onsets and tails are not clipped. An open trailing silence ends at
    ``total_duration``. Keep intervals that padding pushes into each other are
    merged, and empty ones are dropped.
    """
    if padding < 0:
        raise ValueError(f"padding must be non-negative, got {padding}")

    keep: list[Segment] = []

    def _emit(start: float, end: float) -> None:
        if end <= start:
            return
        if keep and start <= keep[-1].end:
            last = keep.pop()
            keep.append(Segment(start=last.start, end=max(last.end, end), label="keep"))
        else:
            keep.append(Segment(start=start, end=end, label="keep"))

    cursor = 0.0
    previous_start = None
    for i, silence in enumerate(silences):
        if previous_start is not None and silence.start < previous_start:
            raise ValueError(
                f"silence intervals are not ordered: {silence.start} after {previous_start}"
            )
        if silence.is_open and i != len(silences) - 1:
            raise ValueError(f"open silence at {silence.start}s is not the last interval")
        previous_start = silence.start

        end = total_duration if silence.end is None else silence.end
        if silence.start > cursor:
            _emit(cursor, min(silence.start + padding, end))
        cursor = max(end - padding, silence.start)

    if cursor < total_duration:
        _emit(cursor, total_duration)

    return keep
