"""Scene detection analyzer and segment reconciliation."""

import logging
from pathlib import Path
from typing import Sequence

from sceneforge.errors import EmptyResultError, InputNotFoundError
from sceneforge.ffutil import FFmpeg
from sceneforge.models import Segment

logger = logging.getLogger(__name__)


def detect_scenes(engine: FFmpeg, input_path: Path, threshold: float) -> list[float]:
    """Return scene-change timestamps for ``input_path`` in time order.

    The file is checked before ffmpeg is started. Repeated timestamps, which
    the detector emits now and then, are collapsed.
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        raise InputNotFoundError(input_path)

    raw = engine.scan_for_changes(input_path, threshold)
    points: list[float] = []
    for t in raw:
        if points and t == points[-1]:
            continue
        points.append(t)

    logger.info("Detected %d scene changes at threshold %s", len(points), threshold)
    return points


def build_segments(change_points: Sequence[float], total_duration: float) -> list[Segment]:
    """Turn change points into contiguous segments covering ``[0, total_duration]``.

    No change points means the whole video is one segment. Exact duplicates
    are dropped with a warning, as are points on or outside the video bounds;
    a point earlier than its predecessor is an error.
    """
    if total_duration < 0:
        raise ValueError(f"total duration must be non-negative, got {total_duration}")

    boundaries = [0.0]
    previous = None
    for t in change_points:
        if previous is not None and t < previous:
            raise ValueError(f"change points are not increasing: {t} after {previous}")
        if t == previous:
            logger.warning("Ignoring duplicate change point at %.3fs", t)
            continue
        previous = t
        if t <= 0.0 or t >= total_duration:
            logger.warning("Ignoring change point %.3fs outside (0, %.3f)", t, total_duration)
            continue
        boundaries.append(float(t))
    boundaries.append(float(total_duration))

    return [
        Segment(start=start, end=end)
        for start, end in zip(boundaries, boundaries[1:])
        if end > start
    ]


def filter_segments(segments: Sequence[Segment], min_duration: float) -> list[Segment]:
    """Keep segments at least ``min_duration`` long, in their original order.

    Short segments are dropped, not folded into their neighbours.
    """
    kept = [s for s in segments if s.duration >= min_duration]
    if not kept:
        raise EmptyResultError(
            f"No segments of at least {min_duration}s among {len(segments)}; "
            "try a lower minimum duration or scene threshold",
            original_count=len(segments),
            threshold=min_duration,
        )
    if len(kept) < len(segments):
        logger.info("Dropped %d segments shorter than %ss", len(segments) - len(kept), min_duration)
    return kept
