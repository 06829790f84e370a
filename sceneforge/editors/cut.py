"""Cut editor — splits a video into clips or stitches selected ranges back together."""

import logging
import tempfile
from pathlib import Path
from typing import Callable, Sequence

from sceneforge.errors import EngineInvocationError, TrimError
from sceneforge.ffutil import FFmpeg
from sceneforge.models import Segment

logger = logging.getLogger(__name__)


def scene_clip_path(input_path: Path, output_dir: Path, index: int) -> Path:
    """``<stem>_scene_NNN<ext>`` for the 0-based ``index``."""
    suffix = input_path.suffix or ".mp4"
    return output_dir / f"{input_path.stem}_scene_{index + 1:03d}{suffix}"


def split_segments(
    engine: FFmpeg,
    input_path: Path,
    segments: Sequence[Segment],
    output_dir: Path,
    on_progress: Callable[[float], None] | None = None,
) -> list[Path]:
    """Write every segment to its own numbered file.

    Stops at the first failed trim and raises TrimError; clips written before
    it are left on disk since each one is complete.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    outputs: list[Path] = []

    for i, seg in enumerate(segments):
        target = scene_clip_path(input_path, output_dir, i)
        try:
            engine.trim(input_path, seg.start, seg.duration, target)
        except EngineInvocationError as e:
            raise TrimError(i, len(segments), list(outputs), e) from e
        outputs.append(target)
        logger.debug("Wrote scene %d: %.2fs - %.2fs", i + 1, seg.start, seg.end)
        if on_progress:
            on_progress((i + 1) / len(segments))

    return outputs


def join_segments(
    engine: FFmpeg,
    input_path: Path,
    segments: Sequence[Segment],
    output_path: Path,
    on_progress: Callable[[float], None] | None = None,
) -> Path:
    """Trim each range to a scratch file and concatenate them into ``output_path``.

    Scratch files live in a run-private directory beside the output and are
    removed whether or not the concatenation succeeds.
    """
    if not segments:
        raise ValueError("join_segments called with empty segment list")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = input_path.suffix or ".mp4"

    with tempfile.TemporaryDirectory(
        prefix="sceneforge_", dir=output_path.parent, ignore_cleanup_errors=True
    ) as tmpdir:
        parts: list[Path] = []
        for i, seg in enumerate(segments):
            part = Path(tmpdir) / f"part_{i:04d}{suffix}"
            engine.trim(input_path, seg.start, seg.duration, part)
            parts.append(part)
            if on_progress:
                on_progress((i + 1) / (len(segments) + 1))

        engine.concatenate(parts, output_path, manifest_path=Path(tmpdir) / "concat.txt")

    if on_progress:
        on_progress(1.0)
    return output_path
