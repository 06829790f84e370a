"""Preview editor — thumbnails, storyboards and GIF previews."""

import logging
import math
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from sceneforge.config import ThumbnailConfig
from sceneforge.errors import EngineInvocationError
from sceneforge.ffutil import FFmpeg
from sceneforge.models import CandidateFrame, VideoInfo

logger = logging.getLogger(__name__)

GRID_BOX = (320, 180)
GIF_ANCHORS = (("start", 0.2), ("middle", 0.5), ("end", 0.8))


def format_timestamp(seconds: float) -> str:
    """``m:ss`` label used on timeline frames."""
    seconds = max(seconds, 0.0)
    return f"{int(seconds // 60)}:{int(seconds % 60):02d}"


def grid_timestamps(duration: float, count: int) -> list[float]:
    """Centres of ``count`` equal slots across the whole video."""
    return [duration * (i + 0.5) / count for i in range(count)]


def generate_thumbnail(
    engine: FFmpeg,
    input_path: Path,
    output_path: Path,
    timestamp: float,
    width: int = 1280,
    quality: int = 2,
) -> Path:
    logger.info("Generating thumbnail at %.2fs", timestamp)
    return engine.extract_frame(input_path, timestamp, output_path, width=width, quality=quality)


def generate_storyboard(
    engine: FFmpeg,
    input_path: Path,
    output_path: Path,
    duration: float,
    rows: int = 3,
    cols: int = 3,
    quality: int = 2,
) -> Path:
    """Build a ``rows x cols`` contact sheet sampled evenly over the whole video.

    Tries a single tiled pass first; if the filter chain is rejected, falls
    back to extracting each frame and assembling the grid.
    """
    logger.info("Generating storyboard (%dx%d)", rows, cols)
    try:
        return engine.tile_storyboard(
            input_path, duration, rows, cols, output_path, box=GRID_BOX, quality=quality
        )
    except EngineInvocationError as e:
        logger.info("Single-pass storyboard failed (%s); extracting frames instead", e)

    with tempfile.TemporaryDirectory(
        prefix="sceneforge_", dir=output_path.parent, ignore_cleanup_errors=True
    ) as tmpdir:
        frames = []
        for i, t in enumerate(grid_timestamps(duration, rows * cols)):
            frame = Path(tmpdir) / f"thumb_{i:02d}.jpg"
            engine.extract_frame(input_path, t, frame, quality=quality, box=GRID_BOX)
            frames.append(frame)
        return engine.build_grid(frames, rows, cols, output_path, quality=quality)


def generate_timeline(
    engine: FFmpeg,
    input_path: Path,
    output_path: Path,
    duration: float,
    count: int = 9,
    quality: int = 2,
) -> Path:
    """Storyboard with an ``m:ss`` caption under every frame."""
    logger.info("Generating timestamped storyboard (%d frames)", count)
    cols = math.ceil(math.sqrt(count))
    rows = math.ceil(count / cols)

    with tempfile.TemporaryDirectory(
        prefix="sceneforge_", dir=output_path.parent, ignore_cleanup_errors=True
    ) as tmpdir:
        frames = []
        for i, t in enumerate(grid_timestamps(duration, count)):
            frame = Path(tmpdir) / f"frame_{i:02d}.jpg"
            engine.extract_frame(
                input_path, t, frame, quality=quality, box=GRID_BOX, label=format_timestamp(t)
            )
            frames.append(frame)
        return engine.build_grid(frames, rows, cols, output_path, quality=quality)


def generate_gif(
    engine: FFmpeg,
    input_path: Path,
    output_path: Path,
    video_duration: float,
    start: float | None = None,
    length: float = 3.0,
    width: int = 480,
    fps: int = 10,
) -> Path:
    """GIF preview; without ``start`` it is centred on the middle of the video."""
    if start is None:
        start = video_duration / 2 - length / 2
    start = max(start, 0.0)
    logger.info("Generating GIF preview (%ss @ %dfps) from %.2fs", length, fps, start)
    return engine.build_animated_preview(input_path, start, length, output_path, width=width, fps=fps)


@dataclass
class BatchResult:
    """Outcome of a thumbnail batch.

    ``outputs`` maps every artifact label to its path, or None if it failed;
    ``failures`` holds the reason for each failed label.
    """

    best_frame: CandidateFrame
    outputs: dict[str, Path | None] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> dict:
        data: dict = {"bestFrame": self.best_frame.timestamp}
        data.update({k: str(v) if v else None for k, v in self.outputs.items()})
        if self.failures:
            data["failures"] = dict(self.failures)
        return data


def generate_all(
    engine: FFmpeg,
    input_path: Path,
    output_dir: Path,
    info: VideoInfo,
    best_frame: CandidateFrame,
    config: ThumbnailConfig,
    on_progress: Callable[[float], None] | None = None,
) -> BatchResult:
    """Produce every preview artifact for ``input_path`` in ``output_dir``.

    Jobs share nothing but the source file, so they run on a small thread
    pool. A failed job is recorded and its siblings carry on.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    name = input_path.stem
    duration = info.duration
    q = config.quality

    jobs: dict[str, Callable[[], Path]] = {}
    for width in config.widths:
        jobs[f"thumbnail_{width}"] = (
            lambda w=width: generate_thumbnail(
                engine, input_path, output_dir / f"{name}_thumb_{w}.jpg", best_frame.timestamp, w, q
            )
        )
    jobs["storyboard"] = lambda: generate_storyboard(
        engine, input_path, output_dir / f"{name}_storyboard.jpg", duration,
        config.storyboard_rows, config.storyboard_cols, q,
    )
    jobs["timeline"] = lambda: generate_timeline(
        engine, input_path, output_dir / f"{name}_timeline.jpg", duration, config.timeline_count, q
    )
    for label, fraction in GIF_ANCHORS:
        jobs[f"gif_{label}"] = (
            lambda label=label, fraction=fraction: generate_gif(
                engine, input_path, output_dir / f"{name}_preview_{label}.gif", duration,
                start=duration * fraction, length=config.gif_duration,
                width=config.gif_width, fps=config.gif_fps,
            )
        )
    largest = max(config.widths) if config.widths else 1920
    jobs["first_frame"] = lambda: generate_thumbnail(
        engine, input_path, output_dir / f"{name}_first.jpg", 0.0, largest, q
    )
    jobs["last_frame"] = lambda: generate_thumbnail(
        engine, input_path, output_dir / f"{name}_last.jpg", max(duration - 0.1, 0.0), largest, q
    )

    result = BatchResult(best_frame=best_frame, outputs=dict.fromkeys(jobs))
    done = 0
    with ThreadPoolExecutor(max_workers=max(1, config.workers)) as executor:
        futures = {executor.submit(job): label for label, job in jobs.items()}
        for fut in as_completed(futures):
            label = futures[fut]
            try:
                result.outputs[label] = fut.result()
            except Exception as e:
                logger.warning("Could not generate %s: %s", label, e)
                result.failures[label] = str(e)
            done += 1
            if on_progress:
                on_progress(done / len(jobs))

    if result.partial:
        logger.warning("%d of %d thumbnail artifacts failed", len(result.failures), len(jobs))
    return result
