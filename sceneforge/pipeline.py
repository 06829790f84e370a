"""Orchestrator — sequences ffmpeg calls and reconcilers into the published workflows."""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from sceneforge.analyzers.frames import brightness_quality, position_quality, select_best_frame
from sceneforge.analyzers.scenes import build_segments, detect_scenes, filter_segments
from sceneforge.analyzers.silence import analyze_silence, complement_of_silence
from sceneforge.config import Config, SilenceConfig
from sceneforge.editors import thumbnails as thumbs
from sceneforge.editors.cut import join_segments, split_segments
from sceneforge.errors import EmptyResultError, InputNotFoundError, NoAudioStreamError
from sceneforge.ffutil import FFmpeg
from sceneforge.models import CandidateFrame, SilenceInterval, VideoInfo

logger = logging.getLogger(__name__)


@dataclass
class AutoEditResult:
    original_duration: float
    scenes_detected: int
    clips_created: int
    clips_path: Path
    merged_file: Path
    threshold_used: float
    scene_timestamps: list[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "originalDuration": self.original_duration,
            "scenesDetected": self.scenes_detected,
            "clipsCreated": self.clips_created,
            "clipsPath": str(self.clips_path),
            "mergedFile": str(self.merged_file),
            "thresholdUsed": self.threshold_used,
            "sceneTimestamps": list(self.scene_timestamps),
        }


@dataclass
class SilenceResult:
    output_path: Path
    duration_original: float
    duration_final: float
    silences_found: int = 0
    segments_kept: int = 0
    copied: bool = False

    def to_dict(self) -> dict:
        return {
            "output": str(self.output_path),
            "originalDuration": self.duration_original,
            "newDuration": self.duration_final,
            "savedTime": self.duration_original - self.duration_final,
            "silencesFound": self.silences_found,
            "segmentsKept": self.segments_kept,
            "copied": self.copied,
        }


class Pipeline:
    """Runs detect / split / merge / auto / silence / thumbnail workflows.

    The ffmpeg wrapper and configuration are fixed at construction; each
    call is otherwise stateless.

    Args:
        engine: ffmpeg wrapper; built from ``config.engine`` when omitted.
        config: Resolved configuration.
        on_progress: Optional callback(stage_name, fraction_complete).
    """

    def __init__(
        self,
        engine: FFmpeg | None = None,
        config: Config | None = None,
        on_progress: Callable[[str, float], None] | None = None,
    ):
        self.config = config or Config()
        self.engine = engine or FFmpeg(self.config.engine)
        self.on_progress = on_progress

    def _progress(self, stage: str, frac: float) -> None:
        if self.on_progress:
            self.on_progress(stage, frac)

    def _sub_progress(self, stage: str, base: float, span: float):
        """Return a callback that maps a step's [0,1] to [base, base+span]."""
        def cb(frac: float) -> None:
            self._progress(stage, base + frac * span)
        return cb

    @staticmethod
    def _require(video: Path) -> Path:
        video = Path(video)
        if not video.is_file():
            raise InputNotFoundError(video)
        return video

    # -- scenes --------------------------------------------------------------

    def detect(self, video: Path, threshold: float | None = None) -> list[float]:
        """Scene-change timestamps for ``video``."""
        threshold = self.config.scenes.threshold if threshold is None else threshold
        return detect_scenes(self.engine, self._require(video), threshold)

    def split(
        self,
        video: Path,
        output_dir: Path,
        threshold: float | None = None,
        timestamps: list[float] | None = None,
        duration: float | None = None,
    ) -> list[Path]:
        """Write one numbered clip per scene into ``output_dir``."""
        video = self._require(video)
        if timestamps is None:
            timestamps = self.detect(video, threshold)
        if duration is None:
            duration = self.engine.probe_duration(video)

        segments = build_segments(timestamps, duration)
        logger.info("Splitting %s into %d clips", video.name, len(segments))
        return split_segments(
            self.engine, video, segments, Path(output_dir),
            on_progress=self._sub_progress("Splitting scenes", 0.1, 0.4),
        )

    def merge(
        self,
        video: Path,
        output: Path,
        min_duration: float | None = None,
        threshold: float | None = None,
        timestamps: list[float] | None = None,
        duration: float | None = None,
    ) -> Path:
        """Concatenate the scenes at least ``min_duration`` long into ``output``."""
        video = self._require(video)
        min_duration = self.config.scenes.min_duration if min_duration is None else min_duration
        if timestamps is None:
            timestamps = self.detect(video, threshold)
        if duration is None:
            duration = self.engine.probe_duration(video)

        segments = filter_segments(build_segments(timestamps, duration), min_duration)
        logger.info("Merging %d scenes into %s", len(segments), Path(output).name)
        return join_segments(
            self.engine, video, segments, Path(output),
            on_progress=self._sub_progress("Merging scenes", 0.5, 0.45),
        )

    def auto(
        self,
        video: Path,
        min_duration: float | None = None,
        threshold: float | None = None,
        clips_dir: Path = Path("auto_scenes"),
        output: Path = Path("auto_merged.mp4"),
    ) -> AutoEditResult:
        """Detect, split for inspection, then merge the long-enough scenes.

        If nothing is detected at ``threshold`` the scan is repeated once at
        the configured fallback threshold; if that also finds nothing the
        whole video is treated as a single scene.
        """
        video = self._require(video)
        scenes = self.config.scenes
        min_duration = scenes.auto_min_duration if min_duration is None else min_duration
        threshold = scenes.threshold if threshold is None else threshold

        self._progress("Probing duration", 0.0)
        duration = self.engine.probe_duration(video)
        logger.info("Processing %s (%.2fs)", video.name, duration)

        self._progress(f"Detecting scenes (threshold: {threshold})", 0.02)
        used = threshold
        timestamps = self.detect(video, threshold)
        if not timestamps and scenes.fallback_threshold < threshold:
            used = scenes.fallback_threshold
            logger.info("No scenes detected, retrying at threshold %s", used)
            self._progress(f"Retrying at threshold {used}", 0.06)
            timestamps = self.detect(video, used)
        # only points that actually became clip boundaries count as scenes
        timestamps = [seg.start for seg in build_segments(timestamps, duration)[1:]]

        clips = self.split(video, clips_dir, timestamps=timestamps, duration=duration)
        merged = self.merge(
            video, output, min_duration=min_duration, timestamps=timestamps, duration=duration
        )

        self._progress("Done", 1.0)
        return AutoEditResult(
            original_duration=duration,
            scenes_detected=len(timestamps),
            clips_created=len(clips),
            clips_path=Path(clips_dir),
            merged_file=merged,
            threshold_used=used,
            scene_timestamps=timestamps,
        )

    # -- silence -------------------------------------------------------------

    def _silence_config(self, threshold_db, min_duration, padding) -> SilenceConfig:
        base = self.config.silence
        return SilenceConfig(
            threshold_db=base.threshold_db if threshold_db is None else threshold_db,
            min_duration=base.min_duration if min_duration is None else min_duration,
            padding=base.padding if padding is None else padding,
        )

    def _probe_audio(self, video: Path) -> VideoInfo:
        info = self.engine.probe(video)
        if not info.has_audio:
            raise NoAudioStreamError(
                f"No audio stream found in {video.name}; silence detection requires audio"
            )
        return info

    def detect_silence(
        self,
        video: Path,
        threshold_db: float | None = None,
        min_duration: float | None = None,
    ) -> list[SilenceInterval]:
        cfg = self._silence_config(threshold_db, min_duration, None)
        return analyze_silence(self.engine, self._require(video), cfg)

    def remove_silence(
        self,
        video: Path,
        output: Path,
        threshold_db: float | None = None,
        min_duration: float | None = None,
        padding: float | None = None,
    ) -> SilenceResult:
        """Cut silent passages out of ``video``.

        When there is nothing to cut the source is copied as-is, without
        re-encoding.
        """
        video = self._require(video)
        output = Path(output)
        cfg = self._silence_config(threshold_db, min_duration, padding)

        self._progress("Probing video metadata", 0.0)
        duration = self._probe_audio(video).duration

        self._progress("Scanning audio for silence", 0.05)
        silences = analyze_silence(self.engine, video, cfg)
        keep = complement_of_silence(silences, duration, cfg.padding)

        whole = len(keep) == 1 and keep[0].start <= 0.0 and keep[0].end >= duration
        if not silences or whole:
            logger.info("No silence to remove, copying original file")
            output.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(video, output)
            self._progress("Done", 1.0)
            return SilenceResult(
                output_path=output,
                duration_original=duration,
                duration_final=duration,
                silences_found=len(silences),
                segments_kept=1,
                copied=True,
            )

        if not keep:
            raise EmptyResultError(
                f"{video.name} is silent throughout at {cfg.threshold_db}dB",
                original_count=len(silences),
                threshold=cfg.threshold_db,
            )

        logger.info("Keeping %d audible segments", len(keep))
        join_segments(
            self.engine, video, keep, output,
            on_progress=self._sub_progress(f"Cutting {len(silences)} silent passages", 0.25, 0.7),
        )

        final = sum(seg.duration for seg in keep)
        logger.info(
            "Silence removal complete: %.2fs -> %.2fs (saved %.2fs)", duration, final, duration - final
        )
        self._progress("Done", 1.0)
        return SilenceResult(
            output_path=output,
            duration_original=duration,
            duration_final=final,
            silences_found=len(silences),
            segments_kept=len(keep),
        )

    def visualize_silence(
        self,
        video: Path,
        output: Path,
        threshold_db: float | None = None,
        min_duration: float | None = None,
    ) -> Path:
        """Copy of ``video`` with silent spans tinted red."""
        video = self._require(video)
        output = Path(output)
        cfg = self._silence_config(threshold_db, min_duration, None)
        duration = self._probe_audio(video).duration

        silences = analyze_silence(self.engine, video, cfg)
        spans = [(s.start, duration if s.end is None else s.end) for s in silences]
        if not spans:
            logger.info("No silence detected, copying original file")
            output.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(video, output)
            return output
        return self.engine.draw_silence_overlay(video, spans, output)

    # -- thumbnails ----------------------------------------------------------

    def best_frame(self, video: Path, candidates: int | None = None) -> CandidateFrame:
        video = self._require(video)
        return self._best_frame(video, self.engine.probe(video), candidates)

    def _best_frame(self, video: Path, info: VideoInfo, candidates: int | None = None) -> CandidateFrame:
        cfg = self.config.thumbnails
        candidates = cfg.candidates if candidates is None else candidates
        if cfg.scorer == "brightness":
            quality_fn = brightness_quality(self.engine, video, info.duration)
        else:
            quality_fn = position_quality(info.duration)
        logger.info("Finding best thumbnail frame from %d candidates", candidates)
        return select_best_frame(info.duration, candidates, quality_fn)

    def thumbnail(
        self,
        video: Path,
        output: Path,
        timestamp: float | None = None,
        width: int = 1280,
    ) -> Path:
        """Single still; the best frame is chosen when ``timestamp`` is None."""
        video = self._require(video)
        if timestamp is None:
            timestamp = self.best_frame(video).timestamp
        return thumbs.generate_thumbnail(
            self.engine, video, Path(output), timestamp, width, self.config.thumbnails.quality
        )

    def storyboard(self, video: Path, output: Path, rows: int | None = None, cols: int | None = None) -> Path:
        video = self._require(video)
        cfg = self.config.thumbnails
        duration = self.engine.probe(video).duration
        return thumbs.generate_storyboard(
            self.engine, video, Path(output), duration,
            cfg.storyboard_rows if rows is None else rows,
            cfg.storyboard_cols if cols is None else cols,
            cfg.quality,
        )

    def timeline(self, video: Path, output: Path, count: int | None = None) -> Path:
        video = self._require(video)
        cfg = self.config.thumbnails
        duration = self.engine.probe(video).duration
        return thumbs.generate_timeline(
            self.engine, video, Path(output), duration,
            cfg.timeline_count if count is None else count, cfg.quality,
        )

    def gif(self, video: Path, output: Path, start: float | None = None, length: float | None = None) -> Path:
        video = self._require(video)
        cfg = self.config.thumbnails
        duration = self.engine.probe(video).duration
        return thumbs.generate_gif(
            self.engine, video, Path(output), duration, start=start,
            length=cfg.gif_duration if length is None else length,
            width=cfg.gif_width, fps=cfg.gif_fps,
        )

    def thumbnails(self, video: Path, output_dir: Path = Path("thumbnails")) -> thumbs.BatchResult:
        """Best-frame stills, storyboards, GIFs and first/last frames in one go."""
        video = self._require(video)
        self._progress("Probing video metadata", 0.0)
        info = self.engine.probe(video)
        logger.info("Video: %dx%d, %.1fs", info.width, info.height, info.duration)

        self._progress("Selecting best frame", 0.05)
        best = self._best_frame(video, info)

        self._progress("Generating previews", 0.2)
        result = thumbs.generate_all(
            self.engine, video, Path(output_dir), info, best, self.config.thumbnails,
            on_progress=self._sub_progress("Generating previews", 0.2, 0.8),
        )
        self._progress("Done", 1.0)
        return result
