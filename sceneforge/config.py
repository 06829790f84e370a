"""Configuration schema — the contract between CLI/API and the pipeline."""

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

FALLBACK_THRESHOLD = 0.15


@dataclass(frozen=True)
class EngineConfig:
    """Where to find ffmpeg/ffprobe and how to call them."""

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    timeout: float | None = None
    reencode: bool = False


@dataclass(frozen=True)
class SceneConfig:
    """Scene detection and merge policy."""

    threshold: float = 0.3
    fallback_threshold: float = FALLBACK_THRESHOLD
    min_duration: float = 2.0
    auto_min_duration: float = 3.0


@dataclass(frozen=True)
class SilenceConfig:
    """Configuration for silence detection and removal."""

    threshold_db: float = -30.0
    min_duration: float = 0.5
    padding: float = 0.1


@dataclass(frozen=True)
class ThumbnailConfig:
    """Configuration for best-frame selection and preview artifacts."""

    candidates: int = 10
    scorer: str = "position"
    widths: tuple[int, ...] = (1920, 1280, 640)
    quality: int = 2
    storyboard_rows: int = 3
    storyboard_cols: int = 3
    timeline_count: int = 9
    gif_duration: float = 3.0
    gif_width: int = 480
    gif_fps: int = 10
    workers: int = 3


SCORERS = ("position", "brightness")


@dataclass(frozen=True)
class Config:
    """Top-level configuration, resolved once per process."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    scenes: SceneConfig = field(default_factory=SceneConfig)
    silence: SilenceConfig = field(default_factory=SilenceConfig)
    thumbnails: ThumbnailConfig = field(default_factory=ThumbnailConfig)


def _apply_env(engine: EngineConfig) -> EngineConfig:
    overrides = {}
    if os.environ.get("SCENEFORGE_FFMPEG"):
        overrides["ffmpeg"] = os.environ["SCENEFORGE_FFMPEG"]
    if os.environ.get("SCENEFORGE_FFPROBE"):
        overrides["ffprobe"] = os.environ["SCENEFORGE_FFPROBE"]
    return replace(engine, **overrides) if overrides else engine


def load_config(path: str | Path | None = None) -> Config:
    """Load and validate a configuration from a JSON file.

    With no path the defaults are used. ``SCENEFORGE_FFMPEG`` and
    ``SCENEFORGE_FFPROBE`` override the binary locations either way.
    """
    data: dict = {}
    if path is not None:
        path = Path(path)
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            raise ValueError("Config must be a JSON object")

    unknown = set(data) - {"engine", "scenes", "silence", "thumbnails"}
    if unknown:
        raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")

    try:
        engine = EngineConfig(**data["engine"]) if "engine" in data else EngineConfig()
        scenes = SceneConfig(**data["scenes"]) if "scenes" in data else SceneConfig()
        silence = SilenceConfig(**data["silence"]) if "silence" in data else SilenceConfig()

        thumbs = dict(data.get("thumbnails", {}))
        if "widths" in thumbs:
            thumbs["widths"] = tuple(int(w) for w in thumbs["widths"])
        thumbnails = ThumbnailConfig(**thumbs)
    except TypeError as e:
        raise ValueError(f"Invalid config: {e}") from None

    if thumbnails.scorer not in SCORERS:
        raise ValueError(f"Unknown scorer {thumbnails.scorer!r}; expected one of {SCORERS}")

    return Config(
        engine=_apply_env(engine),
        scenes=scenes,
        silence=silence,
        thumbnails=thumbnails,
    )
