"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sceneforge.ffutil import FFmpeg
from sceneforge.models import VideoInfo

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "sample_config.json"


@pytest.fixture
def video(tmp_path: Path) -> Path:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"fake video data")
    return path


def _touch(path: Path) -> Path:
    Path(path).write_bytes(b"out")
    return path


@pytest.fixture
def fake_engine() -> MagicMock:
    """An FFmpeg stand-in whose output-producing calls write placeholder files."""
    engine = MagicMock(spec=FFmpeg)
    engine.probe.return_value = VideoInfo(width=1920, height=1080, duration=60.0, fps=30.0, has_audio=True)
    engine.probe_duration.return_value = 60.0
    engine.scan_for_changes.return_value = []
    engine.detect_silence.return_value = []
    engine.trim.side_effect = lambda src, start, dur, out: _touch(out)
    engine.concatenate.side_effect = lambda parts, out, manifest_path=None: _touch(out)
    engine.extract_frame.side_effect = lambda src, t, out, **kw: _touch(out)
    engine.build_animated_preview.side_effect = lambda src, start, dur, out, **kw: _touch(out)
    engine.build_grid.side_effect = lambda frames, rows, cols, out, **kw: _touch(out)
    engine.tile_storyboard.side_effect = lambda src, dur, rows, cols, out, **kw: _touch(out)
    engine.draw_silence_overlay.side_effect = lambda src, spans, out: _touch(out)
    return engine
