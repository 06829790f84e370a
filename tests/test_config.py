"""Tests for configuration loading and validation."""

import json
from pathlib import Path

import pytest

from sceneforge.config import (
    FALLBACK_THRESHOLD,
    Config,
    EngineConfig,
    SceneConfig,
    SilenceConfig,
    ThumbnailConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("SCENEFORGE_FFMPEG", raising=False)
    monkeypatch.delenv("SCENEFORGE_FFPROBE", raising=False)


class TestDefaults:
    def test_engine(self):
        cfg = EngineConfig()
        assert cfg.ffmpeg == "ffmpeg"
        assert cfg.ffprobe == "ffprobe"
        assert cfg.timeout is None
        assert cfg.reencode is False

    def test_scenes(self):
        cfg = SceneConfig()
        assert cfg.threshold == 0.3
        assert cfg.fallback_threshold == FALLBACK_THRESHOLD == 0.15
        assert cfg.min_duration == 2.0
        assert cfg.auto_min_duration == 3.0

    def test_silence(self):
        cfg = SilenceConfig()
        assert cfg.threshold_db == -30.0
        assert cfg.min_duration == 0.5
        assert cfg.padding == 0.1

    def test_thumbnails(self):
        cfg = ThumbnailConfig()
        assert cfg.candidates == 10
        assert cfg.widths == (1920, 1280, 640)
        assert cfg.scorer == "position"

    def test_config_is_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.engine = EngineConfig(ffmpeg="other")


class TestLoadConfig:
    def test_no_path_gives_defaults(self):
        assert load_config() == Config()

    def test_load_sample(self, sample_config_path: Path):
        cfg = load_config(sample_config_path)
        assert cfg.engine.ffmpeg == "/opt/ffmpeg/bin/ffmpeg"
        assert cfg.engine.ffprobe == "ffprobe"
        assert cfg.engine.timeout == 600
        assert cfg.scenes.threshold == 0.4
        assert cfg.silence.padding == 0.2
        assert cfg.thumbnails.widths == (1280, 640)
        assert cfg.thumbnails.scorer == "brightness"

    def test_env_overrides_binaries(self, monkeypatch, sample_config_path: Path):
        monkeypatch.setenv("SCENEFORGE_FFMPEG", "/usr/local/bin/ffmpeg")
        cfg = load_config(sample_config_path)
        assert cfg.engine.ffmpeg == "/usr/local/bin/ffmpeg"
        assert cfg.engine.timeout == 600

    def test_load_invalid_json(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("not json")
        with pytest.raises(json.JSONDecodeError):
            load_config(bad)

    def test_unknown_section(self, tmp_path: Path):
        path = tmp_path / "c.json"
        path.write_text('{"captions": {}}')
        with pytest.raises(ValueError, match="Unknown config sections"):
            load_config(path)

    def test_unknown_field(self, tmp_path: Path):
        path = tmp_path / "c.json"
        path.write_text('{"scenes": {"sensitivity": 3}}')
        with pytest.raises(ValueError, match="Invalid config"):
            load_config(path)

    def test_unknown_scorer(self, tmp_path: Path):
        path = tmp_path / "c.json"
        path.write_text('{"thumbnails": {"scorer": "faces"}}')
        with pytest.raises(ValueError, match="Unknown scorer"):
            load_config(path)
