"""Tests for the command-line entry point."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sceneforge.cli import build_parser, main, resolve_config, run_command
from sceneforge.errors import EmptyResultError, InputNotFoundError
from sceneforge.models import CandidateFrame
from sceneforge.pipeline import AutoEditResult


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("SCENEFORGE_FFMPEG", raising=False)
    monkeypatch.delenv("SCENEFORGE_FFPROBE", raising=False)


def _run(argv, pipeline):
    args = build_parser().parse_args(argv)
    return run_command(args, pipeline)


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["merge", "v.mp4"])
        assert args.output == Path("merged_scenes.mp4")
        assert args.min_duration is None
        assert args.threshold is None

    def test_thumbnail_requires_action(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["thumbnail"])

    def test_flags_override_config(self, sample_config_path):
        args = build_parser().parse_args(
            ["--config", str(sample_config_path), "--ffprobe", "/x/ffprobe", "--timeout", "30", "detect", "v.mp4"]
        )
        cfg = resolve_config(args)
        assert cfg.engine.ffmpeg == "/opt/ffmpeg/bin/ffmpeg"
        assert cfg.engine.ffprobe == "/x/ffprobe"
        assert cfg.engine.timeout == 30.0


class TestRunCommand:
    def test_detect(self):
        pipeline = MagicMock()
        pipeline.detect.return_value = [15.2, 30.0]
        assert _run(["detect", "v.mp4", "-t", "0.4"], pipeline) == {"scenes": [15.2, 30.0]}
        pipeline.detect.assert_called_once_with(Path("v.mp4"), 0.4)

    def test_split(self):
        pipeline = MagicMock()
        pipeline.split.return_value = [Path("scenes/v_scene_001.mp4")]
        result = _run(["split", "v.mp4"], pipeline)
        assert result == {"clips": [str(Path("scenes/v_scene_001.mp4"))]}

    def test_auto(self):
        pipeline = MagicMock()
        pipeline.auto.return_value = AutoEditResult(
            original_duration=35.05,
            scenes_detected=2,
            clips_created=3,
            clips_path=Path("auto_scenes"),
            merged_file=Path("auto_merged.mp4"),
            threshold_used=0.3,
            scene_timestamps=[15.2, 30.0],
        )
        result = _run(["auto", "v.mp4", "-m", "3"], pipeline)
        assert result["scenesDetected"] == 2
        assert result["clipsCreated"] == 3
        assert result["mergedFile"] == "auto_merged.mp4"

    def test_silence_remove_default_output(self):
        pipeline = MagicMock()
        pipeline.remove_silence.return_value.to_dict.return_value = {"copied": True}
        _run(["silence", "remove", "talk.mp4", "--padding", "0.2"], pipeline)
        args = pipeline.remove_silence.call_args[0]
        assert args[1] == Path("no_silence_talk.mp4")
        assert args[4] == 0.2

    def test_thumbnail_best(self):
        pipeline = MagicMock()
        pipeline.best_frame.return_value = CandidateFrame(timestamp=17.5, score=68.0)
        assert _run(["thumbnail", "best", "v.mp4"], pipeline) == {"bestFrame": 17.5, "score": 68.0}

    def test_thumbnail_storyboard_default_name(self):
        pipeline = MagicMock()
        pipeline.storyboard.return_value = Path("storyboard_v.jpg")
        assert _run(["thumbnail", "storyboard", "v.mp4"], pipeline) == {"storyboard": "storyboard_v.jpg"}


class TestMain:
    @patch("sceneforge.cli.FFmpeg")
    @patch("sceneforge.cli.Pipeline")
    def test_prints_json(self, mock_pipeline_cls, mock_ffmpeg, capsys):
        mock_pipeline_cls.return_value.detect.return_value = [1.5]
        main(["detect", "v.mp4"])
        out = capsys.readouterr().out
        assert json.loads(out) == {"scenes": [1.5]}
        mock_ffmpeg.return_value.check.assert_called_once()

    @patch("sceneforge.cli.FFmpeg")
    @patch("sceneforge.cli.Pipeline")
    def test_error_exits_nonzero(self, mock_pipeline_cls, mock_ffmpeg, capsys):
        mock_pipeline_cls.return_value.detect.side_effect = InputNotFoundError(Path("v.mp4"))
        with pytest.raises(SystemExit) as excinfo:
            main(["detect", "v.mp4"])
        assert excinfo.value.code == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.strip() == "Error: Video file not found: v.mp4"
        assert "Traceback" not in captured.err

    @patch("sceneforge.cli.FFmpeg")
    @patch("sceneforge.cli.Pipeline")
    def test_empty_result_message(self, mock_pipeline_cls, mock_ffmpeg, capsys):
        mock_pipeline_cls.return_value.merge.side_effect = EmptyResultError("No segments of at least 9s")
        with pytest.raises(SystemExit):
            main(["merge", "v.mp4", "-m", "9"])
        assert "No segments of at least 9s" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 0
        assert "sceneforge" in capsys.readouterr().out
