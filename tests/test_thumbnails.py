"""Tests for the preview editor."""

from pathlib import Path

import pytest

from sceneforge.config import ThumbnailConfig
from sceneforge.editors.thumbnails import (
    BatchResult,
    format_timestamp,
    generate_all,
    generate_gif,
    generate_storyboard,
    generate_timeline,
    grid_timestamps,
)
from sceneforge.errors import EngineInvocationError
from sceneforge.models import CandidateFrame, VideoInfo

INFO = VideoInfo(width=1920, height=1080, duration=60.0, fps=30.0, has_audio=True)
BEST = CandidateFrame(timestamp=30.0, score=70.0)


class TestHelpers:
    def test_format_timestamp(self):
        assert format_timestamp(3.3) == "0:03"
        assert format_timestamp(65.9) == "1:05"
        assert format_timestamp(3600.0) == "60:00"

    def test_grid_timestamps_are_slot_centres(self):
        assert grid_timestamps(90.0, 9) == pytest.approx([5.0 + 10.0 * i for i in range(9)])


class TestStoryboard:
    def test_single_pass(self, fake_engine, video, tmp_path):
        out = tmp_path / "sb.jpg"
        assert generate_storyboard(fake_engine, video, out, 90.0) == out
        fake_engine.extract_frame.assert_not_called()
        fake_engine.build_grid.assert_not_called()

    def test_falls_back_to_extract_and_grid(self, fake_engine, video, tmp_path):
        fake_engine.tile_storyboard.side_effect = EngineInvocationError("storyboard failed")
        out = tmp_path / "sb.jpg"
        assert generate_storyboard(fake_engine, video, out, 90.0, rows=2, cols=2) == out

        times = [c.args[1] for c in fake_engine.extract_frame.call_args_list]
        assert times == pytest.approx([11.25, 33.75, 56.25, 78.75])
        frames, rows, cols = fake_engine.build_grid.call_args[0][:3]
        assert len(frames) == 4 and (rows, cols) == (2, 2)
        assert [p for p in tmp_path.iterdir() if p.name.startswith("sceneforge_")] == []


class TestTimeline:
    def test_labels_and_layout(self, fake_engine, video, tmp_path):
        generate_timeline(fake_engine, video, tmp_path / "tl.jpg", 90.0, count=9)
        labels = [c.kwargs["label"] for c in fake_engine.extract_frame.call_args_list]
        assert labels[0] == "0:05"
        assert labels[-1] == "1:25"
        _, rows, cols = fake_engine.build_grid.call_args[0][:3]
        assert (rows, cols) == (3, 3)

    def test_uneven_count(self, fake_engine, video, tmp_path):
        generate_timeline(fake_engine, video, tmp_path / "tl.jpg", 90.0, count=5)
        _, rows, cols = fake_engine.build_grid.call_args[0][:3]
        assert (rows, cols) == (2, 3)


class TestGif:
    def test_centred_by_default(self, fake_engine, video, tmp_path):
        generate_gif(fake_engine, video, tmp_path / "p.gif", 60.0, length=4.0)
        start, length = fake_engine.build_animated_preview.call_args[0][1:3]
        assert (start, length) == (28.0, 4.0)

    def test_start_clamped(self, fake_engine, video, tmp_path):
        generate_gif(fake_engine, video, tmp_path / "p.gif", 2.0, length=3.0)
        assert fake_engine.build_animated_preview.call_args[0][1] == 0.0


class TestGenerateAll:
    def test_every_artifact(self, fake_engine, video, tmp_path):
        out_dir = tmp_path / "thumbs"
        result = generate_all(fake_engine, video, out_dir, INFO, BEST, ThumbnailConfig())

        assert not result.partial
        names = {label: p.name for label, p in result.outputs.items()}
        assert names == {
            "thumbnail_1920": "clip_thumb_1920.jpg",
            "thumbnail_1280": "clip_thumb_1280.jpg",
            "thumbnail_640": "clip_thumb_640.jpg",
            "storyboard": "clip_storyboard.jpg",
            "timeline": "clip_timeline.jpg",
            "gif_start": "clip_preview_start.gif",
            "gif_middle": "clip_preview_middle.gif",
            "gif_end": "clip_preview_end.gif",
            "first_frame": "clip_first.jpg",
            "last_frame": "clip_last.jpg",
        }
        gif_starts = sorted(c.args[1] for c in fake_engine.build_animated_preview.call_args_list)
        assert gif_starts == pytest.approx([12.0, 30.0, 48.0])

    def test_failure_is_isolated(self, fake_engine, video, tmp_path):
        def preview(src, start, dur, out, **kw):
            if "middle" in out.name:
                raise EngineInvocationError("GIF preview failed")
            out.write_bytes(b"gif")
            return out

        fake_engine.build_animated_preview.side_effect = preview
        result = generate_all(fake_engine, video, tmp_path / "thumbs", INFO, BEST, ThumbnailConfig())

        assert result.partial
        assert result.outputs["gif_middle"] is None
        assert result.failures == {"gif_middle": "GIF preview failed"}
        assert result.outputs["gif_start"] is not None
        assert result.outputs["storyboard"] is not None

        data = result.to_dict()
        assert data["bestFrame"] == 30.0
        assert data["gif_middle"] is None
        assert data["failures"] == {"gif_middle": "GIF preview failed"}

    def test_unexpected_error_is_isolated(self, fake_engine, video, tmp_path):
        fake_engine.tile_storyboard.side_effect = RuntimeError("tile filter crashed")
        fake_engine.build_grid.side_effect = KeyError("grid")
        result = generate_all(fake_engine, video, tmp_path / "thumbs", INFO, BEST, ThumbnailConfig(workers=1))

        assert set(result.failures) == {"storyboard", "timeline"}
        assert "tile filter crashed" in result.failures["storyboard"]
        assert len(result.outputs) == 10
        assert all(result.outputs[label] is not None for label in result.outputs if label not in result.failures)

    def test_still_timestamps(self, fake_engine, video, tmp_path):
        generate_all(fake_engine, video, tmp_path / "t", INFO, BEST, ThumbnailConfig(workers=1))
        by_name = {Path(c.args[2]).name: c.args[1] for c in fake_engine.extract_frame.call_args_list}
        assert by_name["clip_thumb_640.jpg"] == 30.0
        assert by_name["clip_first.jpg"] == 0.0
        assert by_name["clip_last.jpg"] == pytest.approx(59.9)


class TestBatchResult:
    def test_to_dict_stringifies_paths(self):
        result = BatchResult(best_frame=BEST, outputs={"storyboard": Path("a/sb.jpg")})
        assert result.to_dict() == {"bestFrame": 30.0, "storyboard": str(Path("a/sb.jpg"))}
