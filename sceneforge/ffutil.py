"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from sceneforge.config import EngineConfig
from sceneforge.errors import EngineInvocationError, FFmpegNotFoundError
from sceneforge.models import SilenceInterval, VideoInfo

logger = logging.getLogger(__name__)

_PTS_TIME = re.compile(r"pts_time:(\d+(?:\.\d+)?)")
_SILENCE_START = re.compile(r"silence_start: (-?\d+(?:\.\d+)?)")
_SILENCE_END = re.compile(r"silence_end: (-?\d+(?:\.\d+)?)")
_YAVG = re.compile(r"lavfi\.signalstats\.YAVG=(\d+(?:\.\d+)?)")


def _ts(seconds: float) -> str:
    return f"{max(seconds, 0.0):.3f}"


def parse_scene_timestamps(stderr: str) -> list[float]:
    """Pull every ``pts_time`` emitted by the showinfo filter, in encounter order."""
    return [float(m) for m in _PTS_TIME.findall(stderr)]


def parse_silence_intervals(stderr: str) -> list[SilenceInterval]:
    """Parse silencedetect output from ffmpeg stderr into SilenceIntervals.

    A trailing ``silence_start`` with no matching ``silence_end`` (silence
    running to EOF) becomes an open interval. Any other imbalance means the
    output cannot be trusted.
    """
    starts = [max(float(m), 0.0) for m in _SILENCE_START.findall(stderr)]
    ends = [max(float(m), 0.0) for m in _SILENCE_END.findall(stderr)]

    if len(ends) > len(starts) or len(starts) - len(ends) > 1:
        raise EngineInvocationError(
            f"unparseable silencedetect output ({len(starts)} starts, {len(ends)} ends)"
        )

    intervals: list[SilenceInterval] = []
    for i, start in enumerate(starts):
        end = ends[i] if i < len(ends) else None
        intervals.append(SilenceInterval(start=start, end=end))
    return intervals


def parse_frame_rate(expr: str) -> float:
    """Parse an ffprobe rate such as ``30000/1001`` or ``25``."""
    num, _, den = expr.partition("/")
    rate = float(num) / float(den) if den else float(num)
    if rate <= 0:
        raise ValueError(f"invalid frame rate {expr!r}")
    return rate


def concat_manifest(paths: Sequence[Path]) -> str:
    """Render a concat-demuxer list; single quotes are escaped the ffmpeg way."""
    lines = []
    for p in paths:
        quoted = Path(p).resolve().as_posix().replace("'", "'\\''")
        lines.append(f"file '{quoted}'")
    return "\n".join(lines) + "\n"


class FFmpeg:
    """The ffmpeg/ffprobe command contract.

    Every command is an argument vector; nothing goes through a shell. A
    non-zero exit, a timeout, or output that cannot be parsed raises
    EngineInvocationError.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

    def check(self) -> None:
        """Raise FFmpegNotFoundError if ffmpeg/ffprobe cannot be resolved."""
        for cmd in (self.config.ffmpeg, self.config.ffprobe):
            if shutil.which(cmd) is None:
                raise FFmpegNotFoundError(f"{cmd} not found on PATH")

    def _run(self, cmd: list[str], what: str) -> subprocess.CompletedProcess:
        tool = Path(cmd[0]).name
        logger.debug("Running: %s", shlex.join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.config.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise EngineInvocationError(
                f"{what} timed out after {e.timeout}s", tool=tool
            ) from e
        except FileNotFoundError as e:
            raise FFmpegNotFoundError(f"{cmd[0]} not found on PATH") from e

        if result.returncode != 0:
            stderr = result.stderr or ""
            tail = "\n".join(stderr.strip().splitlines()[-5:])
            logger.debug("%s failed (rc=%s):\n%s", what, result.returncode, tail)
            raise EngineInvocationError(
                f"{what} failed ({tool} exited with status {result.returncode})",
                tool=tool,
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    # -- analysis ------------------------------------------------------------

    def scan_for_changes(self, input_path: Path, threshold: float) -> list[float]:
        """Return the timestamps where the scene score exceeds ``threshold``."""
        cmd = [
            self.config.ffmpeg, "-hide_banner",
            "-i", str(input_path),
            "-an",
            "-filter:v", f"select='gt(scene,{float(threshold):g})',showinfo",
            "-f", "null", "-",
        ]
        result = self._run(cmd, "scene detection")
        return parse_scene_timestamps(result.stderr or "")

    def detect_silence(
        self, input_path: Path, noise_db: float, min_duration: float
    ) -> list[SilenceInterval]:
        """Run FFmpeg silencedetect and return the silent intervals."""
        cmd = [
            self.config.ffmpeg, "-hide_banner",
            "-i", str(input_path),
            "-vn",
            "-af", f"silencedetect=noise={float(noise_db):g}dB:d={float(min_duration):g}",
            "-f", "null", "-",
        ]
        result = self._run(cmd, "silence detection")
        return parse_silence_intervals(result.stderr or "")

    def probe_duration(self, input_path: Path) -> float:
        cmd = [
            self.config.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(input_path),
        ]
        result = self._run(cmd, "duration probe")
        try:
            duration = float((result.stdout or "").strip())
        except ValueError:
            raise EngineInvocationError(
                "duration probe returned no usable duration", tool="ffprobe"
            ) from None
        if duration < 0:
            raise EngineInvocationError("duration probe returned a negative duration", tool="ffprobe")
        return duration

    def probe(self, input_path: Path) -> VideoInfo:
        """Extract video metadata via ffprobe."""
        cmd = [
            self.config.ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(input_path),
        ]
        result = self._run(cmd, "stream probe")
        try:
            data = json.loads(result.stdout)
        except (TypeError, json.JSONDecodeError):
            raise EngineInvocationError("stream probe returned invalid JSON", tool="ffprobe") from None

        streams = data.get("streams", [])
        video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
        has_audio = any(s.get("codec_type") == "audio" for s in streams)

        if video_stream is None:
            raise EngineInvocationError(f"No video stream found in {Path(input_path).name}", tool="ffprobe")

        try:
            raw_duration = data.get("format", {}).get("duration") or video_stream.get("duration")
            fps = parse_frame_rate(
                video_stream.get("r_frame_rate") or video_stream.get("avg_frame_rate", "")
            )
            return VideoInfo(
                width=int(video_stream["width"]),
                height=int(video_stream["height"]),
                duration=float(raw_duration),
                fps=fps,
                has_audio=has_audio,
            )
        except (KeyError, TypeError, ValueError, ZeroDivisionError) as e:
            raise EngineInvocationError(f"stream probe returned incomplete metadata: {e}", tool="ffprobe") from None

    def frame_brightness(self, input_path: Path, timestamp: float) -> float:
        """Mean luma (YAVG, 0-255) of the frame at ``timestamp``."""
        cmd = [
            self.config.ffmpeg, "-hide_banner",
            "-ss", _ts(timestamp),
            "-i", str(input_path),
            "-frames:v", "1",
            "-vf", "signalstats,metadata=mode=print:key=lavfi.signalstats.YAVG",
            "-f", "null", "-",
        ]
        result = self._run(cmd, "brightness probe")
        match = _YAVG.search(result.stderr or "")
        if match is None:
            raise EngineInvocationError(f"no brightness reading at {timestamp:.2f}s")
        return float(match.group(1))

    # -- editing -------------------------------------------------------------

    def trim(self, input_path: Path, start: float, duration: float, output_path: Path) -> Path:
        """Cut ``[start, start + duration)`` into ``output_path``."""
        if self.config.reencode:
            codec = ["-c:v", "libx264", "-c:a", "aac"]
        else:
            codec = ["-c", "copy"]
        cmd = [
            self.config.ffmpeg, "-hide_banner", "-y",
            "-ss", _ts(start),
            "-i", str(input_path),
            "-t", _ts(duration),
            *codec,
            "-avoid_negative_ts", "make_zero",
            str(output_path),
        ]
        self._run(cmd, "trim")
        return output_path

    def concatenate(
        self, paths: Sequence[Path], output_path: Path, manifest_path: Path | None = None
    ) -> Path:
        """Join clips with the concat demuxer.

        The list file defaults to ``concat.txt`` next to the first clip.
        """
        if not paths:
            raise ValueError("concatenate called with empty clip list")

        manifest_path = manifest_path or Path(paths[0]).parent / "concat.txt"
        manifest_path.write_text(concat_manifest(paths), encoding="utf-8")

        cmd = [
            self.config.ffmpeg, "-hide_banner", "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(manifest_path),
            "-c", "copy",
            str(output_path),
        ]
        self._run(cmd, "concatenation")
        return output_path

    def draw_silence_overlay(
        self, input_path: Path, intervals: Sequence[tuple[float, float]], output_path: Path
    ) -> Path:
        """Mark each ``(start, end)`` span with a translucent red box."""
        if not intervals:
            raise ValueError("draw_silence_overlay called with no intervals")

        boxes = [
            f"drawbox=x=0:y=0:w=iw:h=ih:color=red@0.3:t=fill:enable='between(t,{start:.3f},{end:.3f})'"
            for start, end in intervals
        ]
        cmd = [
            self.config.ffmpeg, "-hide_banner", "-y",
            "-i", str(input_path),
            "-vf", ",".join(boxes),
            "-c:a", "copy",
            str(output_path),
        ]
        self._run(cmd, "silence overlay")
        return output_path

    # -- stills and previews -------------------------------------------------

    def extract_frame(
        self,
        input_path: Path,
        timestamp: float,
        output_path: Path,
        width: int = 1280,
        quality: int = 2,
        box: tuple[int, int] | None = None,
        label: str | None = None,
    ) -> Path:
        """Grab one frame as an image.

        With ``box`` the frame is fitted and letterboxed into that size; a
        ``label`` adds a 20px band under it with the text drawn in.
        """
        if box is None:
            filters = [f"scale={width}:-1"]
        else:
            bw, bh = box
            canvas_h = bh + 20 if label else bh
            filters = [
                f"scale={bw}:{bh}:force_original_aspect_ratio=decrease",
                f"pad={bw}:{canvas_h}:(ow-iw)/2:({bh}-ih)/2:black",
            ]
        if label:
            text = label.replace("\\", "\\\\").replace(":", "\\:").replace("'", "")
            filters.append(
                f"drawtext=text='{text}':fontsize=16:fontcolor=white"
                ":x=(w-text_w)/2:y=h-text_h-3:box=1:boxcolor=black@0.5"
            )

        cmd = [
            self.config.ffmpeg, "-hide_banner", "-y",
            "-ss", _ts(timestamp),
            "-i", str(input_path),
            "-vf", ",".join(filters),
            "-frames:v", "1",
            "-q:v", str(quality),
            str(output_path),
        ]
        self._run(cmd, "frame extraction")
        return output_path

    def build_animated_preview(
        self,
        input_path: Path,
        start: float,
        duration: float,
        output_path: Path,
        width: int = 480,
        fps: int = 10,
    ) -> Path:
        """Render a palette-optimised looping GIF."""
        vf = (
            f"fps={fps},scale={width}:-1:flags=lanczos,split[s0][s1];"
            "[s0]palettegen=max_colors=128[p];[s1][p]paletteuse=dither=bayer"
        )
        cmd = [
            self.config.ffmpeg, "-hide_banner", "-y",
            "-ss", _ts(start),
            "-t", _ts(duration),
            "-i", str(input_path),
            "-vf", vf,
            "-loop", "0",
            str(output_path),
        ]
        self._run(cmd, "GIF preview")
        return output_path

    def build_grid(
        self,
        frame_paths: Sequence[Path],
        rows: int,
        cols: int,
        output_path: Path,
        quality: int = 2,
    ) -> Path:
        """Tile same-sized images row-major into a single ``cols x rows`` sheet."""
        if not frame_paths:
            raise ValueError("build_grid called with no frames")
        if len(frame_paths) > rows * cols:
            raise ValueError(f"{len(frame_paths)} frames do not fit a {cols}x{rows} grid")

        inputs: list[str] = []
        for p in frame_paths:
            inputs += ["-i", str(p)]
        labels = "".join(f"[{i}:v]" for i in range(len(frame_paths)))
        filter_complex = f"{labels}concat=n={len(frame_paths)}:v=1:a=0,tile={cols}x{rows}[out]"

        cmd = [
            self.config.ffmpeg, "-hide_banner", "-y",
            *inputs,
            "-filter_complex", filter_complex,
            "-map", "[out]",
            "-frames:v", "1",
            "-q:v", str(quality),
            str(output_path),
        ]
        self._run(cmd, "grid assembly")
        return output_path

    def tile_storyboard(
        self,
        input_path: Path,
        duration: float,
        rows: int,
        cols: int,
        output_path: Path,
        box: tuple[int, int] = (320, 180),
        quality: int = 2,
    ) -> Path:
        """One-pass storyboard: sample ``rows*cols`` frames evenly and tile them."""
        if duration <= 0:
            raise ValueError("tile_storyboard needs a positive duration")

        count = rows * cols
        bw, bh = box
        vf = (
            f"fps={count / duration:.6f},"
            f"scale={bw}:{bh}:force_original_aspect_ratio=decrease,"
            f"pad={bw}:{bh}:(ow-iw)/2:(oh-ih)/2:black,"
            f"tile={cols}x{rows}"
        )
        cmd = [
            self.config.ffmpeg, "-hide_banner", "-y",
            # half a slot in, so samples land at the slot centres
            "-ss", _ts(duration / count / 2),
            "-i", str(input_path),
            "-vf", vf,
            "-frames:v", "1",
            "-q:v", str(quality),
            str(output_path),
        ]
        self._run(cmd, "storyboard")
        return output_path
