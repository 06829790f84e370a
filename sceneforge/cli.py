"""Thin CLI entry point — resolves configuration, calls the pipeline, prints JSON."""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from sceneforge.config import Config, load_config
from sceneforge.errors import SceneForgeError
from sceneforge.ffutil import FFmpeg
from sceneforge.pipeline import Pipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sceneforge",
        description="SceneForge — scene detection, silence cutting and thumbnails via ffmpeg.",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to a JSON config file")
    parser.add_argument("--ffmpeg", type=str, help="ffmpeg binary to use")
    parser.add_argument("--ffprobe", type=str, help="ffprobe binary to use")
    parser.add_argument("--timeout", type=float, help="Per-command timeout in seconds")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging and tracebacks")
    sub = parser.add_subparsers(dest="command")

    det = sub.add_parser("detect", help="List scene-change timestamps")
    det.add_argument("video", type=Path, help="Input video file")
    det.add_argument("--threshold", "-t", type=float, help="Scene score threshold (0-1)")

    split = sub.add_parser("split", help="Split a video into one clip per scene")
    split.add_argument("video", type=Path, help="Input video file")
    split.add_argument("--output-dir", "-o", type=Path, default=Path("scenes"), help="Clip directory")
    split.add_argument("--threshold", "-t", type=float, help="Scene score threshold (0-1)")

    merge = sub.add_parser("merge", help="Merge the scenes that are long enough")
    merge.add_argument("video", type=Path, help="Input video file")
    merge.add_argument("--min-duration", "-m", type=float, help="Shortest scene to keep (seconds)")
    merge.add_argument("--output", "-o", type=Path, default=Path("merged_scenes.mp4"), help="Output file")
    merge.add_argument("--threshold", "-t", type=float, help="Scene score threshold (0-1)")

    auto = sub.add_parser("auto", help="Detect, split and merge in one go")
    auto.add_argument("video", type=Path, help="Input video file")
    auto.add_argument("--min-duration", "-m", type=float, help="Shortest scene to keep (seconds)")
    auto.add_argument("--threshold", "-t", type=float, help="Scene score threshold (0-1)")
    auto.add_argument("--clips-dir", type=Path, default=Path("auto_scenes"), help="Clip directory")
    auto.add_argument("--output", "-o", type=Path, default=Path("auto_merged.mp4"), help="Output file")

    silence = sub.add_parser("silence", help="Silence detection and removal")
    silence_sub = silence.add_subparsers(dest="action", required=True)
    for action, help_text in (
        ("detect", "List silent intervals"),
        ("remove", "Cut silent passages out"),
        ("visualize", "Tint silent passages red"),
    ):
        p = silence_sub.add_parser(action, help=help_text)
        p.add_argument("video", type=Path, help="Input video file")
        p.add_argument("--silence-threshold", type=float, help="Silence threshold in dB")
        p.add_argument("--silence-min-duration", type=float, help="Minimum silence duration (seconds)")
        if action != "detect":
            p.add_argument("--output", "-o", type=Path, help="Output file")
        if action == "remove":
            p.add_argument("--padding", type=float, help="Seconds kept on each side of a cut")

    thumb = sub.add_parser("thumbnail", help="Thumbnails, storyboards and GIF previews")
    thumb_sub = thumb.add_subparsers(dest="action", required=True)

    best = thumb_sub.add_parser("best", help="Find the best frame time")
    best.add_argument("video", type=Path)
    best.add_argument("--candidates", type=int, help="Number of candidate frames")

    single = thumb_sub.add_parser("single", help="Generate a single thumbnail")
    single.add_argument("video", type=Path)
    single.add_argument("--time", type=float, help="Timestamp; best frame if omitted")
    single.add_argument("--width", type=int, default=1280)
    single.add_argument("--output", "-o", type=Path)

    board = thumb_sub.add_parser("storyboard", help="Generate a storyboard grid")
    board.add_argument("video", type=Path)
    board.add_argument("--rows", type=int)
    board.add_argument("--cols", type=int)
    board.add_argument("--output", "-o", type=Path)

    line = thumb_sub.add_parser("timeline", help="Generate a timestamped storyboard")
    line.add_argument("video", type=Path)
    line.add_argument("--count", type=int)
    line.add_argument("--output", "-o", type=Path)

    gif = thumb_sub.add_parser("gif", help="Generate a GIF preview")
    gif.add_argument("video", type=Path)
    gif.add_argument("--start", type=float, help="Start time; middle of the video if omitted")
    gif.add_argument("--duration", type=float, help="GIF length in seconds")
    gif.add_argument("--output", "-o", type=Path)

    everything = thumb_sub.add_parser("all", help="Generate every preview artifact")
    everything.add_argument("video", type=Path)
    everything.add_argument("--output-dir", "-o", type=Path, default=Path("thumbnails"))

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    """Config file, then environment, then command-line flags."""
    config = load_config(args.config)
    overrides = {
        key: getattr(args, key)
        for key in ("ffmpeg", "ffprobe", "timeout")
        if getattr(args, key) is not None
    }
    if overrides:
        config = replace(config, engine=replace(config.engine, **overrides))
    return config


def _default_name(video: Path, prefix: str, suffix: str) -> Path:
    return Path(f"{prefix}_{video.stem}{suffix}")


def run_command(args: argparse.Namespace, pipeline: Pipeline) -> dict:
    """Dispatch a parsed command and return the JSON-ready result."""
    if args.command == "detect":
        return {"scenes": pipeline.detect(args.video, args.threshold)}

    if args.command == "split":
        clips = pipeline.split(args.video, args.output_dir, args.threshold)
        return {"clips": [str(c) for c in clips]}

    if args.command == "merge":
        merged = pipeline.merge(args.video, args.output, args.min_duration, args.threshold)
        return {"mergedFile": str(merged)}

    if args.command == "auto":
        result = pipeline.auto(
            args.video, args.min_duration, args.threshold, args.clips_dir, args.output
        )
        return result.to_dict()

    if args.command == "silence":
        if args.action == "detect":
            silences = pipeline.detect_silence(
                args.video, args.silence_threshold, args.silence_min_duration
            )
            return {
                "silences": [
                    {"start": s.start, "end": s.end, "duration": s.duration} for s in silences
                ]
            }
        if args.action == "remove":
            output = args.output or Path(f"no_silence_{args.video.name}")
            result = pipeline.remove_silence(
                args.video, output, args.silence_threshold, args.silence_min_duration, args.padding
            )
            return result.to_dict()
        output = args.output or Path(f"silence_marked_{args.video.name}")
        marked = pipeline.visualize_silence(
            args.video, output, args.silence_threshold, args.silence_min_duration
        )
        return {"visualization": str(marked)}

    if args.command == "thumbnail":
        if args.action == "best":
            frame = pipeline.best_frame(args.video, args.candidates)
            return {"bestFrame": frame.timestamp, "score": frame.score}
        if args.action == "single":
            output = args.output or _default_name(args.video, "thumb", ".jpg")
            return {"thumbnail": str(pipeline.thumbnail(args.video, output, args.time, args.width))}
        if args.action == "storyboard":
            output = args.output or _default_name(args.video, "storyboard", ".jpg")
            return {"storyboard": str(pipeline.storyboard(args.video, output, args.rows, args.cols))}
        if args.action == "timeline":
            output = args.output or _default_name(args.video, "timeline", ".jpg")
            return {"timeline": str(pipeline.timeline(args.video, output, args.count))}
        if args.action == "gif":
            output = args.output or _default_name(args.video, "preview", ".gif")
            return {"gif": str(pipeline.gif(args.video, output, args.start, args.duration))}
        return pipeline.thumbnails(args.video, args.output_dir).to_dict()

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        config = resolve_config(args)

        if args.command == "serve":
            from sceneforge.web import create_app
            app = create_app(config=config)
            print(f"SceneForge web API: http://{args.host}:{args.port}", file=sys.stderr)
            app.run(host=args.host, port=args.port, debug=False)
            return

        engine = FFmpeg(config.engine)
        engine.check()

        def on_progress(stage: str, frac: float) -> None:
            print(f"  [{frac:3.0%}] {stage}", file=sys.stderr)

        pipeline = Pipeline(engine, config, on_progress=on_progress if args.verbose else None)
        result = run_command(args, pipeline)
    except (SceneForgeError, OSError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
