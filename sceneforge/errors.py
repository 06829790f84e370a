"""Exception types shared across SceneForge."""


class SceneForgeError(Exception):
    """Base class for every error SceneForge raises on purpose."""


class InputNotFoundError(SceneForgeError, FileNotFoundError):
    """Raised when the source video does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Video file not found: {path}")


class FFmpegNotFoundError(SceneForgeError, RuntimeError):
    pass


class EngineInvocationError(SceneForgeError, RuntimeError):
    """An ffmpeg/ffprobe call exited non-zero, timed out, or printed garbage.

    The message is meant for users and never embeds scratch paths; the raw
    ``stderr`` is kept on the exception for debug logging.
    """

    def __init__(
        self,
        message: str,
        tool: str = "ffmpeg",
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr


class TrimError(EngineInvocationError):
    """A split stopped at ``index``; ``completed`` lists clips already written."""

    def __init__(self, index: int, total: int, completed: list, cause: EngineInvocationError):
        super().__init__(
            f"trim failed for scene {index + 1} of {total}: {cause}",
            tool=cause.tool,
            returncode=cause.returncode,
            stderr=cause.stderr,
        )
        self.index = index
        self.completed = completed


class EmptyResultError(SceneForgeError, ValueError):
    """Filtering removed every segment or interval."""

    def __init__(self, message: str, original_count: int = 0, threshold: float | None = None):
        super().__init__(message)
        self.original_count = original_count
        self.threshold = threshold


class NoAudioStreamError(SceneForgeError, ValueError):
    """Raised when the input file has no audio stream."""
    pass
