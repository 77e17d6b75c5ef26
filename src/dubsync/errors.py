"""
Error taxonomy for alignment runs.
"""

from .models import AlignmentReportEntry


class DubsyncError(RuntimeError):
    """Base error; carries the logs and report entries collected before failing."""

    def __init__(
        self,
        message: str,
        logs: list[str] | None = None,
        report: list[AlignmentReportEntry] | None = None,
    ) -> None:
        super().__init__(message)
        self.logs = list(logs or [])
        self.report = list(report or [])


class MediaEnvironmentError(DubsyncError):
    """The external media tool is not available."""


class ToolUnavailable(MediaEnvironmentError):
    """The media tool binary could not be executed."""


class ToolTimeout(DubsyncError):
    """An external media tool call exceeded its timeout."""


class InputError(DubsyncError):
    """Missing or invalid inputs."""


class DecodeFailed(DubsyncError):
    """A file could not be demuxed or resampled."""


class ProfileTooShort(DecodeFailed):
    """Too few energy values to align (input too short or empty)."""


class MuxFailed(DubsyncError):
    """Re-muxing the shifted audio onto the video failed."""


class AlignmentCancelled(DubsyncError):
    """The run was cancelled between steps."""


class ToolFailed(DubsyncError):
    """An external command exited non-zero."""

    def __init__(self, message: str, output: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.output = output
        self.returncode = returncode


class MixFailed(DubsyncError):
    """Mixing the speech track over a background track failed."""
