"""
Audio and video processing through ffmpeg/ffprobe.
"""

import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from .errors import ToolFailed, ToolTimeout, ToolUnavailable

logger = logging.getLogger("dubsync")

MIN_ATEMPO = 0.5
MAX_ATEMPO = 2.0

# "Duration: 00:01:02.50, start: ..." as printed by `ffmpeg -i`
DURATION_RE = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2}(?:\.\d+)?)")


def run(cmd: list[str], *, check: bool = True, timeout: float | None = None) -> str:
    """Run a command and return its combined stdout/stderr."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise ToolUnavailable(f"{cmd[0]} not found") from e
    except PermissionError as e:
        raise ToolUnavailable(f"{cmd[0]} is not executable") from e
    except subprocess.TimeoutExpired as e:
        raise ToolTimeout(f"{cmd[0]} timed out after {timeout}s") from e
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout)
        raise ToolFailed(
            f"Command failed with code {proc.returncode}",
            output=proc.stdout,
            returncode=proc.returncode,
        )
    return proc.stdout


def ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def atempo_chain(speed: float) -> str:
    """
    Build an atempo filter chain for a playback speed multiplier.
    atempo > 1.0 => faster (shorter), atempo < 1.0 => slower (longer).
    Each stage is kept within 0.5..2.0.
    """
    if speed <= 0:
        speed = 1.0
    steps: list[float] = []
    r = speed
    while r < MIN_ATEMPO or r > MAX_ATEMPO:
        step = MIN_ATEMPO if r < 1.0 else MAX_ATEMPO
        steps.append(step)
        r /= step
    steps.append(r)
    return ",".join(f"atempo={s:.6f}" for s in steps)


class MediaTool(Protocol):
    """Out-of-process media capability used by the decoder and the remuxer."""

    def is_available(self) -> bool: ...

    def decode(self, input_path: str, out_wav: str, sample_rate: int = 16000) -> None: ...

    def mux(
        self,
        video_path: str,
        audio_path: str,
        filter_graph: str,
        output_path: str,
        audio_args: list[str],
    ) -> None: ...

    def duration(self, path: str) -> float: ...


class FfmpegTool:
    """MediaTool backed by the ffmpeg and ffprobe binaries."""

    def __init__(
        self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe", timeout: float | None = None
    ) -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.timeout = timeout

    def is_available(self) -> bool:
        if shutil.which(self.ffmpeg) is None:
            return False
        try:
            run([self.ffmpeg, "-version"], timeout=self.timeout)
        except (ToolUnavailable, ToolFailed, ToolTimeout):
            return False
        return True

    def decode(self, input_path: str, out_wav: str, sample_rate: int = 16000) -> None:
        """Extract the first audio stream as mono signed 16-bit PCM."""
        ensure_dir(str(Path(out_wav).parent))
        cmd = [
            self.ffmpeg,
            "-y",
            "-i",
            input_path,
            "-map",
            "0:a:0",
            "-ac",
            "1",
            "-ar",
            str(sample_rate),
            "-sample_fmt",
            "s16",
            "-vn",
            out_wav,
        ]
        run(cmd, timeout=self.timeout)

    def mux(
        self,
        video_path: str,
        audio_path: str,
        filter_graph: str,
        output_path: str,
        audio_args: list[str],
    ) -> None:
        """Copy the video stream and replace its audio with the filtered track."""
        ensure_dir(str(Path(output_path).parent))
        cmd = [
            self.ffmpeg,
            "-y",
            "-i",
            video_path,
            "-i",
            audio_path,
            "-filter_complex",
            filter_graph,
            "-map",
            "0:v:0",
            "-map",
            "[outa]",
            "-c:v",
            "copy",
            *audio_args,
            "-shortest",
            output_path,
        ]
        run(cmd, timeout=self.timeout)

    def mix(
        self,
        background_path: str,
        speech_path: str,
        filter_graph: str,
        output_path: str,
        audio_args: list[str],
    ) -> None:
        """Mix two audio inputs through filter_graph, which must end in [out]."""
        ensure_dir(str(Path(output_path).parent))
        cmd = [
            self.ffmpeg,
            "-y",
            "-i",
            background_path,
            "-i",
            speech_path,
            "-filter_complex",
            filter_graph,
            "-map",
            "[out]",
            *audio_args,
            output_path,
        ]
        run(cmd, timeout=self.timeout)

    def duration(self, path: str) -> float:
        """
        Duration in seconds, 0.0 when it cannot be determined.
        Falls back to the banner of `ffmpeg -i` when ffprobe is not installed.
        """
        try:
            out = run(
                [
                    self.ffprobe,
                    "-v",
                    "error",
                    "-show_entries",
                    "format=duration",
                    "-of",
                    "default=noprint_wrappers=1:nokey=1",
                    path,
                ],
                check=False,
                timeout=self.timeout,
            )
        except ToolUnavailable as e:
            logger.debug("%s, reading duration from ffmpeg instead", e)
            return self._duration_from_banner(path)
        except ToolTimeout as e:
            logger.warning("Duration query failed for %s: %s", path, e)
            return 0.0
        try:
            seconds = float(out.strip().splitlines()[0])
        except (ValueError, IndexError):
            seconds = 0.0
        return seconds if seconds > 0 else 0.0

    def _duration_from_banner(self, path: str) -> float:
        # ffmpeg exits non-zero without an output file; the banner is still printed
        try:
            out = run([self.ffmpeg, "-hide_banner", "-i", path], check=False, timeout=self.timeout)
        except (ToolUnavailable, ToolTimeout) as e:
            logger.warning("Duration query failed for %s: %s", path, e)
            return 0.0
        m = DURATION_RE.search(out)
        if not m:
            return 0.0
        hours, minutes, seconds = m.groups()
        return int(hours) * 3600 + int(minutes) * 60 + float(seconds)

    def change_speed(self, in_path: str, out_path: str, speed: float) -> None:
        """Re-time audio by a playback speed multiplier."""
        if abs(speed - 1.0) < 1e-9:
            if in_path != out_path:
                shutil.copyfile(in_path, out_path)
            return
        same = Path(in_path).resolve() == Path(out_path).resolve()
        target = str(Path(out_path).with_name(f"speed_tmp_{Path(out_path).name}")) if same else out_path
        run(
            [self.ffmpeg, "-y", "-i", in_path, "-filter:a", atempo_chain(speed), "-vn", target],
            timeout=self.timeout,
        )
        if same:
            Path(target).replace(out_path)
