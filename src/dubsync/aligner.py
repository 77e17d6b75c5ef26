"""
Alignment orchestrator: pair inputs, find each pair's offset, re-mux, report.
"""

import logging
import os
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import ExitStack
from enum import Enum

from tqdm import tqdm

from .decoder import decode_to_mono_pcm
from .energy import compute_energy_profile
from .errors import (
    AlignmentCancelled,
    DubsyncError,
    InputError,
    MediaEnvironmentError,
    ProfileTooShort,
)
from .io_ffmpeg import FfmpegTool, MediaTool, ensure_dir
from .models import AlignmentPair, AlignmentReport, AlignmentReportEntry
from .offset import find_best_offset
from .remux import remux
from .scratch import ScratchSpace

logger = logging.getLogger("dubsync")

DEFAULT_PREFIX = "ad_"
MIN_PROFILE_LENGTH = 5

# sink(run_id, message)
ProgressSink = Callable[[str | None, str], None]


class RunState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def pair_inputs(video_paths: Sequence[str], audio_paths: Sequence[str]) -> list[tuple[str, str]]:
    """
    Pair videos with audios by lexicographic order, truncated to the shorter list.
    Files must be named so that sorted order matches the intended pairing.
    """
    videos = sorted(video_paths)
    audios = sorted(audio_paths)
    if len(videos) != len(audios):
        logger.warning(
            "Got %d video(s) and %d audio file(s); only the first %d sorted pairs are aligned",
            len(videos),
            len(audios),
            min(len(videos), len(audios)),
        )
    return list(zip(videos, audios))


def derive_output_path(
    video: str,
    index: int,
    pair_count: int,
    base_dir: str,
    provided_output: str | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> str:
    """Output path for the pair at index (0-based)."""
    if provided_output:
        if pair_count == 1:
            return provided_output
        root, ext = os.path.splitext(os.path.basename(provided_output))
        ext = ext or os.path.splitext(video)[1] or ".mp4"
        return os.path.join(base_dir, f"{root}_{index + 1}{ext}")
    return os.path.join(base_dir, f"{prefix or DEFAULT_PREFIX}{os.path.basename(video)}")


class AlignmentRun:
    """State of a single run: logs, report entries and progress emission."""

    def __init__(
        self,
        media_tool: MediaTool,
        scratch: ScratchSpace,
        run_id: str | None = None,
        sink: ProgressSink | None = None,
        cancel_event: threading.Event | None = None,
        show_progress: bool = False,
    ) -> None:
        self.media_tool = media_tool
        self.scratch = scratch
        self.run_id = run_id
        self.sink = sink
        self.cancel_event = cancel_event
        self.show_progress = show_progress
        self.state = RunState.IDLE
        self.logs: list[str] = []
        self.entries: list[AlignmentReportEntry] = []
        self.last_output: str | None = None
        # scratch-created output directory, when no output path was given
        self.output_dir: str | None = None

    def emit(self, message: str) -> None:
        self.logs.append(message)
        logger.info(message)
        if self.sink is None:
            return
        try:
            self.sink(self.run_id, message)
        except Exception as e:
            logger.warning("Progress sink failed: %s", e)

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise AlignmentCancelled("Alignment cancelled.")

    def validate(self, video_paths: Sequence[str], audio_paths: Sequence[str]) -> None:
        self.state = RunState.VALIDATING
        if not video_paths or not audio_paths:
            raise InputError("Video and audio inputs are required.")
        for p in [*video_paths, *audio_paths]:
            if not os.path.isfile(p):
                raise InputError(f"Input file not found: {p}")
        if not self.media_tool.is_available():
            raise MediaEnvironmentError("FFmpeg is required for alignment.")

    def plan(
        self,
        video_paths: Sequence[str],
        audio_paths: Sequence[str],
        output_path: str | None,
        prefix: str,
    ) -> list[AlignmentPair]:
        pairs = pair_inputs(video_paths, audio_paths)
        provided = os.path.abspath(output_path) if output_path and output_path.strip() else None
        if provided is not None:
            base_dir = os.path.dirname(provided)
            ensure_dir(base_dir)
        else:
            base_dir = self.scratch.create_unique_dir("align-output-")
            self.output_dir = base_dir
        return [
            AlignmentPair(
                video=os.path.abspath(video),
                audio=os.path.abspath(audio),
                output_path=derive_output_path(
                    video, i, len(pairs), base_dir, provided_output=provided, prefix=prefix
                ),
            )
            for i, (video, audio) in enumerate(pairs)
        ]

    def align_pair(self, pair: AlignmentPair) -> AlignmentReportEntry:
        self.emit(f"Aligning: {os.path.basename(pair.video)} with {os.path.basename(pair.audio)}")
        with ExitStack() as stack:
            self.check_cancelled()
            video_dir = stack.enter_context(self.scratch.scoped("align-audio-"))
            video_wave = decode_to_mono_pcm(pair.video, self.media_tool, video_dir)

            self.check_cancelled()
            audio_dir = stack.enter_context(self.scratch.scoped("align-audio-"))
            audio_wave = decode_to_mono_pcm(pair.audio, self.media_tool, audio_dir)

            self.check_cancelled()
            video_profile = compute_energy_profile(video_wave)
            audio_profile = compute_energy_profile(audio_wave)
            del video_wave, audio_wave
            if len(video_profile) < MIN_PROFILE_LENGTH or len(audio_profile) < MIN_PROFILE_LENGTH:
                raise ProfileTooShort("Could not analyze audio energy (files too short or empty).")

            self.check_cancelled()
            best = find_best_offset(video_profile, audio_profile, video_profile.hop_ms)
            self.emit(f"Best offset: {best.offset_ms} ms (score {best.score:.3f})")

            self.check_cancelled()
            remux(pair.video, pair.audio, best.offset_ms, pair.output_path, self.media_tool)

        return AlignmentReportEntry(
            title=os.path.basename(pair.output_path),
            video=pair.video,
            audio=pair.audio,
            offset_ms=best.offset_ms,
            score=best.score,
            output=pair.output_path,
        )

    def fail(self, error: DubsyncError) -> None:
        self.state = RunState.FAILED
        self.emit(f"Error: {error}")
        error.logs = list(self.logs)
        error.report = list(self.entries)

    def settle_output_dir(self) -> None:
        """Hand a populated output dir over to the caller; drop it if nothing was written."""
        if self.output_dir is None:
            return
        if self.entries:
            self.scratch.release(self.output_dir)
        else:
            self.scratch.remove(self.output_dir)
        self.output_dir = None

    def execute(
        self,
        video_paths: Sequence[str],
        audio_paths: Sequence[str],
        output_path: str | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> AlignmentReport:
        try:
            self.validate(video_paths, audio_paths)
            pairs = self.plan(video_paths, audio_paths, output_path, prefix)
            self.state = RunState.PROCESSING
            for pair in tqdm(pairs, desc="Align", disable=not self.show_progress):
                entry = self.align_pair(pair)
                self.entries.append(entry)
                self.last_output = pair.output_path
        except DubsyncError as e:
            self.fail(e)
            raise
        except Exception as e:
            err = DubsyncError(f"{type(e).__name__}: {e}")
            self.fail(err)
            raise err from e
        finally:
            self.settle_output_dir()
        self.state = RunState.COMPLETED
        return AlignmentReport(
            entries=list(self.entries), logs=list(self.logs), output_path=self.last_output
        )


class Aligner:
    """Aligns video/audio pairs and writes re-muxed outputs."""

    def __init__(
        self,
        media_tool: MediaTool | None = None,
        scratch: ScratchSpace | None = None,
        sink: ProgressSink | None = None,
        show_progress: bool = False,
    ) -> None:
        self.media_tool = media_tool or FfmpegTool()
        self.scratch = scratch or ScratchSpace()
        self.sink = sink
        self.show_progress = show_progress
        self._executor: ThreadPoolExecutor | None = None

    def run(
        self,
        video_paths: Sequence[str],
        audio_paths: Sequence[str],
        output_path: str | None = None,
        prefix: str = DEFAULT_PREFIX,
        run_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> AlignmentReport:
        """
        Align every pair in order and return the report.

        The first failing pair aborts the run; the raised DubsyncError carries
        the logs and report entries collected so far.
        """
        run = AlignmentRun(
            self.media_tool,
            self.scratch,
            run_id=run_id,
            sink=self.sink,
            cancel_event=cancel_event,
            show_progress=self.show_progress,
        )
        return run.execute(video_paths, audio_paths, output_path=output_path, prefix=prefix)

    def submit(self, *args, **kwargs) -> "Future[AlignmentReport]":
        """Run in a background worker; same arguments as run()."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dubsync-align")
        return self._executor.submit(self.run, *args, **kwargs)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
