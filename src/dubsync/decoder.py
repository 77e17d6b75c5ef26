"""
Media decoder adapter: any container -> mono 16 kHz 16-bit PCM waveform.
"""

import logging
import os

import numpy as np
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from .errors import DecodeFailed, DubsyncError, ToolFailed
from .io_ffmpeg import MediaTool
from .models import Waveform

logger = logging.getLogger("dubsync")

SAMPLE_RATE = 16000
PCM_SCALE = 32768.0


def decode_to_mono_pcm(input_path: str, media_tool: MediaTool, work_dir: str) -> Waveform:
    """
    Decode the first audio stream of input_path into a mono waveform.

    The intermediate WAV is written into work_dir; the caller owns that directory.
    Raises ToolUnavailable when the tool cannot run and DecodeFailed with the
    tool diagnostics when the input cannot be demuxed.
    """
    wav_path = os.path.join(work_dir, "audio.wav")
    try:
        media_tool.decode(input_path, wav_path, sample_rate=SAMPLE_RATE)
    except ToolFailed as e:
        raise DecodeFailed(f"Failed to extract audio from {input_path}: {e.output.strip()}") from e
    if not os.path.exists(wav_path):
        raise DecodeFailed(f"Failed to extract audio from {input_path}: no output produced")

    try:
        clip = AudioSegment.from_wav(wav_path)
    except (CouldntDecodeError, OSError, EOFError) as e:
        raise DecodeFailed(f"Unreadable PCM for {input_path}: {e}") from e
    if clip.channels != 1 or clip.sample_width != 2:
        raise DecodeFailed(
            f"Expected 16-bit mono PCM for {input_path}, "
            f"got {clip.channels} channel(s) at {clip.sample_width * 8} bits"
        )

    samples = np.asarray(clip.get_array_of_samples(), dtype=np.float64) / PCM_SCALE
    logger.debug(
        "Decoded %s: %d samples @ %d Hz", os.path.basename(input_path), len(samples), clip.frame_rate
    )
    return Waveform(samples=samples, sample_rate=clip.frame_rate)


def query_duration_seconds(path: str, media_tool: MediaTool) -> float:
    """Clip duration in seconds; 0.0 means unknown."""
    try:
        seconds = float(media_tool.duration(path))
    except (DubsyncError, OSError, ValueError, TypeError) as e:
        logger.warning("Could not measure %s: %s", path, e)
        return 0.0
    return seconds if seconds > 0 else 0.0
