"""
Duck a background track under the speech track and mix the two.
"""

import logging

from .errors import MixFailed, ToolFailed
from .io_ffmpeg import FfmpegTool
from .remux import AUDIO_ARGS

logger = logging.getLogger("dubsync")

# Speech is padded past the end of the background so amix never cuts it short.
PAD_TAIL_S = 0.5
DUCKING = "sidechaincompress=threshold=0.1:ratio=12:attack=50:release=400:makeup=1"


def build_ducking_filter(pad_seconds: float = 0.0) -> str:
    """
    Filter graph for inputs [0:a] background and [1:a] speech.

    The speech drives a sidechain compressor on the background, then both are
    summed without normalization. With pad_seconds > 0 the speech is first
    padded with silence to that total length.
    """
    head = "[1:a]"
    prefix = ""
    if pad_seconds > 0:
        prefix = f"[1:a]apad=whole_dur={pad_seconds:.3f}[paddedtts];"
        head = "[paddedtts]"
    return (
        f"{prefix}{head}asplit[tts][detector];"
        f"[0:a][detector]{DUCKING}[ducked];"
        "[ducked][tts]amix=inputs=2:normalize=0:duration=longest[out]"
    )


def mix_with_background(
    speech_path: str, background_path: str, output_path: str, media_tool: FfmpegTool
) -> None:
    """Write speech ducked over background to output_path; raises MixFailed."""
    bg_seconds = media_tool.duration(background_path)
    pad = bg_seconds + PAD_TAIL_S if bg_seconds > 0 else 0.0
    filter_graph = build_ducking_filter(pad)
    logger.debug("Mix filter: %s", filter_graph)
    try:
        media_tool.mix(background_path, speech_path, filter_graph, output_path, list(AUDIO_ARGS))
    except ToolFailed as e:
        detail = e.output.strip() or f"ffmpeg exited with code {e.returncode}"
        raise MixFailed(f"Failed to mix {output_path}: {detail}") from e
