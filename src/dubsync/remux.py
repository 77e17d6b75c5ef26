"""
Re-mux the offset audio track onto the untouched video stream.
"""

import logging

from .errors import MuxFailed, ToolFailed
from .io_ffmpeg import MediaTool

logger = logging.getLogger("dubsync")

# 320 kbps / 48 kHz / stereo MP3
AUDIO_ARGS = ["-c:a", "libmp3lame", "-b:a", "320k", "-ar", "48000", "-ac", "2"]


def build_audio_filter(offset_ms: float) -> str:
    """Delay and pad the audio for offset >= 0, trim its head otherwise."""
    if offset_ms >= 0:
        delay = int(round(offset_ms))
        return f"[1:a]adelay={delay}|{delay},apad[outa]"
    start = max(0.0, -offset_ms / 1000.0)
    return f"[1:a]atrim=start={start:.3f},asetpts=PTS-STARTPTS[outa]"


def remux(
    video_path: str, audio_path: str, offset_ms: float, output_path: str, media_tool: MediaTool
) -> None:
    """Copy the video stream and attach audio_path shifted by offset_ms; raises MuxFailed."""
    filter_graph = build_audio_filter(offset_ms)
    logger.debug("Mux filter: %s", filter_graph)
    try:
        media_tool.mux(video_path, audio_path, filter_graph, output_path, list(AUDIO_ARGS))
    except ToolFailed as e:
        detail = e.output.strip() or f"ffmpeg exited with code {e.returncode}"
        raise MuxFailed(f"Failed to mux {output_path}: {detail}") from e
