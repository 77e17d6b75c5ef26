"""
SRT reading into timed cues.
"""

import logging
import re

from .models import Cue, SubtitleSlot

logger = logging.getLogger("dubsync")

_TIME_LINE_RE = re.compile(r"^\s*(\S+)\s+-->\s+(\S+)")


def parse_timestamp(ts: str) -> float:
    """HH:MM:SS,mmm (or with '.') -> milliseconds."""
    parts = ts.strip().replace(",", ".").split(":")
    seconds = float(parts.pop() or 0)
    minutes = int(parts.pop() or 0) if parts else 0
    hours = int(parts.pop() or 0) if parts else 0
    return (hours * 3600 + minutes * 60 + seconds) * 1000.0


def parse_srt_text(raw: str) -> list[Cue]:
    """Parse SRT content; blocks without a valid time line are skipped."""
    normalized = raw.strip().replace("\r\n", "\n").replace("\r", "\n")
    blocks = re.split(r"\n\s*\n", normalized)
    out: list[Cue] = []
    for b in blocks:
        lines = [ln for ln in b.split("\n") if ln.strip()]
        if not lines:
            continue
        index = len(out) + 1
        if re.match(r"^\d+$", lines[0].strip()):
            index = int(lines[0].strip())
            lines = lines[1:]
        if not lines:
            continue
        m = _TIME_LINE_RE.match(lines[0])
        if not m:
            continue
        try:
            start = parse_timestamp(m.group(1))
            end = parse_timestamp(m.group(2))
        except ValueError:
            logger.warning("Skipping cue %d with bad timestamps: %s", index, lines[0])
            continue
        text = "\n".join(ln.strip() for ln in lines[1:])
        out.append(Cue(index=index, slot=SubtitleSlot(start_ms=start, end_ms=end), text=text))
    return out


def parse_srt(path: str) -> list[Cue]:
    """Parse SRT file into cues."""
    with open(path, encoding="utf-8-sig") as f:
        return parse_srt_text(f.read())
