"""
Speech track building from subtitle cues, each clip fitted to its slot.
"""

import logging
import os

from pydub import AudioSegment
from tqdm import tqdm

from .fitter import SlotFitter
from .io_ffmpeg import ensure_dir
from .models import Cue
from .tts import SpeechSynth, _hash_for_cache

logger = logging.getLogger("dubsync")


def build_subtitle_track(
    cues: list[Cue],
    tmp_dir: str,
    synth_func: SpeechSynth,
    fitter: SlotFitter,
    base_speed: float = 1.0,
    sample_rate: int = 24000,
    cache_sig: tuple[str, str, str] | None = None,
) -> AudioSegment:
    """Synthesize every cue, fit it to its slot and lay the clips out on one track."""
    ensure_dir(tmp_dir)
    timeline = AudioSegment.silent(duration=0, frame_rate=sample_rate)
    cursor_ms = 0
    failures: list[int] = []
    adjusted: list[int] = []
    provider, model, voice = cache_sig or ("prov", "model", "voice")

    def clip_path(i: int, text: str, speed: float) -> str:
        sig = _hash_for_cache(provider, model, voice, text, speed)
        return os.path.join(tmp_dir, f"cue_{i:04d}_{sig}.wav")

    for i, cue in enumerate(tqdm(cues, desc="TTS cues")):
        text = " ".join(cue.text.split())
        start_ms = int(cue.slot.start_ms)
        slot_ms = int(cue.slot.duration_ms)
        clip: AudioSegment | None = None

        if text:
            base_wav = clip_path(i, text, base_speed)

            def resynth(speed: float, text: str = text, i: int = i) -> str:
                out = clip_path(i, text, speed)
                if not os.path.exists(out):
                    synth_func(text, out, speed)
                return out

            def recover(text: str = text, base_wav: str = base_wav) -> str:
                if os.path.exists(base_wav):
                    os.remove(base_wav)
                synth_func(text, base_wav, base_speed)
                return base_wav

            try:
                if not os.path.exists(base_wav):
                    synth_func(text, base_wav, base_speed)
                result = fitter.fit(base_wav, cue.slot, base_speed, resynth, on_invalid_duration=recover)
                if result.resynthesized:
                    adjusted.append(cue.index)
                clip = AudioSegment.from_file(result.path).set_frame_rate(sample_rate).set_channels(1)
            except Exception as e:
                logger.error(f"TTS failed for cue {cue.index}: {e}")
                failures.append(cue.index)

        if clip is None:
            clip = AudioSegment.silent(duration=slot_ms, frame_rate=sample_rate)

        if start_ms > cursor_ms:
            timeline += AudioSegment.silent(duration=start_ms - cursor_ms, frame_rate=sample_rate)
            cursor_ms = start_ms
        elif start_ms < cursor_ms:
            logger.warning(f"cue {cue.index} starts {cursor_ms - start_ms}ms late (previous clip overran)")
        timeline += clip
        cursor_ms += len(clip)

    if adjusted:
        logger.info(f"Re-synthesized {len(adjusted)} cue(s) faster to fit their slots: {adjusted}")
    if failures:
        logger.warning(
            f"TTS completed with {len(failures)} failed cues (rendered as silence): {failures}"
        )
    return timeline.set_frame_rate(sample_rate).set_channels(1)
