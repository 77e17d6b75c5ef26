"""
Text-to-speech synthesis with a playback speed multiplier (OpenAI, ElevenLabs).
"""

import hashlib
import logging
from collections.abc import Callable
from pathlib import Path

import httpx
from pydub import AudioSegment

from .io_ffmpeg import FfmpegTool

logger = logging.getLogger("dubsync")

# Optional OpenAI SDK
try:
    from openai import OpenAI
except ImportError:
    OpenAI = None

OPENAI_MIN_SPEED = 0.25
OPENAI_MAX_SPEED = 4.0
# Only these models honour the `speed` request field; others are re-timed afterwards.
OPENAI_NATIVE_SPEED_MODELS = ("tts-1", "tts-1-hd")

# synth(text, out_path, speed)
SpeechSynth = Callable[[str, str, float], None]


def _hash_for_cache(provider: str, model: str, voice: str, text: str, speed: float = 1.0) -> str:
    """Generate cache hash for TTS audio."""
    key = f"{provider}|{model}|{voice}|{speed:.4f}|{text}".encode()
    return hashlib.sha1(key).hexdigest()[:12]


def tts_speak_openai(
    client: OpenAI,
    text: str,
    model: str,
    voice: str,
    out_path: str,
    speed: float = 1.0,
    instructions: str | None = None,
) -> None:
    """Synthesize speech using OpenAI TTS at the given speed."""
    if client is None:
        raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")
    kwargs = {
        "model": model,
        "voice": voice,
        "input": text,
        "response_format": "wav",
        "speed": min(max(speed, OPENAI_MIN_SPEED), OPENAI_MAX_SPEED),
    }
    if instructions:
        kwargs["instructions"] = instructions
    with client.audio.speech.with_streaming_response.create(**kwargs) as resp:
        resp.stream_to_file(out_path)


def elevenlabs_tts_speak(
    api_key: str, voice_id: str, text: str, out_path: str, model_id: str = "eleven_multilingual_v2"
) -> None:
    """Synthesize speech using ElevenLabs TTS (always at 1x)."""
    if not api_key:
        raise RuntimeError("ELEVENLABS_API_KEY is not set.")
    if not voice_id:
        raise RuntimeError(
            "ElevenLabs voice_id is required (use --elevenlabs-voice-id or ELEVENLABS_VOICE_ID)."
        )

    url = f"https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
    headers = {
        "xi-api-key": api_key,
        "accept": "audio/mpeg",
        "Content-Type": "application/json",
        "User-Agent": "dubsync/0.1",
    }
    payload = {
        "text": text,
        "model_id": model_id,
        "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
    }

    with httpx.Client(follow_redirects=True, timeout=60.0) as client:
        r = client.post(url, json=payload, headers=headers)
        ctype = r.headers.get("content-type", "")
        if r.status_code != 200 or not ctype.startswith(("audio/", "application/octet-stream")):
            raise RuntimeError(f"ElevenLabs TTS failed: {r.status_code} {r.text[:300]}")
        tmp_mp3 = str(Path(out_path).with_suffix(".mp3"))
        with open(tmp_mp3, "wb") as f:
            f.write(r.content)
    AudioSegment.from_file(tmp_mp3, format="mp3").export(out_path, format="wav")
    Path(tmp_mp3).unlink(missing_ok=True)


def make_synth_openai(
    client: OpenAI,
    tts_model: str,
    voice: str,
    instructions: str | None = None,
    media_tool: FfmpegTool | None = None,
) -> SpeechSynth:
    """
    Create OpenAI TTS synthesis function.
    tts-1 models render at the requested speed; for other models (gpt-4o-mini-tts)
    the clip is rendered at 1x and re-timed with atempo.
    """
    if tts_model in OPENAI_NATIVE_SPEED_MODELS:

        def _synth(text: str, out_path: str, speed: float = 1.0) -> None:
            tts_speak_openai(
                client, text, tts_model, voice, out_path, speed=speed, instructions=instructions
            )

        return _synth

    tool = media_tool or FfmpegTool()

    def _synth_retimed(text: str, out_path: str, speed: float = 1.0) -> None:
        tts_speak_openai(client, text, tts_model, voice, out_path, instructions=instructions)
        if abs(speed - 1.0) > 1e-9:
            tool.change_speed(out_path, out_path, speed)

    return _synth_retimed


def make_synth_elevenlabs(
    api_key: str, voice_id: str, model_id: str, media_tool: FfmpegTool
) -> SpeechSynth:
    """Create ElevenLabs synthesis function; speed is applied afterwards with atempo."""

    def _synth(text: str, out_path: str, speed: float = 1.0) -> None:
        elevenlabs_tts_speak(api_key, voice_id, text, out_path, model_id=model_id)
        if abs(speed - 1.0) > 1e-9:
            media_tool.change_speed(out_path, out_path, speed)

    return _synth


def pick_elevenlabs_default_voice(api_key: str) -> str | None:
    """Auto-pick first available ElevenLabs voice."""
    try:
        r = httpx.get(
            "https://api.elevenlabs.io/v1/voices",
            headers={
                "xi-api-key": api_key,
                "accept": "application/json",
                "User-Agent": "dubsync/0.1",
            },
            timeout=30.0,
        )
        HTTP_OK = 200
        if r.status_code == HTTP_OK:
            voices = r.json().get("voices", []) or []
            if voices and isinstance(voices, list):
                vid = voices[0].get("voice_id")
                return str(vid) if vid else None
        else:
            logger.warning("Could not fetch voices list (%d)", r.status_code)
    except httpx.HTTPError as e:
        logger.warning("Failed to auto-pick ElevenLabs voice: %s", e)
    return None
