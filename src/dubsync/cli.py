"""
Command-line interface for alignment and subtitle speech fitting.
"""

import argparse
import json
import logging
import os
import pathlib
from dataclasses import asdict

from dotenv import load_dotenv

from .aligner import DEFAULT_PREFIX, Aligner
from .decoder import query_duration_seconds
from .errors import DubsyncError
from .fitter import SlotFitter
from .io_ffmpeg import FfmpegTool, ensure_dir
from .mixdown import mix_with_background
from .srt_utils import parse_srt
from .timeline import build_subtitle_track
from .tts import make_synth_elevenlabs, make_synth_openai, pick_elevenlabs_default_voice

logger = logging.getLogger("dubsync")

# Optional OpenAI SDK
try:
    from openai import OpenAI
except ImportError:
    OpenAI = None


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}")
        return None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Dub alignment and subtitle speech fitting")

    ap.add_argument(
        "--stage",
        choices=["check", "align", "fit-srt"],
        default="align",
        help="check: ffmpeg availability; align: sync audio to video; fit-srt: TTS per cue fitted to slots",
    )

    # Media tool
    ap.add_argument("--ffmpeg", default=os.getenv("DUBSYNC_FFMPEG", "ffmpeg"))
    ap.add_argument("--ffprobe", default=os.getenv("DUBSYNC_FFPROBE", "ffprobe"))
    ap.add_argument(
        "--tool-timeout",
        type=float,
        default=_env_float("DUBSYNC_TOOL_TIMEOUT"),
        help="Seconds before an ffmpeg/ffprobe call is killed (default: no timeout)",
    )

    # Alignment
    ap.add_argument("--video", nargs="+", default=[], help="Video files (paired by sorted name)")
    ap.add_argument("--audio", nargs="+", default=[], help="Audio files (paired by sorted name)")
    ap.add_argument("--output", default=None, help="Output path (suffixed _N for several pairs)")
    ap.add_argument(
        "--prefix",
        default=os.getenv("DUBSYNC_OUTPUT_PREFIX", DEFAULT_PREFIX),
        help="Output filename prefix when --output is not given",
    )
    ap.add_argument("--report", default=None, help="Write the alignment report as JSON here")
    ap.add_argument("--run-id", default=None)

    # Subtitle speech
    ap.add_argument("--srt", default=None, help="Subtitle file for --stage fit-srt")
    ap.add_argument("--workdir", default=".work")
    ap.add_argument("--speed", type=float, default=1.0, help="Base speech speed multiplier")
    ap.add_argument("--tts-provider", choices=["openai", "elevenlabs"], default="openai")
    ap.add_argument("--tts-model", default="gpt-4o-mini-tts", help="Used when --tts-provider=openai")
    ap.add_argument("--voice", default="alloy", help="OpenAI TTS voice (when provider=openai)")
    ap.add_argument(
        "--voice-instructions",
        default=os.getenv("OPENAI_TTS_INSTRUCTIONS"),
        help="Optional TTS style instructions for OpenAI (not read aloud)",
    )
    ap.add_argument(
        "--elevenlabs-voice-id",
        default=None,
        help="ElevenLabs voice_id (defaults to $ELEVENLABS_VOICE_ID or auto-pick)",
    )
    ap.add_argument("--elevenlabs-model-id", default="eleven_multilingual_v2")
    ap.add_argument(
        "--background",
        default=None,
        help="Background track to duck under the speech (writes a second, mixed output)",
    )
    ap.add_argument("--mix-output", default=None, help="Mixed output path (default: <workdir>/mix.mp3)")

    # Logging
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    ap.add_argument("--no-progress", action="store_true", help="Hide progress bars")

    return ap.parse_args(argv)


def run_align(args: argparse.Namespace, media_tool: FfmpegTool) -> None:
    aligner = Aligner(media_tool=media_tool, show_progress=not args.no_progress)
    try:
        report = aligner.run(
            args.video,
            args.audio,
            output_path=args.output,
            prefix=args.prefix,
            run_id=args.run_id,
        )
    except DubsyncError as e:
        if args.report:
            _write_report(args.report, [asdict(x) for x in e.report], e.logs, None, error=str(e))
        raise
    for entry in report.entries:
        logger.info(f"{entry.title}: offset {entry.offset_ms} ms, score {entry.score:.3f}")
    if args.report:
        _write_report(
            args.report, [asdict(x) for x in report.entries], report.logs, report.output_path
        )
        logger.info(f"Saved report -> {args.report}")
    logger.info(f"Done (aligned) -> {report.output_path}")


def _write_report(
    path: str, entries: list[dict], logs: list[str], output_path: str | None, error: str | None = None
) -> None:
    ensure_dir(str(pathlib.Path(path).parent))
    payload = {"entries": entries, "logs": logs, "output_path": output_path}
    if error:
        payload["error"] = error
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def run_fit_srt(args: argparse.Namespace, media_tool: FfmpegTool) -> None:
    if not args.srt or not os.path.exists(args.srt):
        raise RuntimeError(f"SRT not found: {args.srt}")
    if args.background and not os.path.exists(args.background):
        raise RuntimeError(f"Background track not found: {args.background}")
    if not media_tool.is_available():
        raise RuntimeError("FFmpeg is required to measure and re-time speech clips.")

    if args.tts_provider == "openai":
        openai_key = os.getenv("OPENAI_API_KEY")
        if not OpenAI:
            raise RuntimeError("openai package not installed. Install with: pip install openai")
        if not openai_key:
            raise RuntimeError("OPENAI_API_KEY is not set. Put it in .env or environment.")
        synth = make_synth_openai(
            OpenAI(api_key=openai_key),
            args.tts_model,
            args.voice,
            args.voice_instructions,
            media_tool=media_tool,
        )
        cache_sig = ("openai", args.tts_model, args.voice)
    else:
        eleven_key = os.getenv("ELEVENLABS_API_KEY")
        if not eleven_key:
            raise RuntimeError("ELEVENLABS_API_KEY is not set. Put it in .env or environment.")
        voice_id = args.elevenlabs_voice_id or os.getenv("ELEVENLABS_VOICE_ID")
        if not voice_id:
            voice_id = pick_elevenlabs_default_voice(eleven_key)
            if voice_id:
                logger.info(f"Using ElevenLabs voice_id (auto): {voice_id}")
        if not voice_id:
            raise RuntimeError(
                "ElevenLabs voice_id not provided. Set ELEVENLABS_VOICE_ID or pass --elevenlabs-voice-id."
            )
        synth = make_synth_elevenlabs(eleven_key, voice_id, args.elevenlabs_model_id, media_tool)
        cache_sig = ("elevenlabs", args.elevenlabs_model_id, voice_id)

    cues = parse_srt(args.srt)
    logger.info(f"Loaded SRT -> {args.srt} ({len(cues)} cues)")

    fitter = SlotFitter(lambda path: query_duration_seconds(path, media_tool))
    track = build_subtitle_track(
        cues,
        tmp_dir=os.path.join(args.workdir, "tmp", "cues"),
        synth_func=synth,
        fitter=fitter,
        base_speed=args.speed,
        cache_sig=cache_sig,
    )

    output = args.output or os.path.join(args.workdir, "speech.wav")
    ensure_dir(str(pathlib.Path(output).parent))
    fmt = pathlib.Path(output).suffix.lstrip(".").lower() or "wav"
    track.export(output, format=fmt)
    logger.info(f"Done (speech track {len(track) / 1000:.3f}s) -> {output}")

    if args.background:
        mix_output = args.mix_output or os.path.join(args.workdir, "mix.mp3")
        mix_with_background(output, args.background, mix_output, media_tool)
        logger.info(f"Done (ducked mix) -> {mix_output}")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    # Look for .env in the project root (parent of src directory)
    project_root = pathlib.Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    args = parse_args(argv)
    setup_logging(args.verbose)

    media_tool = FfmpegTool(ffmpeg=args.ffmpeg, ffprobe=args.ffprobe, timeout=args.tool_timeout)

    if args.stage == "check":
        available = media_tool.is_available()
        print(json.dumps({"ffmpegAvailable": available}))
        if not available:
            raise SystemExit(1)
        return

    try:
        if args.stage == "align":
            run_align(args, media_tool)
        else:
            run_fit_srt(args, media_tool)
    except DubsyncError as e:
        logger.error(f"{type(e).__name__}: {e}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
