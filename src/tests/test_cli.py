"""
Tests for the command-line entry point.
"""

import json

import pytest
from pydub import AudioSegment

from src.dubsync import cli
from src.dubsync.io_ffmpeg import FfmpegTool


def test_defaults(monkeypatch):
    monkeypatch.delenv("DUBSYNC_OUTPUT_PREFIX", raising=False)
    monkeypatch.setenv("DUBSYNC_TOOL_TIMEOUT", "90")

    args = cli.parse_args(["--video", "a.mp4", "--audio", "a.wav"])

    assert args.stage == "align"
    assert args.prefix == "ad_"
    assert args.tool_timeout == 90.0
    assert args.video == ["a.mp4"]


def test_check_stage_reports_availability(monkeypatch, capsys):
    monkeypatch.setattr(FfmpegTool, "is_available", lambda self: True)

    cli.main(["--stage", "check"])

    assert json.loads(capsys.readouterr().out) == {"ffmpegAvailable": True}


def test_check_stage_fails_without_ffmpeg(monkeypatch):
    monkeypatch.setattr(FfmpegTool, "is_available", lambda self: False)

    with pytest.raises(SystemExit) as exc:
        cli.main(["--stage", "check"])
    assert exc.value.code == 1


def test_align_without_inputs_exits_nonzero(tmp_path, monkeypatch):
    monkeypatch.setattr(FfmpegTool, "is_available", lambda self: True)
    report = tmp_path / "report.json"

    with pytest.raises(SystemExit) as exc:
        cli.main(["--stage", "align", "--video", "x.mp4", "--report", str(report), "--no-progress"])

    assert exc.value.code == 1
    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["entries"] == []
    assert "required" in payload["error"]


def test_fit_srt_writes_ducked_mix_with_background(tmp_path, monkeypatch):
    srt = tmp_path / "subs.srt"
    srt.write_text("1\n00:00:00,000 --> 00:00:01,000\nHello\n", encoding="utf-8")
    music = tmp_path / "music.mp3"
    music.write_bytes(b"\x00")
    mixed: list[tuple] = []

    monkeypatch.setattr(FfmpegTool, "is_available", lambda self: True)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(cli, "OpenAI", lambda api_key: object())
    monkeypatch.setattr(cli, "make_synth_openai", lambda *a, **k: None)
    monkeypatch.setattr(
        cli, "build_subtitle_track", lambda *a, **k: AudioSegment.silent(duration=1000)
    )
    monkeypatch.setattr(
        cli, "mix_with_background", lambda speech, bg, out, tool: mixed.append((speech, bg, out))
    )

    cli.main(
        [
            "--stage",
            "fit-srt",
            "--srt",
            str(srt),
            "--workdir",
            str(tmp_path / "work"),
            "--background",
            str(music),
        ]
    )

    speech = str(tmp_path / "work" / "speech.wav")
    assert (tmp_path / "work" / "speech.wav").exists()
    assert mixed == [(speech, str(music), str(tmp_path / "work" / "mix.mp3"))]
