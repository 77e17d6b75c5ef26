"""
Tests for the media decoder adapter.
"""

import numpy as np
import pytest

from src.dubsync.decoder import decode_to_mono_pcm, query_duration_seconds
from src.dubsync.errors import DecodeFailed, ToolUnavailable
from src.tests.fakes import FakeMediaTool, write_wav


def test_decodes_to_float_waveform(tmp_path):
    signal = np.linspace(-0.5, 0.5, 16000)
    tool = FakeMediaTool(signals={"movie.mp4": signal})

    wave = decode_to_mono_pcm("/media/movie.mp4", tool, str(tmp_path))

    assert wave.sample_rate == 16000
    assert len(wave.samples) == 16000
    assert np.all(np.abs(wave.samples) <= 1.0)
    assert np.allclose(wave.samples, signal, atol=1e-4)
    assert (tmp_path / "audio.wav").exists()


def test_tool_failure_becomes_decode_failed(tmp_path):
    tool = FakeMediaTool(fail_decode={"broken.mp4"})

    with pytest.raises(DecodeFailed) as exc:
        decode_to_mono_pcm("/media/broken.mp4", tool, str(tmp_path))

    assert "Invalid data found" in str(exc.value)


def test_missing_output_is_decode_failed(tmp_path):
    class SilentTool(FakeMediaTool):
        def decode(self, input_path, out_wav, sample_rate=16000):
            pass

    with pytest.raises(DecodeFailed):
        decode_to_mono_pcm("/media/x.mp4", SilentTool(), str(tmp_path))


def test_stereo_output_is_rejected(tmp_path):
    class StereoTool(FakeMediaTool):
        def decode(self, input_path, out_wav, sample_rate=16000):
            write_wav(out_wav, np.zeros(3200), sample_rate, channels=2)

    with pytest.raises(DecodeFailed):
        decode_to_mono_pcm("/media/x.mp4", StereoTool(), str(tmp_path))


def test_missing_tool_propagates(tmp_path):
    class MissingTool(FakeMediaTool):
        def decode(self, input_path, out_wav, sample_rate=16000):
            raise ToolUnavailable("ffmpeg not found")

    with pytest.raises(ToolUnavailable):
        decode_to_mono_pcm("/media/x.mp4", MissingTool(), str(tmp_path))


def test_duration_query_returns_zero_on_failure():
    class BrokenTool(FakeMediaTool):
        def duration(self, path):
            raise ToolUnavailable("ffprobe not found")

    assert query_duration_seconds("clip.mp3", BrokenTool()) == 0.0
    assert query_duration_seconds("clip.mp3", FakeMediaTool(durations={"clip.mp3": 2.5})) == 2.5
    assert query_duration_seconds("other.mp3", FakeMediaTool()) == 0.0
