"""
Tests for the speed-aware synthesis factories.
"""

from types import SimpleNamespace

from src.dubsync import tts
from src.dubsync.tts import _hash_for_cache, make_synth_elevenlabs, make_synth_openai


class FakeStream:
    def __init__(self, sink, kwargs):
        self.sink = sink
        self.kwargs = kwargs

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def stream_to_file(self, path):
        self.sink.append((path, self.kwargs))


def fake_openai_client(sink):
    create = lambda **kwargs: FakeStream(sink, kwargs)  # noqa: E731
    streaming = SimpleNamespace(create=create)
    speech = SimpleNamespace(with_streaming_response=streaming)
    return SimpleNamespace(audio=SimpleNamespace(speech=speech))


def test_cache_key_depends_on_speed():
    base = _hash_for_cache("openai", "tts", "alloy", "Hello", 1.0)

    assert base == _hash_for_cache("openai", "tts", "alloy", "Hello", 1.0)
    assert base != _hash_for_cache("openai", "tts", "alloy", "Hello", 1.5)
    assert len(base) == 12


def test_openai_speed_is_passed_and_clamped():
    sent: list = []
    synth = make_synth_openai(fake_openai_client(sent), "tts-1", "alloy", media_tool=SpeedTool())

    synth("Hello", "/tmp/a.wav", 1.7)
    synth("Hello", "/tmp/b.wav", 9.0)

    assert sent[0][0] == "/tmp/a.wav"
    assert sent[0][1]["speed"] == 1.7
    assert sent[0][1]["response_format"] == "wav"
    assert "instructions" not in sent[0][1]
    assert sent[1][1]["speed"] == 4.0


def test_elevenlabs_applies_speed_after_rendering(monkeypatch):
    rendered: list[str] = []
    monkeypatch.setattr(
        tts, "elevenlabs_tts_speak", lambda key, vid, text, out, model_id: rendered.append(out)
    )

    class Tool:
        def __init__(self):
            self.calls = []

        def change_speed(self, in_path, out_path, speed):
            self.calls.append((in_path, out_path, speed))

    tool = Tool()
    synth = make_synth_elevenlabs("key", "voice", "eleven_multilingual_v2", tool)

    synth("Hello", "/tmp/c.wav", 1.0)
    synth("Hello", "/tmp/d.wav", 2.5)

    assert rendered == ["/tmp/c.wav", "/tmp/d.wav"]
    assert tool.calls == [("/tmp/d.wav", "/tmp/d.wav", 2.5)]


class SpeedTool:
    def __init__(self):
        self.calls = []

    def change_speed(self, in_path, out_path, speed):
        self.calls.append((in_path, out_path, speed))


def test_default_openai_model_is_retimed_after_rendering():
    """gpt-4o-mini-tts ignores `speed`, so the clip is rendered at 1x and re-timed."""
    sent: list = []
    tool = SpeedTool()
    synth = make_synth_openai(
        fake_openai_client(sent), "gpt-4o-mini-tts", "alloy", "Calm", media_tool=tool
    )

    synth("Hello", "/tmp/e.wav", 1.0)
    synth("Hello", "/tmp/f.wav", 1.5)

    assert [kwargs["speed"] for _, kwargs in sent] == [1.0, 1.0]
    assert sent[1][1]["instructions"] == "Calm"
    assert tool.calls == [("/tmp/f.wav", "/tmp/f.wav", 1.5)]
