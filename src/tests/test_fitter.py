"""
Tests for fitting speech clips into subtitle slots.
"""

import pytest

from src.dubsync.fitter import FitState, SlotFitter, fit_clip_to_slot
from src.dubsync.models import SubtitleSlot

SLOT = SubtitleSlot(start_ms=1000, end_ms=2000)


class Recorder:
    """Synthesis stub that records requested speeds."""

    def __init__(self, result="fast.mp3", error=None):
        self.speeds: list[float] = []
        self.result = result
        self.error = error

    def __call__(self, speed: float):
        self.speeds.append(speed)
        if self.error:
            raise self.error
        return self.result


def durations(mapping):
    return lambda path: mapping.get(path, 0.0)


def test_within_tolerance_is_kept():
    synth = Recorder()
    path = fit_clip_to_slot("clip.mp3", SLOT, 1.0, synth, durations({"clip.mp3": 1.01}))

    assert path == "clip.mp3"
    assert synth.speeds == []


def test_overrun_requests_one_faster_synthesis():
    synth = Recorder()
    result = SlotFitter(durations({"clip.mp3": 1.5})).fit("clip.mp3", SLOT, 1.0, synth)

    assert result.path == "fast.mp3"
    assert result.resynthesized is True
    assert synth.speeds == [pytest.approx(1.5)]
    assert result.ratio == pytest.approx(1.5)


def test_needed_speed_scales_base_speed():
    synth = Recorder()
    SlotFitter(durations({"clip.mp3": 1.5})).fit("clip.mp3", SLOT, 1.2, synth)

    assert synth.speeds == [pytest.approx(1.8)]


def test_needed_speed_is_capped_at_four():
    synth = Recorder()
    result = SlotFitter(durations({"clip.mp3": 6.0})).fit("clip.mp3", SLOT, 1.0, synth)

    assert synth.speeds == [4.0]
    assert result.speed == 4.0


def test_no_meaningful_speedup_keeps_clip():
    """Already at the cap: nothing faster to ask for."""
    synth = Recorder()
    path = fit_clip_to_slot("clip.mp3", SLOT, 4.0, synth, durations({"clip.mp3": 2.0}))

    assert path == "clip.mp3"
    assert synth.speeds == []


def test_synthesis_failure_falls_back_to_original():
    synth = Recorder(error=RuntimeError("quota exceeded"))
    path = fit_clip_to_slot("clip.mp3", SLOT, 1.0, synth, durations({"clip.mp3": 1.5}))

    assert path == "clip.mp3"
    assert len(synth.speeds) == 1


def test_synthesis_without_path_falls_back_to_original():
    synth = Recorder(result=None)
    path = fit_clip_to_slot("clip.mp3", SLOT, 1.0, synth, durations({"clip.mp3": 1.5}))

    assert path == "clip.mp3"


def test_unknown_duration_without_recovery_keeps_clip():
    synth = Recorder()
    result = SlotFitter(durations({})).fit("clip.mp3", SLOT, 1.0, synth)

    assert result.path == "clip.mp3"
    assert result.duration_ms is None
    assert synth.speeds == []
    assert result.trace == [FitState.MEASURING]


def test_recovery_is_attempted_once():
    """Measuring -> Recovering -> Measuring, then give up."""
    calls: list[int] = []

    def recover():
        calls.append(1)
        return "regenerated.mp3"

    synth = Recorder()
    result = SlotFitter(durations({})).fit(
        "clip.mp3", SLOT, 1.0, synth, on_invalid_duration=recover
    )

    assert calls == [1]
    assert result.path == "regenerated.mp3"
    assert synth.speeds == []
    assert result.trace == [FitState.MEASURING, FitState.RECOVERING, FitState.MEASURING]


def test_recovered_clip_is_measured_and_fitted():
    synth = Recorder()
    result = SlotFitter(durations({"regenerated.mp3": 2.0})).fit(
        "clip.mp3", SLOT, 1.0, synth, on_invalid_duration=lambda: "regenerated.mp3"
    )

    assert synth.speeds == [pytest.approx(2.0)]
    assert result.path == "fast.mp3"
    assert result.trace == [
        FitState.MEASURING,
        FitState.RECOVERING,
        FitState.MEASURING,
        FitState.DECIDING,
        FitState.RESYNTHESIZING,
    ]


def test_adjusting_speed_callback_fires_before_synthesis():
    events: list[str] = []

    def synth(speed):
        events.append("synth")
        return "fast.mp3"

    SlotFitter(durations({"clip.mp3": 1.5})).fit(
        "clip.mp3", SLOT, 1.0, synth, on_adjusting_speed=lambda: events.append("adjusting")
    )

    assert events == ["adjusting", "synth"]


def test_degenerate_slot_is_clamped_to_one_ms():
    assert SubtitleSlot(start_ms=500, end_ms=400).duration_ms == 1.0


def test_failing_adjusting_speed_callback_does_not_stop_synthesis():
    synth = Recorder()

    def notify():
        raise RuntimeError("progress window closed")

    result = SlotFitter(durations({"clip.mp3": 1.5})).fit(
        "clip.mp3", SLOT, 1.0, synth, on_adjusting_speed=notify
    )

    assert synth.speeds == [1.5]
    assert result.path == "fast.mp3"
    assert result.resynthesized
