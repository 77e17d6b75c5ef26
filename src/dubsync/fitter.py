"""
Fit a synthesized speech clip into its subtitle slot.

One corrective pass: measure the clip, and if it overruns the slot by more
than the tolerance, ask for a single faster re-synthesis. Measurement and
synthesis failures fall back to the clip we already have.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .models import SubtitleSlot

logger = logging.getLogger("dubsync")

FIT_TOLERANCE = 1.02
MAX_SPEED = 4.0
MIN_SPEED_GAIN = 0.01

# synthesize(speed) -> path of the re-rendered clip (None or raise on failure)
Synthesize = Callable[[float], str | None]
# query_duration(path) -> seconds, 0 when unknown
DurationQuery = Callable[[str], float]


class FitState(Enum):
    MEASURING = "measuring"
    RECOVERING = "recovering"
    DECIDING = "deciding"
    RESYNTHESIZING = "resynthesizing"
    DONE = "done"


@dataclass
class FitResult:
    path: str
    duration_ms: float | None = None
    ratio: float | None = None
    speed: float | None = None  # speed requested for the re-synthesis, if any
    resynthesized: bool = False
    trace: list[FitState] = field(default_factory=list)


class SlotFitter:
    def __init__(
        self,
        query_duration: DurationQuery,
        tolerance: float = FIT_TOLERANCE,
        max_speed: float = MAX_SPEED,
        min_speed_gain: float = MIN_SPEED_GAIN,
    ) -> None:
        self.query_duration = query_duration
        self.tolerance = tolerance
        self.max_speed = max_speed
        self.min_speed_gain = min_speed_gain

    def _measure_ms(self, path: str) -> float:
        try:
            seconds = float(self.query_duration(path) or 0.0)
        except Exception as e:
            logger.warning("Duration query failed for %s: %s", path, e)
            return 0.0
        return seconds * 1000.0 if seconds > 0 else 0.0

    def fit(
        self,
        clip_path: str,
        slot: SubtitleSlot,
        base_speed: float,
        synthesize: Synthesize,
        on_invalid_duration: Callable[[], str | None] | None = None,
        on_adjusting_speed: Callable[[], None] | None = None,
    ) -> FitResult:
        """Return the clip to use for slot; never raises for synthesis or measurement failures."""
        result = FitResult(path=clip_path)
        state = FitState.MEASURING
        recovered = False
        duration_ms = 0.0

        while state is not FitState.DONE:
            result.trace.append(state)

            if state is FitState.MEASURING:
                duration_ms = self._measure_ms(result.path)
                if duration_ms > 0:
                    result.duration_ms = duration_ms
                    state = FitState.DECIDING
                elif on_invalid_duration is not None and not recovered:
                    state = FitState.RECOVERING
                else:
                    logger.debug("Duration unknown for %s, keeping clip", result.path)
                    state = FitState.DONE

            elif state is FitState.RECOVERING:
                recovered = True
                try:
                    refreshed = on_invalid_duration()
                except Exception as e:
                    logger.warning("Clip recovery failed for %s: %s", result.path, e)
                    refreshed = None
                if refreshed:
                    result.path = refreshed
                    state = FitState.MEASURING
                else:
                    state = FitState.DONE

            elif state is FitState.DECIDING:
                result.ratio = duration_ms / slot.duration_ms
                if result.ratio <= self.tolerance:
                    state = FitState.DONE
                    continue
                needed = min(base_speed * result.ratio, self.max_speed)
                if needed <= base_speed + self.min_speed_gain:
                    state = FitState.DONE
                    continue
                result.speed = needed
                state = FitState.RESYNTHESIZING

            elif state is FitState.RESYNTHESIZING:
                state = FitState.DONE
                if on_adjusting_speed is not None:
                    try:
                        on_adjusting_speed()
                    except Exception as e:
                        logger.warning("Speed adjustment callback failed: %s", e)
                logger.info(
                    "Clip overruns slot by %.0f%%, re-synthesizing at %.2fx",
                    (result.ratio - 1.0) * 100,
                    result.speed,
                )
                try:
                    faster = synthesize(result.speed)
                except Exception as e:
                    logger.warning("Faster re-synthesis failed, keeping original clip: %s", e)
                    continue
                if faster:
                    result.path = faster
                    result.resynthesized = True

        return result


def fit_clip_to_slot(
    clip_path: str,
    slot: SubtitleSlot,
    base_speed: float,
    synthesize: Synthesize,
    query_duration: DurationQuery,
    on_invalid_duration: Callable[[], str | None] | None = None,
) -> str:
    """Path of the clip that should fill slot."""
    fitter = SlotFitter(query_duration)
    return fitter.fit(
        clip_path, slot, base_speed, synthesize, on_invalid_duration=on_invalid_duration
    ).path
