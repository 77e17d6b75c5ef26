"""
Data models for the alignment engine and the subtitle-slot fitter.
"""

from dataclasses import dataclass, field

import numpy as np


@dataclass
class Waveform:
    """Mono PCM samples in [-1, 1]."""

    samples: np.ndarray
    sample_rate: int  # Hz

    @property
    def duration_ms(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) * 1000.0 / self.sample_rate


@dataclass
class EnergyProfile:
    """Log-energy values, one per analysis hop."""

    values: np.ndarray
    hop_ms: int

    def __len__(self) -> int:
        return len(self.values)


@dataclass
class OffsetResult:
    """Best alignment offset; positive means the audio gets delayed."""

    offset_ms: int
    score: float


@dataclass
class AlignmentPair:
    video: str
    audio: str
    output_path: str


@dataclass
class AlignmentReportEntry:
    title: str
    video: str
    audio: str
    offset_ms: int
    score: float
    output: str


@dataclass
class AlignmentReport:
    """Result of one alignment run."""

    entries: list[AlignmentReportEntry] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)
    output_path: str | None = None  # last successfully written output


@dataclass
class SubtitleSlot:
    start_ms: float
    end_ms: float

    @property
    def duration_ms(self) -> float:
        """Slot length, clamped to 1 ms."""
        return max(1.0, self.end_ms - self.start_ms)


@dataclass
class Cue:
    """A subtitle line with its time slot."""

    index: int
    slot: SubtitleSlot
    text: str
