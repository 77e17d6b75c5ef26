"""
Short-time log-energy profiles.
"""

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .models import EnergyProfile, Waveform

WINDOW_MS = 200
HOP_MS = 100

# Frames processed per block; keeps the windowed copy small on long inputs.
_BLOCK_FRAMES = 1024


def _ms_to_samples(sample_rate: int, ms: int) -> int:
    return int(sample_rate * ms / 1000 + 0.5)


def hann_window(length: int) -> np.ndarray:
    """0.5 * (1 - cos(2*pi*i / (N-1))) for i in [0, N-1]."""
    return np.hanning(length)


def compute_energy_profile(waveform: Waveform) -> EnergyProfile:
    """
    Hann-windowed short-time energy, 200 ms window, 100 ms hop.

    Each value is log10(1 + sum((x*w)^2) / sum(w)); a waveform shorter than one
    window yields an empty profile.
    """
    samples = np.asarray(waveform.samples, dtype=np.float64)
    hop = max(1, _ms_to_samples(waveform.sample_rate, HOP_MS))
    win = max(hop, _ms_to_samples(waveform.sample_rate, WINDOW_MS))
    if len(samples) < win:
        return EnergyProfile(values=np.zeros(0, dtype=np.float64), hop_ms=HOP_MS)

    weights = hann_window(win)
    norm = float(weights.sum()) or 1.0
    frames = sliding_window_view(samples, win)[::hop]

    values = np.empty(len(frames), dtype=np.float64)
    for start in range(0, len(frames), _BLOCK_FRAMES):
        block = frames[start : start + _BLOCK_FRAMES] * weights
        values[start : start + len(block)] = np.sum(block * block, axis=1) / norm
    np.log10(1.0 + values, out=values)
    return EnergyProfile(values=values, hop_ms=HOP_MS)
