"""
Triangular mel filterbank and log-mel spectrogram.

The filterbank follows the HTK mel formula and is computed entirely in
float32: 229 overlapping triangles between 30 Hz and 11025 Hz, mapped onto
the 1025 bins of a 2048-point FFT at 22050 Hz. An engine builds it once at
construction and only ever reads it afterwards.

At the low end consecutive mel points are less than one FFT bin apart, so
those triangles are sampled at only one or two integer bins and their rows
can peak well below 1.0.
"""
import math
from dataclasses import dataclass

import numpy as np
import structlog

from chorddsp.core.constants import (
    HOP_LEN, LOG_FLOOR, MEL_FMAX, MEL_FMIN, N_FFT, N_MELS, TARGET_SR,
)
from chorddsp.core.resample import as_mono, resample_to_22050
from chorddsp.core.spectrum import SpectralBackend, frame_count, hann_window, windowed_frames

log = structlog.get_logger()


def hz_to_mel(hz):
    """HTK mel scale: 2595 * log10(1 + hz / 700)."""
    hz = np.asarray(hz, dtype=np.float32)
    return np.float32(2595.0) * np.log10(np.float32(1.0) + hz / np.float32(700.0))


def mel_to_hz(mel):
    """Inverse of hz_to_mel: 700 * (10^(mel / 2595) - 1)."""
    mel = np.asarray(mel, dtype=np.float32)
    return np.float32(700.0) * (np.power(np.float32(10.0), mel / np.float32(2595.0)) - np.float32(1.0))


@dataclass(frozen=True)
class MelFilterbank:
    """
    Read-only (n_mels, n_fft/2+1) weight matrix plus its n_mels+2 boundary
    points in FFT-bin coordinates.

    Invariants:
        weights >= 0, zero outside [bin_points[m], bin_points[m+2]]
        row m peaks at bin_points[m+1]
    """

    weights: np.ndarray
    """float32, shape (n_mels, n_fft // 2 + 1)."""

    bin_points: np.ndarray
    """float32, shape (n_mels + 2,). Triangle m is (b[m], b[m+1], b[m+2])."""

    @property
    def n_mels(self) -> int:
        return self.weights.shape[0]

    @property
    def n_bins(self) -> int:
        return self.weights.shape[1]


def triangle(k, left, center, right) -> np.ndarray:
    """
    Piecewise-linear triangle evaluated at (possibly fractional) bin ``k``.

    Rising edge on [left, center], falling edge on (center, right]. An edge of
    zero width contributes nothing instead of dividing by zero.
    """
    k      = np.asarray(k, dtype=np.float32)
    left   = np.float32(left)
    center = np.float32(center)
    right  = np.float32(right)

    out = np.zeros(k.shape, dtype=np.float32)
    if center > left:
        out = np.where((k >= left) & (k <= center), (k - left) / (center - left), out)
    if right > center:
        out = np.where((k > center) & (k <= right), (right - k) / (right - center), out)
    return out.astype(np.float32)


def build_mel_filterbank(
    n_mels: int = N_MELS,
    n_fft: int = N_FFT,
    sr: int = TARGET_SR,
    fmin: float = MEL_FMIN,
    fmax: float = MEL_FMAX,
) -> MelFilterbank:
    """Build the triangular filterbank. Pure; the engine calls it once."""
    n_bins  = n_fft // 2 + 1
    mel_min = hz_to_mel(fmin)
    mel_max = hz_to_mel(fmax)

    i          = np.arange(n_mels + 2, dtype=np.float32)
    mel_points = mel_min + (mel_max - mel_min) * i / np.float32(n_mels + 1)
    bin_points = mel_to_hz(mel_points) * np.float32(n_fft) / np.float32(sr)

    bins    = np.arange(n_bins, dtype=np.float32)
    weights = np.zeros((n_mels, n_bins), dtype=np.float32)
    for m in range(n_mels):
        weights[m] = triangle(bins, bin_points[m], bin_points[m + 1], bin_points[m + 2])

    weights.setflags(write=False)
    bin_points.setflags(write=False)

    log.info("mel_filterbank_built", n_mels=n_mels, n_bins=n_bins,
             empty_rows=int(np.sum(weights.sum(axis=1) == 0)))
    return MelFilterbank(weights=weights, bin_points=bin_points)


def compute_mel_spectrogram(
    samples,
    sample_rate: float,
    filterbank: MelFilterbank,
    backend: SpectralBackend,
) -> np.ndarray:
    """
    Log-mel spectrogram, flattened row-major as (n_frames, n_mels).

    Input is resampled to 22050 Hz first unless already there. Each frame is
    Hann-windowed, turned into a power spectrum, projected through the
    filterbank and compressed with ln(max(energy, 1e-10)). Spectral math and
    the projection run in float32; the result is widened to float64.

    Returns an empty array when fewer than 2048 samples remain after
    resampling.
    """
    y = as_mono(samples)
    if int(sample_rate) != TARGET_SR:
        y = resample_to_22050(y, sample_rate)

    n_frames = frame_count(len(y), N_FFT, HOP_LEN)
    if n_frames == 0:
        log.debug("mel_spectrogram_skipped", n_samples=len(y))
        return np.zeros(0, dtype=np.float64)

    frames = windowed_frames(y, hann_window(N_FFT), HOP_LEN)
    power  = backend.power_spectrum(frames)
    energy = power @ filterbank.weights.T
    logmel = np.log(np.maximum(energy, np.float32(LOG_FLOOR)))

    log.debug("mel_spectrogram_computed", frames=n_frames, n_mels=filterbank.n_mels,
              backend=backend.name)
    return logmel.astype(np.float64).ravel()


def mel_frame_count(n_samples: int, sample_rate: float = TARGET_SR) -> int:
    """Frames compute_mel_spectrogram will produce for ``n_samples`` at ``sample_rate``."""
    if int(sample_rate) != TARGET_SR:
        n_samples = int(math.ceil(n_samples * (TARGET_SR / float(sample_rate))))
    return frame_count(n_samples, N_FFT, HOP_LEN)


def reshape_mel_spectrogram(flat, n_mels: int = N_MELS) -> np.ndarray:
    """View a flattened mel spectrogram as (n_frames, n_mels)."""
    flat = np.asarray(flat, dtype=np.float64)
    if flat.size % n_mels:
        raise ValueError(f"Length {flat.size} is not a multiple of {n_mels} mel bins")
    return flat.reshape(-1, n_mels)
