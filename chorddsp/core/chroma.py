"""
Pitch-class energy (chromagram) from short-time power spectra.

Every FFT bin above DC whose centre frequency falls inside the band is
snapped to the nearest equal-tempered semitone and its power is added to
that pitch class, summed over all frames. No resampling: the bins are
interpreted at the sample rate the caller passes in.

The binning is deliberately coarse (nearest semitone, no peak picking, no
distance weighting).
"""
from typing import Optional

import numpy as np
import structlog

from chorddsp.core.constants import (
    BASS_FMAX, BASS_FMIN, CHROMA_FMAX, CHROMA_FMIN, HOP_LEN, N_FFT,
)
from chorddsp.core.resample import as_mono
from chorddsp.core.spectrum import SpectralBackend, hann_window, windowed_frames

log = structlog.get_logger()


def bin_pitch_classes(sample_rate: float, fmin: float, fmax: float,
                      n_fft: int = N_FFT) -> tuple[np.ndarray, np.ndarray]:
    """
    Map FFT bins to pitch classes for one band.

    Returns (bins, pitch_classes): the indices k >= 1 with k*sr/n_fft inside
    [fmin, fmax], and the pitch class 0-11 (C=0) of each. MIDI numbers are
    rounded half away from zero, computed in float32.
    """
    sr   = np.float32(int(sample_rate))
    k    = np.arange(1, n_fft // 2 + 1)
    freq = k.astype(np.float32) * sr / np.float32(n_fft)

    in_band = (freq >= np.float32(fmin)) & (freq <= np.float32(fmax))
    k, freq = k[in_band], freq[in_band]

    midi = np.float32(69.0) + np.float32(12.0) * np.log2(freq / np.float32(440.0))
    note = (np.sign(midi) * np.floor(np.abs(midi) + np.float32(0.5))).astype(np.int64)
    # numpy's % already lands in [0, 11] for negative notes
    return k, note % 12


def compute_chromagram(
    samples,
    sample_rate: float,
    backend: SpectralBackend,
    fmin: float = CHROMA_FMIN,
    fmax: float = CHROMA_FMAX,
) -> np.ndarray:
    """
    12-bin chromagram over [fmin, fmax] Hz, normalised so the peak is 1.0.

    Inputs shorter than one frame (2048 samples) return zeros without any
    spectral work. Silence also returns zeros rather than NaN.
    """
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")
    y = as_mono(samples)
    chroma = np.zeros(12, dtype=np.float64)
    if len(y) < N_FFT:
        log.debug("chromagram_skipped", n_samples=len(y))
        return chroma

    frames = windowed_frames(y, hann_window(N_FFT), HOP_LEN)
    power  = backend.power_spectrum(frames)

    bins, pcs = bin_pitch_classes(sample_rate, fmin, fmax)
    if len(bins):
        band_energy = power[:, bins].astype(np.float64).sum(axis=0)
        chroma      = np.bincount(pcs, weights=band_energy, minlength=12)

    peak = chroma.max()
    if peak > 0:
        chroma = chroma / peak

    log.debug("chromagram_computed", frames=len(frames), fmin=fmin, fmax=fmax,
              bins=len(bins), peak_energy=float(peak))
    return chroma


def compute_bass_chromagram(samples, sample_rate: float, backend: SpectralBackend) -> np.ndarray:
    """Chromagram restricted to the bass band (40-300 Hz)."""
    return compute_chromagram(samples, sample_rate, backend, fmin=BASS_FMIN, fmax=BASS_FMAX)


class ChromaSmoother:
    """
    Running chroma average whose memory shortens when the harmony moves.

    Flux is the summed positive change from the running value to the new
    frame. decay = max(0.2, 0.7 - 0.7 * flux), then
    running = running * decay + new * (1 - decay).
    A sharp change (new notes appearing) therefore lets the new frame
    dominate; a steady chord keeps 70 % of the history.
    """

    MIN_DECAY = 0.2
    MAX_DECAY = 0.7

    def __init__(self):
        self._acc: Optional[np.ndarray] = None

    @property
    def value(self) -> Optional[np.ndarray]:
        return None if self._acc is None else self._acc.copy()

    def update(self, frame_chroma) -> np.ndarray:
        new = np.asarray(frame_chroma, dtype=np.float64)
        if new.shape != (12,):
            raise ValueError(f"Expected 12 pitch classes, got shape {new.shape}")

        if self._acc is None:
            self._acc = new.copy()
        else:
            flux  = float(np.clip(new - self._acc, 0.0, None).sum())
            decay = max(self.MIN_DECAY, self.MAX_DECAY - flux * self.MAX_DECAY)
            self._acc = self._acc * decay + new * (1.0 - decay)
        return self._acc.copy()

    def normalized(self) -> np.ndarray:
        """Running chroma scaled to a peak of 1.0 (zeros if empty or silent)."""
        if self._acc is None:
            return np.zeros(12, dtype=np.float64)
        peak = self._acc.max()
        return self._acc / peak if peak > 0 else np.zeros(12, dtype=np.float64)

    def reset(self) -> None:
        self._acc = None
