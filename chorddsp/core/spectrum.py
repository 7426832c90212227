"""
Short-time spectral analysis: Hann window, framing, and the power-spectrum
backends.

Every backend takes windowed float32 frames of N_FFT samples and returns
N_FFT/2+1 power bins per frame, each (re² + im²) / N_FFT of the DFT,
in float32. Two interchangeable variants:

  FFTBackend        numpy real FFT (pocketfft), the fast path.
  ReferenceBackend  explicit cosine/sine correlation sums against
                    precomputed tables; O(N²) per frame, kept as the
                    portable reference the fast path is checked against.

The backend is chosen once per engine by select_backend().
"""
from typing import Protocol

import numpy as np
import structlog

from chorddsp.core.constants import HOP_LEN, N_FFT

log = structlog.get_logger()

BACKENDS = ("auto", "fft", "reference")


def hann_window(size: int = N_FFT) -> np.ndarray:
    """Symmetric Hann window, w[i] = 0.5 * (1 - cos(2πi / (size-1)))."""
    i = np.arange(size, dtype=np.float64)
    return (0.5 * (1.0 - np.cos(2.0 * np.pi * i / (size - 1)))).astype(np.float32)


def frame_count(n_samples: int, n_fft: int = N_FFT, hop_length: int = HOP_LEN) -> int:
    """Number of full frames, max(0, (n - n_fft) // hop + 1)."""
    if n_samples < n_fft:
        return 0
    return (n_samples - n_fft) // hop_length + 1


def windowed_frames(y: np.ndarray, window: np.ndarray,
                    hop_length: int = HOP_LEN) -> np.ndarray:
    """
    Slice ``y`` into overlapping frames and apply ``window``.

    Returns a (n_frames, len(window)) float32 array; frame i starts at
    sample i * hop_length. Samples are narrowed to float32 before windowing.
    """
    n_fft    = len(window)
    n_frames = frame_count(len(y), n_fft, hop_length)
    if n_frames == 0:
        return np.zeros((0, n_fft), dtype=np.float32)

    y32    = np.asarray(y, dtype=np.float32)
    frames = np.lib.stride_tricks.sliding_window_view(y32, n_fft)[::hop_length][:n_frames]
    return frames * window


class SpectralBackend(Protocol):
    """Power spectrum of windowed frames."""

    name: str

    def power_spectrum(self, frames: np.ndarray) -> np.ndarray:
        """(..., N_FFT) float32 frames -> (..., N_FFT/2+1) float32 power."""
        ...


def _check_frames(frames: np.ndarray, n_fft: int) -> np.ndarray:
    frames = np.asarray(frames, dtype=np.float32)
    if frames.shape[-1] != n_fft:
        raise ValueError(f"Expected frames of {n_fft} samples, got {frames.shape[-1]}")
    return frames


class FFTBackend:

    name = "fft"

    def __init__(self, n_fft: int = N_FFT):
        self.n_fft = n_fft

    def power_spectrum(self, frames: np.ndarray) -> np.ndarray:
        frames = _check_frames(frames, self.n_fft)
        spec   = np.fft.rfft(frames, axis=-1)
        re     = spec.real.astype(np.float32)
        im     = spec.imag.astype(np.float32)
        return (re * re + im * im) / np.float32(self.n_fft)


class ReferenceBackend:
    """
    Direct DFT by correlation with cosine and sine tables.

    The tables are (N/2+1, N) float32 and built once per instance. The phase
    index k·n is reduced mod N in integers before conversion to an angle so
    high bins keep full precision.
    """

    name = "reference"

    def __init__(self, n_fft: int = N_FFT):
        self.n_fft = n_fft
        n_bins     = n_fft // 2 + 1
        k          = np.arange(n_bins, dtype=np.int64)[:, None]
        n          = np.arange(n_fft, dtype=np.int64)[None, :]
        angle      = 2.0 * np.pi * ((k * n) % n_fft) / n_fft
        self._cos  = np.cos(angle).astype(np.float32)
        self._sin  = np.sin(angle).astype(np.float32)

    def power_spectrum(self, frames: np.ndarray) -> np.ndarray:
        frames = _check_frames(frames, self.n_fft)
        re     = frames @ self._cos.T
        im     = -(frames @ self._sin.T)
        return (re * re + im * im) / np.float32(self.n_fft)


def select_backend(name: str = "auto", n_fft: int = N_FFT) -> SpectralBackend:
    """
    Pick the spectral backend once, at engine construction.

    "auto" resolves to the FFT path: numpy's FFT ships with every numpy
    build, so the reference path is only used when asked for explicitly.
    """
    if name not in BACKENDS:
        raise ValueError(f"Unknown spectral backend {name!r}, valid options: {list(BACKENDS)}")

    backend: SpectralBackend
    if name == "reference":
        backend = ReferenceBackend(n_fft)
    else:
        backend = FFTBackend(n_fft)

    log.info("spectral_backend_selected", requested=name, backend=backend.name,
             n_fft=n_fft, bins=n_fft // 2 + 1)
    return backend
