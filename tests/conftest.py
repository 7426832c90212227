"""
Shared fixtures: signal generators, spectral backends, and an engine whose
onset detector is backed by a fake aubio handle.
"""
import numpy as np
import pytest

from chorddsp.config import Settings
from chorddsp.core.engine import ChordDSP
from chorddsp.core.spectrum import FFTBackend, ReferenceBackend


def sine(freq: float, sr: float, n: int, amp: float = 0.5) -> np.ndarray:
    t = np.arange(n, dtype=np.float64) / sr
    return amp * np.sin(2.0 * np.pi * freq * t)


class FakeOnset:
    """Stands in for an ``aubio.onset`` handle: energy-jump detector."""

    def __init__(self, method, buffer_size, hop_size, sample_rate):
        self.method      = method
        self.buffer_size = buffer_size
        self.hop_size    = hop_size
        self.sample_rate = sample_rate
        self.threshold   = None
        self.silence     = None
        self.minioi_ms   = None
        self.inputs: list[np.ndarray] = []
        self._last       = 0.0
        self._descriptor = 0.0

    def set_threshold(self, value):
        self.threshold = value

    def set_silence(self, value):
        self.silence = value

    def set_minioi_ms(self, value):
        self.minioi_ms = value

    def __call__(self, vec):
        assert vec.dtype == np.float32
        assert len(vec) == self.hop_size
        self.inputs.append(vec.copy())
        energy = float(np.sum(vec.astype(np.float64) ** 2))
        self._descriptor = energy
        onset = 1.0 if energy > 1e-3 and energy > 2.0 * self._last else 0.0
        self._last = energy
        return np.array([onset], dtype=np.float32)

    def get_descriptor(self):
        return self._descriptor


class FakeOnsetFactory:

    def __init__(self):
        self.created: list[FakeOnset] = []

    def __call__(self, method, buffer_size, hop_size, sample_rate):
        handle = FakeOnset(method, buffer_size, hop_size, sample_rate)
        self.created.append(handle)
        return handle

    @property
    def last(self) -> FakeOnset:
        return self.created[-1]


@pytest.fixture(scope="session")
def fft_backend():
    return FFTBackend()


@pytest.fixture(scope="session")
def reference_backend():
    return ReferenceBackend()


@pytest.fixture()
def onset_factory():
    return FakeOnsetFactory()


@pytest.fixture()
def engine(fft_backend, onset_factory):
    eng = ChordDSP(backend=fft_backend, settings=Settings(), onset_factory=onset_factory)
    yield eng
    eng.close()
