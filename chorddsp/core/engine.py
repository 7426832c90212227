"""
ChordDSP engine: one object owning everything the analysis calls share.

  backend      spectral backend, chosen once from settings
  filterbank   mel filterbank, built once in __init__ and never rebuilt
  onset        aubio onset adapter (stateful)

The numeric calls are pure apart from reading those. The onset detector is
mutable; serialise access to it per engine.

get_engine() returns the process-wide default engine, created under a lock
so concurrent first use still builds exactly one.
"""
import threading
from typing import Optional

import numpy as np
import structlog

from chorddsp.config import Settings, get_settings
from chorddsp.core import constants as C
from chorddsp.core import chroma, mel, resample
from chorddsp.core.onset import DetectorFactory, OnsetDetector, aubio_onset_factory
from chorddsp.core.spectrum import SpectralBackend, select_backend

log = structlog.get_logger()


class ChordDSP:

    def __init__(
        self,
        backend: Optional[SpectralBackend] = None,
        settings: Optional[Settings] = None,
        onset_factory: DetectorFactory = aubio_onset_factory,
    ):
        settings = settings or get_settings()

        self.backend    = backend or select_backend(settings.SPECTRAL_BACKEND)
        self.filterbank = mel.build_mel_filterbank()
        self.onset      = OnsetDetector(
            method=settings.ONSET_METHOD,
            threshold=settings.ONSET_THRESHOLD,
            silence_db=settings.ONSET_SILENCE_DB,
            minioi_ms=settings.ONSET_MINIOI_MS,
            factory=onset_factory,
        )
        log.info("engine_ready", backend=self.backend.name,
                 n_mels=self.filterbank.n_mels, target_sr=C.TARGET_SR)

    # ── Spectral features ──────────────────────────────────────────────────

    def resample_to_22050(self, samples, source_sample_rate: float) -> np.ndarray:
        return resample.resample_to_22050(samples, source_sample_rate)

    def compute_mel_spectrogram(self, samples, sample_rate: float) -> np.ndarray:
        return mel.compute_mel_spectrogram(samples, sample_rate, self.filterbank, self.backend)

    def compute_chromagram(self, samples, sample_rate: float) -> np.ndarray:
        return chroma.compute_chromagram(samples, sample_rate, self.backend)

    def compute_bass_chromagram(self, samples, sample_rate: float) -> np.ndarray:
        return chroma.compute_bass_chromagram(samples, sample_rate, self.backend)

    # ── Onset detection ────────────────────────────────────────────────────

    def init_onset_detector(self, sample_rate: float, buffer_size: float, hop_size: float) -> None:
        self.onset.init(sample_rate, buffer_size, hop_size)

    def detect_onset(self, samples) -> np.ndarray:
        return self.onset.process(samples)

    def reset_onset_detector(self) -> None:
        self.onset.reset()

    def close(self) -> None:
        self.onset.release()

    def describe(self) -> dict:
        """Contract constants plus the active backend, for clients and logs."""
        return {
            "target_sample_rate": C.TARGET_SR,
            "n_fft":              C.N_FFT,
            "hop_length":         C.HOP_LEN,
            "n_mels":             C.N_MELS,
            "mel_fmin":           C.MEL_FMIN,
            "mel_fmax":           C.MEL_FMAX,
            "chroma_fmin":        C.CHROMA_FMIN,
            "chroma_fmax":        C.CHROMA_FMAX,
            "bass_fmin":          C.BASS_FMIN,
            "bass_fmax":          C.BASS_FMAX,
            "spectral_backend":   self.backend.name,
            "onset_initialized":  self.onset.initialized,
        }


_engine: Optional[ChordDSP] = None
_engine_lock = threading.Lock()


def get_engine() -> ChordDSP:
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = ChordDSP()
    return _engine


def resample_to_22050(samples, source_sample_rate: float) -> np.ndarray:
    return get_engine().resample_to_22050(samples, source_sample_rate)


def compute_mel_spectrogram(samples, sample_rate: float) -> np.ndarray:
    return get_engine().compute_mel_spectrogram(samples, sample_rate)


def compute_chromagram(samples, sample_rate: float) -> np.ndarray:
    return get_engine().compute_chromagram(samples, sample_rate)


def compute_bass_chromagram(samples, sample_rate: float) -> np.ndarray:
    return get_engine().compute_bass_chromagram(samples, sample_rate)


def init_onset_detector(sample_rate: float, buffer_size: float, hop_size: float) -> None:
    get_engine().init_onset_detector(sample_rate, buffer_size, hop_size)


def detect_onset(samples) -> np.ndarray:
    return get_engine().detect_onset(samples)


def reset_onset_detector() -> None:
    get_engine().reset_onset_detector()
