"""
chorddsp: spectral feature extraction for chord and key recognition.

Resampling to 22050 Hz, log-mel spectrograms (229 bins) and 12-bin
chromagrams, plus an aubio onset-detector adapter. The module-level
functions run on a shared default engine; build a ChordDSP yourself to
pick the backend or inject an onset detector.
"""
from chorddsp.core.chroma import ChromaSmoother
from chorddsp.core.constants import PITCH_CLASSES
from chorddsp.core.engine import (
    ChordDSP,
    compute_bass_chromagram,
    compute_chromagram,
    compute_mel_spectrogram,
    detect_onset,
    get_engine,
    init_onset_detector,
    resample_to_22050,
    reset_onset_detector,
)
from chorddsp.core.mel import mel_frame_count, reshape_mel_spectrogram
from chorddsp.core.onset import OnsetDetectorError

__version__ = "1.0.0"

__all__ = [
    "ChordDSP",
    "OnsetDetectorError",
    "get_engine",
    "resample_to_22050",
    "compute_mel_spectrogram",
    "compute_chromagram",
    "compute_bass_chromagram",
    "init_onset_detector",
    "detect_onset",
    "reset_onset_detector",
    "ChromaSmoother",
    "PITCH_CLASSES",
    "mel_frame_count",
    "reshape_mel_spectrogram",
]
