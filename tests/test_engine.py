"""Engine wiring, default-engine construction and settings."""
import threading

import numpy as np
import pytest
from pydantic import ValidationError

import chorddsp
from chorddsp.config import Settings
from chorddsp.core import engine as engine_module
from chorddsp.core import mel
from chorddsp.core.constants import N_MELS
from chorddsp.core.engine import ChordDSP
from conftest import sine


def test_filterbank_built_once_per_engine(monkeypatch, fft_backend, onset_factory):
    calls = []
    real_build = mel.build_mel_filterbank

    def counting_build(*args, **kwargs):
        calls.append(1)
        return real_build(*args, **kwargs)

    monkeypatch.setattr(mel, "build_mel_filterbank", counting_build)
    eng = ChordDSP(backend=fft_backend, settings=Settings(), onset_factory=onset_factory)
    assert len(calls) == 1

    fb = eng.filterbank
    for _ in range(3):
        eng.compute_mel_spectrogram(np.zeros(4096), 22050)
    assert len(calls) == 1
    assert eng.filterbank is fb


def test_backend_from_settings(onset_factory):
    eng = ChordDSP(settings=Settings(SPECTRAL_BACKEND="reference"), onset_factory=onset_factory)
    assert eng.backend.name == "reference"
    assert ChordDSP(settings=Settings(), onset_factory=onset_factory).backend.name == "fft"


def test_onset_settings_reach_detector(onset_factory):
    settings = Settings(ONSET_METHOD="hfc", ONSET_THRESHOLD=0.5, ONSET_SILENCE_DB=-60.0)
    eng = ChordDSP(settings=settings, onset_factory=onset_factory)
    eng.init_onset_detector(22050, 1024, 512)
    handle = onset_factory.last
    assert handle.method == "hfc"
    assert handle.threshold == 0.5
    assert handle.silence == -60.0


def test_engine_operations(engine):
    y = sine(440.0, 22050, 4096)

    assert len(engine.resample_to_22050(y, 44100)) == 2048
    assert len(engine.compute_mel_spectrogram(y, 22050)) == 5 * N_MELS

    chroma = engine.compute_chromagram(y, 22050)
    assert int(np.argmax(chroma)) == 9
    assert engine.compute_bass_chromagram(y, 22050).shape == (12,)


def test_engine_onset_lifecycle(engine):
    with pytest.raises(chorddsp.OnsetDetectorError):
        engine.detect_onset(np.zeros(512))
    engine.init_onset_detector(22050, 1024, 512)
    assert engine.detect_onset(np.zeros(512)).shape == (2,)
    engine.reset_onset_detector()
    assert engine.describe()["onset_initialized"] is True
    engine.close()
    assert engine.describe()["onset_initialized"] is False


def test_describe(engine):
    info = engine.describe()
    assert info["target_sample_rate"] == 22050
    assert info["n_fft"] == 2048
    assert info["hop_length"] == 512
    assert info["n_mels"] == 229
    assert (info["mel_fmin"], info["mel_fmax"]) == (30.0, 11025.0)
    assert (info["chroma_fmin"], info["chroma_fmax"]) == (60.0, 2000.0)
    assert info["spectral_backend"] == "fft"


def test_default_engine_built_once_under_contention(monkeypatch, fft_backend, onset_factory):
    built = []

    class CountingEngine(ChordDSP):
        def __init__(self):
            built.append(1)
            super().__init__(backend=fft_backend, settings=Settings(), onset_factory=onset_factory)

    monkeypatch.setattr(engine_module, "_engine", None)
    monkeypatch.setattr(engine_module, "ChordDSP", CountingEngine)

    start = threading.Barrier(8)
    seen = []

    def worker():
        start.wait()
        seen.append(engine_module.get_engine())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(built) == 1
    assert all(e is seen[0] for e in seen)


def test_module_level_api(monkeypatch, engine):
    monkeypatch.setattr(engine_module, "_engine", engine)
    x = np.linspace(-1, 1, 100)

    np.testing.assert_array_equal(chorddsp.resample_to_22050(x, 22050), x)
    assert len(chorddsp.compute_mel_spectrogram(np.zeros(1000), 22050)) == 0
    assert not chorddsp.compute_chromagram(np.zeros(1000), 22050).any()
    assert not chorddsp.compute_bass_chromagram(np.zeros(4096), 22050).any()

    chorddsp.init_onset_detector(22050, 1024, 512)
    assert chorddsp.detect_onset(np.zeros(512)).tolist() == [0.0, 0.0]
    chorddsp.reset_onset_detector()
    assert chorddsp.get_engine() is engine


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SPECTRAL_BACKEND", "reference")
    monkeypatch.setenv("onset_threshold", "0.7")
    settings = Settings()
    assert settings.SPECTRAL_BACKEND == "reference"
    assert settings.ONSET_THRESHOLD == 0.7


def test_settings_reject_unknown_backend():
    with pytest.raises(ValidationError):
        Settings(SPECTRAL_BACKEND="vdsp")


def test_package_helpers_work_with_engine_output(engine):
    y = sine(440.0, 44100, 8820)
    flat = engine.compute_mel_spectrogram(y, 44100)
    frames = chorddsp.reshape_mel_spectrogram(flat)
    assert frames.shape == (chorddsp.mel_frame_count(len(y), 44100), N_MELS)

    smoother = chorddsp.ChromaSmoother()
    for _ in range(3):
        smoother.update(engine.compute_chromagram(y, 44100))
    assert chorddsp.PITCH_CLASSES[int(np.argmax(smoother.normalized()))] == "A"
