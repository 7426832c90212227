"""
Features API: resampling, log-mel spectrogram and chromagrams.

Plain (sync) endpoints, so FastAPI runs the numpy work in its threadpool
instead of on the event loop.
"""
import structlog
from fastapi import APIRouter, Depends, HTTPException

from chorddsp.config import settings
from chorddsp.core.constants import (
    BASS_FMAX, BASS_FMIN, CHROMA_FMAX, CHROMA_FMIN, N_MELS, PITCH_CLASSES, TARGET_SR,
)
from chorddsp.core.engine import ChordDSP, get_engine
from chorddsp.schemas.features import (
    ChromagramResponse, EngineConfigResponse, MelSpectrogramResponse,
    SampleBufferRequest, SampleBufferResponse,
)

router = APIRouter()
log    = structlog.get_logger()


def _check_size(request: SampleBufferRequest):
    n = len(request.samples)
    if n > settings.MAX_INPUT_SAMPLES:
        log.warning("input_too_large", n_samples=n, limit=settings.MAX_INPUT_SAMPLES)
        raise HTTPException(413, detail=f"Too many samples: {n} > {settings.MAX_INPUT_SAMPLES}")


@router.get("/config", response_model=EngineConfigResponse)
def get_config(engine: ChordDSP = Depends(get_engine)):
    return engine.describe()


@router.post("/resample", response_model=SampleBufferResponse, summary="Resample to 22050 Hz")
def resample(request: SampleBufferRequest, engine: ChordDSP = Depends(get_engine)):
    _check_size(request)
    y = engine.resample_to_22050(request.samples, request.sample_rate)
    return SampleBufferResponse(samples=y.tolist(), sample_rate=TARGET_SR, n_samples=len(y))


@router.post("/mel-spectrogram", response_model=MelSpectrogramResponse)
def mel_spectrogram(request: SampleBufferRequest, engine: ChordDSP = Depends(get_engine)):
    """
    Log-mel spectrogram (229 bins). ``values`` is flat and row-major; it is
    empty when the input holds less than one 2048-sample frame at 22050 Hz.
    """
    _check_size(request)
    values = engine.compute_mel_spectrogram(request.samples, request.sample_rate)
    n_frames = len(values) // N_MELS
    log.info("mel_spectrogram_served", n_samples=len(request.samples),
             sample_rate=request.sample_rate, n_frames=n_frames)
    return MelSpectrogramResponse(n_frames=n_frames, n_mels=N_MELS, values=values.tolist())


@router.post("/chromagram", response_model=ChromagramResponse)
def chromagram(request: SampleBufferRequest, engine: ChordDSP = Depends(get_engine)):
    _check_size(request)
    chroma = engine.compute_chromagram(request.samples, request.sample_rate)
    return ChromagramResponse(chroma=chroma.tolist(), labels=PITCH_CLASSES,
                              fmin=CHROMA_FMIN, fmax=CHROMA_FMAX)


@router.post("/bass-chromagram", response_model=ChromagramResponse)
def bass_chromagram(request: SampleBufferRequest, engine: ChordDSP = Depends(get_engine)):
    _check_size(request)
    chroma = engine.compute_bass_chromagram(request.samples, request.sample_rate)
    return ChromagramResponse(chroma=chroma.tolist(), labels=PITCH_CLASSES,
                              fmin=BASS_FMIN, fmax=BASS_FMAX)
