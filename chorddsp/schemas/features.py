"""Pydantic schemas for the feature and onset endpoints."""
from typing import List

from pydantic import BaseModel, Field


class SampleBufferRequest(BaseModel):
    samples: List[float] = Field(..., description="Mono samples, any range")
    sample_rate: float = Field(..., gt=0, examples=[44100.0])


class SampleBufferResponse(BaseModel):
    samples: List[float]
    sample_rate: float
    n_samples: int


class MelSpectrogramResponse(BaseModel):
    n_frames: int
    n_mels: int
    values: List[float] = Field(..., description="Row-major (n_frames, n_mels), natural log")


class ChromagramResponse(BaseModel):
    chroma: List[float] = Field(..., min_length=12, max_length=12)
    labels: List[str]
    fmin: float
    fmax: float


class OnsetInitRequest(BaseModel):
    sample_rate: float = Field(..., gt=0)
    buffer_size: int = Field(default=2048, gt=0)
    hop_size: int = Field(default=512, gt=0)


class OnsetDetectRequest(BaseModel):
    samples: List[float]


class OnsetResponse(BaseModel):
    is_onset: bool
    strength: float
    values: List[float]


class OnsetStatusResponse(BaseModel):
    initialized: bool
    sample_rate: int | None = None
    buffer_size: int | None = None
    hop_size: int | None = None


class EngineConfigResponse(BaseModel):
    target_sample_rate: int
    n_fft: int
    hop_length: int
    n_mels: int
    mel_fmin: float
    mel_fmax: float
    chroma_fmin: float
    chroma_fmax: float
    bass_fmin: float
    bass_fmax: float
    spectral_backend: str
    onset_initialized: bool
