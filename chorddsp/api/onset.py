"""
Onset API: lifecycle of the engine's aubio onset detector.

The detector is stateful, so calls are serialised with a module lock.
"""
import threading

import structlog
from fastapi import APIRouter, Depends, HTTPException

from chorddsp.core.engine import ChordDSP, get_engine
from chorddsp.core.onset import OnsetDetectorError
from chorddsp.schemas.features import (
    OnsetDetectRequest, OnsetInitRequest, OnsetResponse, OnsetStatusResponse,
)

router = APIRouter()
log    = structlog.get_logger()
_lock  = threading.Lock()


def _status(engine: ChordDSP) -> OnsetStatusResponse:
    params = engine.onset.params
    if params is None:
        return OnsetStatusResponse(initialized=False)
    sr, buf, hop = params
    return OnsetStatusResponse(initialized=True, sample_rate=sr, buffer_size=buf, hop_size=hop)


@router.get("/", response_model=OnsetStatusResponse)
def onset_status(engine: ChordDSP = Depends(get_engine)):
    return _status(engine)


@router.post("/init", response_model=OnsetStatusResponse)
def init_onset(request: OnsetInitRequest, engine: ChordDSP = Depends(get_engine)):
    with _lock:
        try:
            engine.init_onset_detector(request.sample_rate, request.buffer_size, request.hop_size)
        except ValueError as e:
            raise HTTPException(400, detail=str(e))
        except ImportError as e:
            log.error("onset_backend_unavailable", error=str(e))
            raise HTTPException(503, detail="Onset detection requires aubio (pip install chord-dsp[onset])")
        return _status(engine)


@router.post("/detect", response_model=OnsetResponse)
def detect_onset(request: OnsetDetectRequest, engine: ChordDSP = Depends(get_engine)):
    with _lock:
        try:
            values = engine.detect_onset(request.samples)
        except OnsetDetectorError as e:
            raise HTTPException(409, detail=str(e))
    return OnsetResponse(is_onset=bool(values[0] > 0), strength=float(values[1]),
                         values=values.tolist())


@router.post("/reset", response_model=OnsetStatusResponse)
def reset_onset(engine: ChordDSP = Depends(get_engine)):
    with _lock:
        engine.reset_onset_detector()
        return _status(engine)
