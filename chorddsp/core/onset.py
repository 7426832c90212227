"""
Adapter around aubio's streaming onset detector.

The adapter owns the detector handle and a hop-sized float32 input buffer:

  init     create the handle, allocate the buffer (replacing any previous)
  process  copy one hop into the buffer, run the detector
  reset    zero the buffer and restart the detector with the same settings
           (no-op before init)
  release  drop handle and buffer

Only flat float32 buffers cross the boundary. aubio is imported when a
detector is first created, so the rest of the package works without it.
"""
from typing import Any, Callable, Optional

import numpy as np
import structlog

log = structlog.get_logger()

DetectorFactory = Callable[[str, int, int, int], Any]


class OnsetDetectorError(RuntimeError):
    """Raised when the detector is used before init() or after release()."""


def aubio_onset_factory(method: str, buffer_size: int, hop_size: int, sample_rate: int):
    import aubio

    return aubio.onset(method, buffer_size, hop_size, sample_rate)


class OnsetDetector:

    def __init__(
        self,
        method: str = "default",
        threshold: Optional[float] = None,
        silence_db: Optional[float] = None,
        minioi_ms: Optional[float] = None,
        factory: DetectorFactory = aubio_onset_factory,
    ):
        self.method     = method
        self.threshold  = threshold
        self.silence_db = silence_db
        self.minioi_ms  = minioi_ms
        self._factory   = factory

        self._handle = None
        self._input: Optional[np.ndarray] = None
        self._params: Optional[tuple[int, int, int]] = None

    @property
    def initialized(self) -> bool:
        return self._handle is not None

    @property
    def params(self) -> Optional[tuple[int, int, int]]:
        """(sample_rate, buffer_size, hop_size) of the live detector."""
        return self._params

    def init(self, sample_rate: float, buffer_size: float, hop_size: float) -> None:
        sr, buf, hop = int(sample_rate), int(buffer_size), int(hop_size)
        if sr <= 0 or buf <= 0 or hop <= 0:
            raise ValueError(
                f"sample_rate, buffer_size and hop_size must be positive, got {sr}, {buf}, {hop}"
            )
        if hop > buf:
            raise ValueError(f"hop_size ({hop}) must not exceed buffer_size ({buf})")

        self.release()
        self._handle = self._create(sr, buf, hop)
        self._input  = np.zeros(hop, dtype=np.float32)
        self._params = (sr, buf, hop)
        log.info("onset_detector_initialised", method=self.method,
                 sample_rate=sr, buffer_size=buf, hop_size=hop)

    def _create(self, sr: int, buf: int, hop: int):
        handle = self._factory(self.method, buf, hop, sr)
        if self.threshold is not None:
            handle.set_threshold(self.threshold)
        if self.silence_db is not None:
            handle.set_silence(self.silence_db)
        if self.minioi_ms is not None:
            handle.set_minioi_ms(self.minioi_ms)
        return handle

    def _require(self):
        if self._handle is None or self._input is None:
            log.warning("onset_detector_not_initialised")
            raise OnsetDetectorError("Onset detector used before init()")
        return self._handle

    def process(self, samples) -> np.ndarray:
        """
        Feed one hop of audio. Longer input is truncated to hop_size, shorter
        input is zero-padded.

        Returns [onset, descriptor]: onset is non-zero when a new onset was
        detected in this hop, descriptor is the raw onset detection function.
        """
        handle = self._require()
        x   = np.asarray(samples, dtype=np.float32).ravel()
        hop = len(self._input)
        n   = min(len(x), hop)

        self._input[:n] = x[:n]
        self._input[n:] = 0.0

        out = handle(self._input)
        return np.array([float(out[0]), float(handle.get_descriptor())], dtype=np.float64)

    def reset(self) -> None:
        """
        Clear detector state. The buffer stays allocated, settings are kept.
        A no-op before init().
        """
        if self._handle is None:
            log.debug("onset_detector_reset_skipped")
            return
        sr, buf, hop = self._params
        self._input[:] = 0.0
        self._handle = self._create(sr, buf, hop)
        log.info("onset_detector_reset", sample_rate=sr, buffer_size=buf, hop_size=hop)

    def release(self) -> None:
        if self._handle is not None:
            log.debug("onset_detector_released")
        self._handle = None
        self._input  = None
        self._params = None
