"""
Linear-interpolation sample-rate conversion to the canonical analysis rate.

No low-pass filter is applied before downsampling, so content above the
new Nyquist frequency aliases.
"""
import math

import numpy as np
import structlog

from chorddsp.core.constants import TARGET_SR

log = structlog.get_logger()


def as_mono(samples) -> np.ndarray:
    """Coerce a flat sample sequence to a float64 array (no copy if possible)."""
    y = np.asarray(samples, dtype=np.float64)
    if y.ndim != 1:
        raise ValueError(f"Expected a flat mono buffer, got shape {y.shape}")
    return y


def resample_to_22050(samples, source_rate: float) -> np.ndarray:
    """
    Resample ``samples`` from ``source_rate`` to 22050 Hz.

    The rate comparison truncates to int, so 22050.7 counts as canonical and
    the input comes back unchanged (treat it as read-only). Output length is
    ceil(len * ratio); positions past the last input sample are 0.
    """
    y = as_mono(samples)
    if source_rate <= 0:
        raise ValueError(f"source_rate must be positive, got {source_rate}")
    if int(source_rate) == TARGET_SR:
        return y

    ratio   = TARGET_SR / float(source_rate)
    out_len = int(math.ceil(len(y) * ratio))
    out     = np.zeros(out_len, dtype=np.float64)
    if out_len == 0 or len(y) == 0:
        return out

    src  = np.arange(out_len, dtype=np.float64) / ratio
    idx0 = src.astype(np.int64)
    frac = src - idx0

    n      = len(y)
    interp = idx0 + 1 < n
    edge   = (idx0 < n) & ~interp

    i0 = idx0[interp]
    out[interp] = y[i0] * (1.0 - frac[interp]) + y[i0 + 1] * frac[interp]
    out[edge]   = y[idx0[edge]]

    log.debug("resampled", source_rate=source_rate, n_in=n, n_out=out_len)
    return out
