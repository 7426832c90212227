"""
Analysis constants shared by every stage.

These values are part of the output contract: a mel spectrogram or
chromagram is only comparable to reference output when all of them match.
"""

TARGET_SR     = 22050     # canonical analysis rate (Hz)
N_FFT         = 2048      # frame / FFT size
HOP_LEN       = 512
N_FFT_BINS    = N_FFT // 2 + 1
N_MELS        = 229
MEL_FMIN      = 30.0
MEL_FMAX      = 11025.0

CHROMA_FMIN   = 60.0
CHROMA_FMAX   = 2000.0
BASS_FMIN     = 40.0
BASS_FMAX     = 300.0

LOG_FLOOR     = 1e-10

PITCH_CLASSES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
