"""Decoding and coarse waveform derivation (numpy + soundfile)."""
from __future__ import annotations

import io
import random
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .errors import DecodeError

WAVEFORM_POINTS = 800


@dataclass
class DecodedAudio:
    """Frames x channels float32 samples."""

    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.samples.shape[0] / float(self.sample_rate)

    @property
    def channels(self) -> int:
        return self.samples.shape[1] if self.samples.ndim == 2 else 1

    def channel(self, index: int = 0) -> np.ndarray:
        if self.samples.ndim == 1:
            return self.samples
        return self.samples[:, index]


class Decoder(Protocol):
    def decode(self, data: bytes) -> DecodedAudio: ...


class SoundfileDecoder:
    """Decode whole files with libsndfile (wav, aiff, flac, ogg, mp3 on recent builds)."""

    def decode(self, data: bytes) -> DecodedAudio:
        import soundfile as sf

        try:
            samples, rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except Exception as e:
            raise DecodeError(f"audio decoding failed: {e}") from e
        return DecodedAudio(samples=samples, sample_rate=int(rate))


def compute_peaks(data: np.ndarray, points: int = WAVEFORM_POINTS) -> List[float]:
    """Max absolute amplitude per block of ``len(data) // points`` samples.

    Blocks past the end of short inputs read as 0.
    """
    n = int(data.shape[0])
    block = n // points or 1
    mags = np.abs(np.asarray(data, dtype=np.float32))
    out: List[float] = []
    for i in range(points):
        start = i * block
        end = min(start + block, n)
        out.append(float(mags[start:end].max()) if end > start else 0.0)
    return out


def zero_crossing_hues(data: np.ndarray, points: int) -> List[str]:
    """Per-block colour from the zero-crossing rate (brighter hue for noisier blocks)."""
    n = int(data.shape[0])
    per = n // points
    arr = np.asarray(data, dtype=np.float32)
    colors: List[str] = []
    for i in range(points):
        start = i * per
        end = min(start + per, n)
        seg = arr[start:end]
        if seg.size < 2:
            zcr = 0.0
        else:
            neg = seg < 0
            zcr = float(np.count_nonzero(neg[1:] != neg[:-1])) / (end - start)
        hue = min(280.0, zcr * 800)
        colors.append(f"hsl({hue:g}, 100%, 50%)")
    return colors


def random_gradient_hues(rng: Optional[random.Random] = None) -> Tuple[int, int]:
    """Two hues at least 60 degrees apart on the colour wheel."""
    rng = rng or random.Random()
    h1 = rng.randrange(360)
    while True:
        h2 = rng.randrange(360)
        diff = abs(h1 - h2)
        if diff > 180:
            diff = 360 - diff
        if diff >= 60:
            return h1, h2


def summarize(points: Sequence[float]) -> Tuple[float, float]:
    """(peak, mean) of a waveform, 0 for an empty one."""
    if not points:
        return 0.0, 0.0
    return max(points), sum(points) / len(points)
