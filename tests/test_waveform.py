import random

import numpy as np
import pytest

from afm.waveform import DecodedAudio, compute_peaks, random_gradient_hues, summarize, zero_crossing_hues


def test_peaks_take_block_max_abs():
    data = np.array([0.1, -0.9, 0.2, 0.3, -0.4, 0.0], dtype=np.float32)
    assert compute_peaks(data, 3) == pytest.approx([0.9, 0.3, 0.4])


def test_short_input_pads_with_zero():
    data = np.array([0.5, -0.25], dtype=np.float32)
    assert compute_peaks(data, 4) == pytest.approx([0.5, 0.25, 0.0, 0.0])


def test_default_point_count():
    assert len(compute_peaks(np.zeros(8000, dtype=np.float32))) == 800


def test_zero_crossing_hues_rise_with_noise():
    quiet = np.ones(100, dtype=np.float32)
    noisy = np.tile(np.array([1.0, -1.0], dtype=np.float32), 50)
    hues = zero_crossing_hues(np.concatenate([quiet, noisy]), 2)
    assert hues[0] == "hsl(0, 100%, 50%)"
    assert hues[1] == "hsl(280, 100%, 50%)"


def test_gradient_hues_are_far_apart():
    rng = random.Random(3)
    for _ in range(50):
        h1, h2 = random_gradient_hues(rng)
        diff = abs(h1 - h2)
        assert min(diff, 360 - diff) >= 60


def test_decoded_audio_shape():
    audio = DecodedAudio(np.zeros((441, 2), dtype=np.float32), 441)
    assert audio.duration == 1.0
    assert audio.channels == 2
    assert audio.channel(1).shape == (441,)


def test_summarize():
    assert summarize([]) == (0.0, 0.0)
    assert summarize([0.2, 0.6]) == (0.6, pytest.approx(0.4))
