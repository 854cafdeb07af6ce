# conftest.py - part of scanalign

import numpy as np
import pytest


def bandlimited(rows, cols, rng, cutoff=8, mean=30000.0, amp=5000.0):
    """Random rows containing only frequencies below cols/cutoff cycles"""
    nf = cols // cutoff
    spec = np.zeros((rows, cols // 2 + 1), complex)
    spec[:, 1:nf] = (rng.normal(size=(rows, nf - 1))
                     + 1j * rng.normal(size=(rows, nf - 1)))
    img = np.fft.irfft(spec, n=cols, axis=1)
    img *= amp / img.std()
    return img + mean


def fouriershift(img, shift):
    """Shift each row of IMG to the right by SHIFT pixels (periodically)

    SHIFT may be a scalar or one value per row.
    """
    img = np.asarray(img, float)
    cols = img.shape[-1]
    f = np.arange(cols // 2 + 1)
    s = np.reshape(np.asarray(shift, float), (-1, 1))
    ramp = np.exp(-2j * np.pi * f * s / cols)
    return np.fft.irfft(np.fft.rfft(img, axis=-1) * ramp, n=cols, axis=-1)


def snakeshift(img, shift):
    """Shift even rows right and odd rows left by SHIFT pixels"""
    rows = img.shape[0]
    return fouriershift(img, [shift if i % 2 == 0 else -shift
                              for i in range(rows)])


def touint16(img):
    return np.clip(np.rint(img), 0, 65535).astype(np.uint16)


def rms(a, b):
    return np.sqrt(np.mean((a.astype(float) - b.astype(float))**2))


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def reference(rng):
    """A 32×128 frame of smooth random texture"""
    return bandlimited(32, 128, rng)


@pytest.fixture
def makestack(reference):
    """Factory for uint16 stacks with the given per-frame shifts

    The reference frame is appended as the last frame. With snake=True,
    odd rows are shifted the opposite way.
    """
    def make(shifts, snake=False):
        frames = []
        for s in shifts:
            img = snakeshift(reference, s) if snake else fouriershift(reference, s)
            frames.append(touint16(img))
        frames.append(touint16(reference))
        return np.array(frames)
    return make
