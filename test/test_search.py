# test_search.py - part of scanalign

import numpy as np
import pytest
from scanalign import (Kernel, upsampledvalue, subpixelshift,
                       SearchExhaustedError)
from conftest import bandlimited, fouriershift


def crosspower(ref, mov):
    return np.fft.rfft(mov) * np.conj(np.fft.rfft(ref))


class TestUpsampledValue:
    def test_matches_inverse_transform(self, rng):
        # Odd length: no Nyquist bin, so the value is exact
        N, U = 63, 4
        kernel = Kernel(N, U, 3)
        xcorr = rng.normal(size=32) + 1j * rng.normal(size=32)
        xc = np.fft.irfft(xcorr, n=N, norm="forward")
        for j in range(-2, 3):
            assert upsampledvalue(kernel, U * j, xcorr) \
                == pytest.approx(xc[-j], rel=1e-10, abs=1e-9)

    def test_peak_at_true_shift(self, rng):
        ref = bandlimited(1, 128, rng)[0]
        mov = fouriershift(ref, 0.5)[0]
        kernel = Kernel(128, 16, 1.5)
        xcorr = crosspower(ref, mov)
        values = [upsampledvalue(kernel, k, xcorr) for k in kernel.offsets]
        assert kernel.offsets[np.argmax(values)] == -8


class TestSubpixelShift:
    @pytest.fixture
    def kernel(self):
        return Kernel(128, 16, 1.5)

    @pytest.fixture
    def ref(self, rng):
        return bandlimited(1, 128, rng)[0]

    @pytest.mark.parametrize("shift", [0.0, 0.25, -0.5, 1.0, -1.3125])
    def test_known_shift(self, kernel, ref, shift):
        xcorr = crosspower(ref, fouriershift(ref, shift)[0])
        assert subpixelshift(kernel, xcorr) == round(-16 * shift)

    @pytest.mark.parametrize("start", [-10, -3, 0, 5, 12])
    def test_result_independent_of_start(self, kernel, ref, start):
        xcorr = crosspower(ref, fouriershift(ref, 0.4)[0])
        assert subpixelshift(kernel, xcorr, start) == round(-16 * 0.4)

    def test_zero_shift_stays_put(self, kernel, ref):
        assert subpixelshift(kernel, crosspower(ref, ref)) == 0

    def test_tie_prefers_negative(self):
        # Symmetric score with a minimum at zero and maxima at ±16
        kernel = Kernel(64, 8, 3)
        xcorr = np.zeros(33, complex)
        xcorr[16] = -1
        assert subpixelshift(kernel, xcorr) == -16

    def test_exhausted(self, kernel, ref):
        xcorr = crosspower(ref, fouriershift(ref, 1.75)[0])
        with pytest.raises(SearchExhaustedError):
            subpixelshift(kernel, xcorr)

    def test_exhausted_positive(self, kernel, ref):
        xcorr = crosspower(ref, fouriershift(ref, -1.75)[0])
        with pytest.raises(SearchExhaustedError):
            subpixelshift(kernel, xcorr)

    def test_start_at_edge(self, kernel, ref):
        with pytest.raises(SearchExhaustedError):
            subpixelshift(kernel, crosspower(ref, ref), 23)
