# test_fftengine.py - part of scanalign

import numpy as np
import pytest
from scanalign import RealFFT, ConfigurationError, TransformPlanningError


class TestRealFFT:
    @pytest.fixture
    def row(self, rng):
        return rng.normal(100, 10, 96)

    def test_spectrum_length(self, row):
        fft = RealFFT(96)
        assert fft.nfreq == 49
        assert fft.forward(row).shape == (49,)

    def test_inverse_is_unnormalized(self, row):
        fft = RealFFT(96)
        back = fft.inverse(fft.forward(row))
        np.testing.assert_allclose(back, 96 * row, rtol=1e-10)

    def test_odd_length(self, rng):
        row = rng.normal(size=33)
        fft = RealFFT(33)
        np.testing.assert_allclose(fft.inverse(fft.forward(row)) / 33, row,
                                   atol=1e-10)

    def test_rows_transformed_independently(self, rng):
        block = rng.normal(size=(5, 64))
        fft = RealFFT(64)
        spec = fft.forward(block)
        assert spec.shape == (5, 33)
        np.testing.assert_allclose(spec[3], fft.forward(block[3]))

    @pytest.mark.parametrize("precision, real, cplx", [
        ("single", np.float32, np.complex64),
        ("double", np.float64, np.complex128),
        ("extended", np.longdouble, np.clongdouble),
    ])
    def test_precisions(self, row, precision, real, cplx):
        fft = RealFFT(96, precision)
        spec = fft.forward(row)
        assert spec.dtype == cplx
        back = fft.inverse(spec)
        assert back.dtype == real
        np.testing.assert_allclose(back / 96, row, rtol=1e-5)

    def test_measure_records_timing(self):
        fft = RealFFT(128, planning="measure")
        assert fft.timing is not None
        assert all(t >= 0 for t in fft.timing)

    def test_estimate_skips_trial(self):
        assert RealFFT(128).timing is None

    @pytest.mark.parametrize("cols", [0, 1, -8, "wide"])
    def test_unplannable_size(self, cols):
        with pytest.raises(TransformPlanningError):
            RealFFT(cols)

    def test_unknown_precision(self):
        with pytest.raises(ConfigurationError):
            RealFFT(64, "quadruple")

    def test_unknown_planning(self):
        with pytest.raises(ConfigurationError):
            RealFFT(64, planning="exhaustive")

    def test_wrong_row_length(self):
        fft = RealFFT(64)
        with pytest.raises(ValueError):
            fft.forward(np.zeros(63))
        with pytest.raises(ValueError):
            fft.inverse(np.zeros(30, complex))
