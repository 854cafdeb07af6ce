# test_stack.py - part of scanalign

import numpy as np
import pytest
from scanalign import Stack, ConfigurationError
from conftest import rms


class TestStack:
    def test_from_array(self, makestack):
        stk = Stack(makestack([0.5, 0.25]))
        assert stk.shape == (3, 32, 128)
        assert stk.dtype == np.uint16
        assert repr(stk) == "Stack[3 × 32×128 uint16]"

    def test_from_single_frame(self):
        stk = Stack(np.zeros((4, 6), np.uint8))
        assert stk.shape == (1, 4, 6)

    def test_rejects_bad_shape(self):
        with pytest.raises(ConfigurationError):
            Stack(np.zeros(10))

    def test_align_in_place(self, makestack):
        stk = Stack(makestack([0.5, -0.75]))
        shifts = stk.align(snake=False)
        np.testing.assert_allclose(shifts, [0.5, -0.75], atol=1/16)
        assert stk.shifts is shifts
        for frm in stk[:-1]:
            assert rms(frm, stk.reference) < 100

    def test_save_and_load(self, makestack, tmp_path):
        stk = Stack(makestack([0.5, 0.25]))
        path = str(tmp_path / "stack.tif")
        stk.save(path)
        back = Stack.load(path)
        assert back.dtype == np.uint16
        np.testing.assert_array_equal(back, stk)

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Stack.load(str(tmp_path / "missing.tif"))
