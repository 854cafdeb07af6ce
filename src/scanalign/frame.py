# frame.py - part of scanalign

## Copyright (C) 2025  Daniel A. Wagenaar
## 
## This program is free software: you can redistribute it and/or
## modify it under the terms of the GNU General Public License as
## published by the Free Software Foundation, either version 3 of the
## License, or (at your option) any later version.
## 
## This program is distributed in the hope that it will be useful, but
## WITHOUT ANY WARRANTY; without even the implied warranty of
## MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
## General Public License for more details.
## 
## You should have received a copy of the GNU General Public License
## along with this program.  If not, see <https://www.gnu.org/licenses/>.


import logging
import numpy as np
from .kernel import Kernel, frequencyindices
from .fftengine import RealFFT
from .search import subpixelshift
from .errors import ConfigurationError, SearchExhaustedError
from typing import Optional
import numpy.typing
ArrayLike = numpy.typing.ArrayLike

logger = logging.getLogger(__name__)


def roundclip(values: np.ndarray, dtype,
              out: Optional[np.ndarray] = None) -> np.ndarray:
    """Convert real values back to a pixel type

    For integer DTYPEs, VALUES are rounded to the nearest integer and
    clamped to the representable range, so that overshoot from the
    shift cannot wrap around. Floating-point DTYPEs are converted
    without rounding.

    If OUT is given, VALUES is rounded in place and the result is
    written into OUT, which is returned.
    """
    dtype = np.dtype(dtype)
    if out is None:
        if dtype.kind in "iu":
            info = np.iinfo(dtype)
            return np.clip(np.rint(values), info.min, info.max).astype(dtype)
        return values.astype(dtype)
    if dtype.kind in "iu":
        info = np.iinfo(dtype)
        np.rint(values, out=values)
        np.clip(values, info.min, info.max, out=values)
    np.copyto(out, values, casting="unsafe")
    return out


class FrameAligner:
    """Row-wise subpixel alignment of single frames against a reference

    FrameAligner(reference, kernel, fft) prepares to align frames
    against REFERENCE, which must hold the complex-conjugated spectra
    of each row of the reference frame (rows × COLS//2+1), as computed
    by FFT. KERNEL is the subpixel kernel bank.

    If SNAKE is True (the default), odd rows are taken to have been
    scanned in the opposite direction from even rows, so that any lag
    shifts them the opposite way.

    The aligner owns row and spectrum buffers for one frame, reused
    for every frame it aligns, so each thread needs its own. The
    transforms themselves still return fresh arrays. REFERENCE, KERNEL, and FFT are only read, and may
    be shared.
    """
    def __init__(self, reference: np.ndarray, kernel: Kernel, fft: RealFFT,
                 snake: bool = True):
        if reference.ndim != 2 or reference.shape[1] != fft.nfreq:
            raise ConfigurationError("Reference spectra do not match FFT length")
        if kernel.cols != fft.cols:
            raise ConfigurationError("Kernel does not match FFT length")
        self.reference = reference
        self.kernel = kernel
        self.fft = fft
        self.snake = bool(snake)
        self.rows, nfreq = reference.shape
        self.cols = fft.cols
        self.inds = frequencyindices(self.cols)
        self.rowdata = np.empty((self.rows, self.cols), fft.real)
        self.spectra = np.empty((self.rows, nfreq), fft.complex)
        self.xcorr = np.empty(nfreq, fft.complex)
        self.rowshifts: Optional[np.ndarray] = None

    def reversed(self, i: int) -> bool:
        """Whether row I was scanned in the reverse direction"""
        return self.snake and i % 2 == 1

    def estimate(self) -> np.ndarray:
        """Per-row kernel offsets for the spectra currently loaded

        Offsets are in units of 1/upsample pixel, in the engine's own
        convention, with the sign of reversed rows already flipped.
        Each row's search starts from the previous row's result.
        """
        offsets = np.zeros(self.rows, int)
        shift = 0
        for i in range(self.rows):
            np.multiply(self.spectra[i], self.reference[i], out=self.xcorr)
            try:
                shift = subpixelshift(self.kernel, self.xcorr,
                                      -shift if self.snake else shift)
            except SearchExhaustedError as err:
                err.row = i
                raise
            offsets[i] = -shift if self.reversed(i) else shift
        return offsets

    def phaseramp(self, shift) -> np.ndarray:
        """Phase factors that shift a row spectrum by SHIFT pixels"""
        real = self.fft.real.type
        twopi = 8 * np.arctan(real(1))
        phase = (-twopi * real(shift) / real(self.cols)) * self.inds.astype(self.fft.real)
        ramp = np.empty(len(phase), self.fft.complex)
        ramp.real = np.cos(phase)
        ramp.imag = np.sin(phase)
        return ramp

    def align(self, frame: np.ndarray):
        """ALIGN - Align a frame to the reference in place

        shift = ALIGN(frame) estimates the horizontal shift of FRAME
        relative to the reference as the mean of its per-row shifts,
        then shifts every row by that amount in the frequency domain
        and writes the result back into FRAME.

        SHIFT is positive if features in FRAME were found to the right
        of the same features in the reference (for reversed rows in a
        snake scan: to the left). The per-row shifts, in the same
        convention, are available afterwards as ROWSHIFTS.

        FRAME is not modified if the shift search fails.
        """
        if frame.shape != (self.rows, self.cols):
            raise ConfigurationError(f"Frame of shape {frame.shape} does not"
                                     f" match reference ({self.rows}, {self.cols})")
        np.copyto(self.rowdata, frame, casting="unsafe")
        self.spectra[:] = self.fft.forward(self.rowdata)

        offsets = self.estimate()
        upsample = self.kernel.upsample
        meanshift = self.fft.real.type(offsets.sum()) / (self.rows * upsample)
        self.rowshifts = offsets.astype(self.fft.real) / -upsample

        ramp = self.phaseramp(meanshift)
        if self.snake:
            self.spectra[0::2] *= ramp
            self.spectra[1::2] *= np.conj(ramp)
        else:
            self.spectra *= ramp
        np.divide(self.fft.inverse(self.spectra), self.cols, out=self.rowdata)
        roundclip(self.rowdata, frame.dtype, out=frame)
        # Engine offsets count the wrong way round
        return -meanshift

    def __repr__(self):
        snake = "snake" if self.snake else "raster"
        return f"FrameAligner[{self.rows}×{self.cols}, {snake}, {self.kernel}]"
