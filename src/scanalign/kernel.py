# kernel.py - part of scanalign

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
import math
import numpy as np
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def frequencyindices(cols: int) -> np.ndarray:
    """Signed frequency index of each bin of a one-sided spectrum

    FREQUENCYINDICES(cols) returns 0, 1, 2, …, cols//2 for a row of
    length COLS. When COLS is even, the final (Nyquist) index is
    negated, as it would be in the full two-sided spectrum.
    """
    inds = np.arange(cols // 2 + 1)
    if cols % 2 == 0:
        inds[-1] = -inds[-1]
    return inds


class Kernel:
    """Bank of phase vectors for subpixel shift evaluation

    Kernel(cols, upsample, maxshift) precomputes, for every candidate
    shift k/UPSAMPLE pixels with |k| < K = ceil(MAXSHIFT · UPSAMPLE),
    the unit phasors exp(−2πi · k · f / (COLS · UPSAMPLE)) over the
    signed frequency indices f of a row of length COLS.

    Entries are addressed by signed offset: `kernel[k]` for
    −(K−1) ≤ k ≤ K−1. The zero entry is all ones. Negative entries are
    the complex conjugates of the positive ones.

    Optional argument DTYPE specifies the complex type of the bank.

    The search can only confirm a maximum at offsets up to ±(K−2),
    because it has to step one offset beyond it. Shifts are therefore
    resolved within ±REACH = ±(K−1.5)/UPSAMPLE pixels, e.g. ±1.41 px
    for the default MAXSHIFT of 1.5 at 1/16 px.

    The technique follows Guizar-Sicairos, Thurman, and Fienup, 2008.
    Efficient subpixel image registration algorithms. Opt. Lett. 33,
    156-158.
    """
    def __init__(self, cols: int, upsample: int = 16, maxshift: float = 1.5,
                 dtype=np.complex128):
        if not maxshift > 0:
            raise ConfigurationError(f"Maximum shift must be positive, not {maxshift}")
        if int(upsample) != upsample or upsample < 1:
            raise ConfigurationError(f"Upsampling factor must be a positive integer, not {upsample}")
        if maxshift >= cols / 2:
            raise ConfigurationError(f"Maximum shift {maxshift} is too large"
                                     f" for rows of length {cols}")
        self.cols = int(cols)
        self.upsample = int(upsample)
        self.maxshift = float(maxshift)
        self.halfwidth = int(math.ceil(maxshift * upsample))
        if self.halfwidth < 2:
            raise ConfigurationError("Search window must span at least two"
                                     " kernel steps; increase maxshift or upsample")
        K = self.halfwidth
        dtype = np.dtype(dtype)
        real = np.finfo(dtype).dtype
        inds = frequencyindices(self.cols).astype(real)
        twopi = 8 * np.arctan(real.type(1))  # 2π at full precision
        kexp = -twopi / real.type(self.cols * self.upsample)
        phase = np.outer(np.arange(K).astype(real), inds) * kexp
        half = np.empty(phase.shape, dtype)
        half.real = np.cos(phase)
        half.imag = np.sin(phase)
        self.bank = np.empty((2*K - 1, len(inds)), dtype)
        self.bank[K-1:] = half
        self.bank[:K-1] = np.conj(half[:0:-1])
        # Split parts for the score's dot products
        self.re = np.ascontiguousarray(self.bank.real)
        self.im = np.ascontiguousarray(self.bank.imag)
        logger.debug("Built kernel of %i entries for %i columns at 1/%i px",
                     len(self.bank), self.cols, self.upsample)

    def __len__(self):
        return len(self.bank)

    def __getitem__(self, k: int) -> np.ndarray:
        if not -self.halfwidth < k < self.halfwidth:
            raise IndexError(f"Kernel offset {k} outside ±{self.halfwidth - 1}")
        return self.bank[k + self.halfwidth - 1]

    def contains(self, k: int) -> bool:
        """Whether offset K is represented in the bank"""
        return -self.halfwidth < k < self.halfwidth

    @property
    def reach(self) -> float:
        """Largest shift (in pixels) the search can resolve"""
        return (self.halfwidth - 1.5) / self.upsample

    @property
    def offsets(self) -> np.ndarray:
        """The signed offsets of all entries, in bank order"""
        return np.arange(1 - self.halfwidth, self.halfwidth)

    def __repr__(self):
        return (f"Kernel[{self.cols} cols, ±{self.halfwidth - 1}"
                f" @ 1/{self.upsample} px]")
