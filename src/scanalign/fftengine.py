# fftengine.py - part of scanalign

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
import time
import numpy as np
import scipy.fft
from .errors import ConfigurationError, TransformPlanningError
from typing import Optional, Tuple
import numpy.typing
ArrayLike = numpy.typing.ArrayLike

logger = logging.getLogger(__name__)

PRECISIONS = {
    "single": (np.float32, np.complex64),
    "double": (np.float64, np.complex128),
    "extended": (np.longdouble, np.clongdouble),
}

PLANNING = ("estimate", "measure")


class RealFFT:
    """Real-to-complex FFT of fixed row length

    RealFFT(cols) prepares forward and inverse transforms of real
    rows of length COLS. The same object is used for every row of
    every frame in an alignment session, and may be shared between
    threads.

    Optional argument PRECISION selects the floating point type: one
    of "single", "double" (default), or "extended".

    Optional argument PLANNING selects how much work is done up front.
    With "estimate", only the parameters are checked. With "measure",
    a trial forward and inverse transform are also run and timed; the
    timings are available as the TIMING property afterwards.

    Construction raises TransformPlanningError if the transform cannot
    be set up for the given size.
    """
    def __init__(self, cols: int, precision: str = "double",
                 planning: str = "estimate"):
        if precision not in PRECISIONS:
            raise ConfigurationError(f"Unknown precision “{precision}”")
        if planning not in PLANNING:
            raise ConfigurationError(f"Unknown planning effort “{planning}”")
        try:
            cols = int(cols)
        except (TypeError, ValueError) as err:
            raise TransformPlanningError(f"Bad row length {cols!r}") from err
        if cols < 2:
            raise TransformPlanningError(f"Cannot plan a real FFT of length {cols}")
        self.cols = cols
        self.nfreq = cols // 2 + 1
        self.precision = precision
        self.planning = planning
        self.real, self.complex = (np.dtype(t) for t in PRECISIONS[precision])
        self.timing: Optional[Tuple[float, float]] = None
        if planning == "measure":
            self._measure()

    def _measure(self):
        if scipy.fft.next_fast_len(self.cols, real=True) != self.cols:
            logger.warning("Row length %i is not a fast FFT length", self.cols)
        trial = np.zeros(self.cols, self.real)
        trial[0] = 1
        try:
            t0 = time.perf_counter()
            spec = self.forward(trial)
            t1 = time.perf_counter()
            back = self.inverse(spec)
            t2 = time.perf_counter()
        except Exception as err:
            raise TransformPlanningError(
                f"Trial transform of length {self.cols} failed: {err}") from err
        if spec.dtype != self.complex or back.dtype != self.real:
            raise TransformPlanningError(
                f"{self.precision.capitalize()} precision is not supported"
                f" by the FFT backend")
        self.timing = (t1 - t0, t2 - t1)
        logger.debug("Planned %s precision FFT of length %i: %.1f µs forward,"
                     " %.1f µs inverse", self.precision, self.cols,
                     1e6*self.timing[0], 1e6*self.timing[1])

    def forward(self, rows: ArrayLike) -> np.ndarray:
        """FORWARD - Forward transform of one or more rows

        spec = FORWARD(row) returns the one-sided spectrum of a real
        row, of length COLS//2 + 1. If ROWS is two-dimensional, each
        row is transformed independently.
        """
        rows = np.asarray(rows, self.real)
        if rows.shape[-1] != self.cols:
            raise ValueError(f"Expected rows of length {self.cols},"
                             f" got {rows.shape[-1]}")
        return scipy.fft.rfft(rows, axis=-1)

    def inverse(self, spec: ArrayLike) -> np.ndarray:
        """INVERSE - Unnormalized inverse transform of one or more spectra

        row = INVERSE(spec) returns the real row whose spectrum is SPEC,
        multiplied by COLS. The caller is responsible for dividing by
        COLS.
        """
        spec = np.asarray(spec, self.complex)
        if spec.shape[-1] != self.nfreq:
            raise ValueError(f"Expected spectra of length {self.nfreq},"
                             f" got {spec.shape[-1]}")
        return scipy.fft.irfft(spec, n=self.cols, axis=-1, norm="forward")

    def __repr__(self):
        return f"RealFFT[{self.cols}, {self.precision}, {self.planning}]"
