# search.py - part of scanalign

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


import numpy as np
from .kernel import Kernel
from .errors import SearchExhaustedError


def upsampledvalue(kernel: Kernel, k: int, xcorr: np.ndarray) -> float:
    """Cross-correlation value at a subpixel offset

    UPSAMPLEDVALUE(kernel, k, xcorr) returns the real part of the
    inverse transform of the one-sided cross-power spectrum XCORR,
    evaluated at the subpixel offset represented by KERNEL entry K.

    Only positive frequencies are summed and the result is doubled:
    the imaginary parts of conjugate-symmetric pairs cancel. For even
    row lengths, the Nyquist bin is counted twice as well; its
    contribution is negligible for realistic row lengths.
    """
    i = k + kernel.halfwidth - 1
    return (2 * (np.dot(xcorr.real[1:], kernel.re[i, 1:])
                 - np.dot(xcorr.imag[1:], kernel.im[i, 1:]))
            + xcorr.real[0])


def subpixelshift(kernel: Kernel, xcorr: np.ndarray, shift: int = 0) -> int:
    """Locate the correlation maximum near a starting offset

    SUBPIXELSHIFT(kernel, xcorr, shift) evaluates the upsampled
    cross-correlation at SHIFT and its two neighbours, then walks
    uphill one kernel step at a time until the value stops increasing.
    The result is the offset of the local maximum, in units of
    1/upsample pixel. If both neighbours are equally better than the
    center, the negative direction is taken.

    Raises SearchExhaustedError if the walk reaches the end of the
    kernel bank. A maximum is only confirmed once the next offset has
    been evaluated, so the outermost confirmable offset is ±(K−2) and
    the usable window is ±KERNEL.REACH pixels, a little short of
    KERNEL.MAXSHIFT.
    """
    if not (kernel.contains(shift - 1) and kernel.contains(shift + 1)):
        raise SearchExhaustedError(f"Starting offset {shift} is at the edge"
                                   f" of the search window")
    negcor = upsampledvalue(kernel, shift - 1, xcorr)
    maxcor = upsampledvalue(kernel, shift, xcorr)
    poscor = upsampledvalue(kernel, shift + 1, xcorr)
    if negcor <= maxcor and poscor <= maxcor:
        return shift
    step = -1 if negcor >= poscor else 1
    curcor = negcor if step < 0 else poscor
    shift += step
    while curcor > maxcor:
        maxcor = curcor
        shift += step
        if not kernel.contains(shift):
            raise SearchExhaustedError(
                f"No maximum up to offset {shift - step}"
                f" ({(shift - step) / kernel.upsample:+g} px); shifts beyond"
                f" ±{kernel.reach:g} px cannot be resolved")
        curcor = upsampledvalue(kernel, shift, xcorr)
    return shift - step
