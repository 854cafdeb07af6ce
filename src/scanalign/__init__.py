# __init__.py - part of scanalign

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

"""scanalign - Subpixel drift correction for stacks of scanned frames

Frames acquired repeatedly from the same field of view by a scanning
instrument tend to drift horizontally between acquisitions. This
package estimates that drift row by row, by evaluating the spectral
cross-correlation of each row with the corresponding row of a
reference frame at subpixel offsets, and removes it with a phase ramp
in the frequency domain.

Rows scanned in alternating directions (“snake” scans) are supported:
their shifts are sign-corrected before averaging, and the correction
is applied in the direction each row was scanned.

The typical entry point is

    shifts = scanalign.correlate(frames, snake=True)

or, for a stack loaded from a multi-page TIFF file,

    stk = scanalign.Stack.load(filename)
    shifts = stk.align()

Acknowledgments
---------------

The subpixel evaluation of the cross-correlation follows the
upsampling approach of:

    Guizar-Sicairos M, Thurman ST, Fienup JR, 2008. Efficient
    subpixel image registration algorithms. Opt. Lett. 33, 156-158.
    https://doi.org/10.1364/OL.33.000156.

"""

from .errors import (AlignmentError, ConfigurationError,
                     SearchExhaustedError, TransformPlanningError)
from .fftengine import RealFFT
from .kernel import Kernel, frequencyindices
from .search import upsampledvalue, subpixelshift
from .frame import FrameAligner, roundclip
from .correlate import Correlator, correlate
from .stack import Stack
