# correlate.py - part of scanalign

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
from .fftengine import RealFFT, PRECISIONS, PLANNING
from .kernel import Kernel
from .frame import FrameAligner
from .parallel import fanout, partition, workercount
from .errors import AlignmentError, ConfigurationError
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


def framestack(frames: Sequence[np.ndarray],
               rows: Optional[int] = None,
               cols: Optional[int] = None) -> List[np.ndarray]:
    """Check a stack of frames and return 2D views of each

    FRAMES may be a 3D array or a sequence of 2D arrays. Flat
    row-major buffers are accepted as well if ROWS and COLS are
    given; they must be reshapeable without copying, as the frames are
    modified in place.

    Raises ConfigurationError if the frames are not all of the same
    shape or are not writeable numeric arrays.
    """
    views = []
    for k, frame in enumerate(frames):
        if not isinstance(frame, np.ndarray):
            raise ConfigurationError(f"Frame {k} is not a numpy array")
        if frame.ndim == 1:
            if rows is None or cols is None:
                raise ConfigurationError("Flat frames need explicit rows and cols")
            if frame.size != rows * cols:
                raise ConfigurationError(f"Frame {k} has {frame.size} samples,"
                                         f" not {rows}×{cols}")
            view = frame.reshape(rows, cols)
            if not np.may_share_memory(view, frame):
                raise ConfigurationError(f"Frame {k} cannot be viewed as"
                                         f" {rows}×{cols} in place")
        elif frame.ndim == 2:
            view = frame
        else:
            raise ConfigurationError(f"Frame {k} is {frame.ndim}-dimensional")
        if view.dtype.kind not in "iuf":
            raise ConfigurationError(f"Frame {k} has non-numeric type {view.dtype}")
        views.append(np.asarray(view))

    if not views:
        raise ConfigurationError("No frames to align")
    shape = views[-1].shape
    if rows is not None and rows != shape[0] or cols is not None and cols != shape[1]:
        raise ConfigurationError(f"Frames are {shape[0]}×{shape[1]},"
                                 f" not {rows}×{cols}")
    for k, view in enumerate(views):
        if view.shape != shape:
            raise ConfigurationError(f"Frame {k} has shape {view.shape},"
                                     f" reference has {shape}")
        if k < len(views) - 1 and not view.flags.writeable:
            raise ConfigurationError(f"Frame {k} is read-only")
    return views


class Correlator:
    """Row-wise subpixel drift correction for stacks of scanned frames

    After construction, use the CORRELATE method to align a stack. The
    last frame of the stack serves as the reference; every other frame
    is shifted horizontally, in place, to match it. For example:

        shifts = Correlator(snake=True).correlate(frames)

    Optional arguments:

        snake: whether alternate rows were scanned in opposite
               directions (default: True)
        maxshift: largest shift (in pixels) that will be searched for
        upsample: subpixel resolution, as a fraction of a pixel
        precision: "single", "double", or "extended" floating point
        workers: number of threads (default: one per CPU)
        planning: "estimate" or "measure"; see RealFFT

    Each of these may also be changed later with the corresponding
    SETxxx method.
    """
    def __init__(self, snake: bool = True, maxshift: float = 1.5,
                 upsample: int = 16, precision: str = "double",
                 workers: Optional[int] = None, planning: str = "estimate"):
        self.setsnake(snake)
        self.setmaxshift(maxshift)
        self.setupsample(upsample)
        self.setprecision(precision, planning)
        self.setworkers(workers)
        self.shifts_: Optional[np.ndarray] = None
        self.rowshifts_: Optional[np.ndarray] = None

    def setsnake(self, snake: bool = True) -> None:
        """Set whether alternate rows were scanned in opposite directions"""
        self.snake = bool(snake)

    def setmaxshift(self, maxshift: float = 1.5) -> None:
        """Set the largest shift to search for, in pixels

        Larger values cost a little more memory, not time. A search
        that runs into the limit raises SearchExhaustedError. Because a
        maximum must be confirmed one kernel step further out, shifts
        are only resolved up to ±(ceil(maxshift·upsample) − 1.5)/upsample
        pixels, e.g. ±1.41 px for the defaults.
        """
        try:
            maxshift = float(maxshift)
        except (TypeError, ValueError) as err:
            raise ConfigurationError(f"Bad maximum shift {maxshift!r}") from err
        if not (maxshift > 0 and math.isfinite(maxshift)):
            raise ConfigurationError(f"Maximum shift must be positive, not {maxshift}")
        self.maxshift = maxshift

    def setupsample(self, upsample: int = 16) -> None:
        """Set the subpixel resolution (in fractions of a pixel)"""
        if isinstance(upsample, bool) or not isinstance(upsample, (int, np.integer)) \
           or upsample < 1:
            raise ConfigurationError(f"Upsampling factor must be a positive"
                                     f" integer, not {upsample!r}")
        self.upsample = int(upsample)

    def setprecision(self, precision: str = "double",
                     planning: str = "estimate") -> None:
        """Set the floating point precision and FFT planning effort"""
        if precision not in PRECISIONS:
            raise ConfigurationError(f"Unknown precision “{precision}”")
        if planning not in PLANNING:
            raise ConfigurationError(f"Unknown planning effort “{planning}”")
        self.precision = precision
        self.planning = planning

    def setworkers(self, workers: Optional[int] = None) -> None:
        """Set the number of worker threads

        None means one per CPU.
        """
        if workers is not None:
            try:
                count = int(workers)
            except (TypeError, ValueError) as err:
                raise ConfigurationError(f"Bad worker count {workers!r}") from err
            if count != workers or count < 1:
                raise ConfigurationError(f"Worker count must be a positive"
                                         f" integer, not {workers!r}")
        self.workers = workers

    def correlate(self, frames: Sequence[np.ndarray],
                  rows: Optional[int] = None,
                  cols: Optional[int] = None) -> np.ndarray:
        """CORRELATE - Align a stack of frames to its last frame

        shifts = CORRELATE(frames) aligns every frame in FRAMES except
        the last one to that last frame, in place, and returns the
        applied shifts (in pixels) as an array with one entry per
        aligned frame.

        A shift is positive if features in the frame were found to the
        right of the same features in the reference.

        ROWS and COLS are needed only if the frames are flat buffers.

        If aligning any frame fails, all other frames are still
        aligned, after which the error from the lowest-numbered failing
        frame is raised. Its FRAME attribute identifies that frame,
        which is left unmodified.
        """
        frames = framestack(frames, rows, cols)
        rows, cols = frames[-1].shape
        nframes = len(frames) - 1
        if self.maxshift >= cols / 2:
            raise ConfigurationError(f"Maximum shift {self.maxshift} is too"
                                     f" large for rows of length {cols}")
        kernel = Kernel(cols, self.upsample, self.maxshift,
                        PRECISIONS[self.precision][1])
        fft = RealFFT(cols, self.precision, self.planning)
        if nframes == 0:
            self.shifts_ = np.zeros(0, fft.real)
            self.rowshifts_ = np.zeros((0, rows), fft.real)
            return self.shifts_

        reference = np.conj(fft.forward(frames[-1]))
        reference.flags.writeable = False
        shifts = np.zeros(nframes, fft.real)
        rowshifts = np.full((nframes, rows), np.nan, fft.real)
        failures: Dict[int, AlignmentError] = {}

        def alignchunk(chunk: range) -> None:
            aligner = FrameAligner(reference, kernel, fft, self.snake)
            for i in chunk:
                try:
                    shifts[i] = aligner.align(frames[i])
                except AlignmentError as err:
                    err.frame = i
                    failures[i] = err
                    continue
                rowshifts[i] = aligner.rowshifts
                logger.debug("Frame %i: shift %.4f px", i, shifts[i])

        chunks = partition(nframes, workercount(self.workers))
        logger.debug("Aligning %i frames of %i×%i on %i threads with %r",
                     nframes, rows, cols, len(chunks), kernel)
        fanout(alignchunk, chunks, len(chunks))

        self.shifts_ = shifts
        self.rowshifts_ = rowshifts
        if failures:
            order = sorted(failures)
            for i in order[1:]:
                logger.warning("Frame %i also failed: %s", i, failures[i])
            raise failures[order[0]]
        logger.info("Aligned %i frames of %i×%i; shifts %.3f to %.3f px",
                    nframes, rows, cols, shifts.min(), shifts.max())
        return shifts

    @property
    def shifts(self) -> Optional[np.ndarray]:
        """Shifts from the preceding CORRELATE call

        Entries for frames that failed are zero.
        """
        return self.shifts_

    @property
    def rowshifts(self) -> Optional[np.ndarray]:
        """Per-row shifts from the preceding CORRELATE call

        One row of this array per aligned frame. Rows for frames that
        failed are NaN.
        """
        return self.rowshifts_

    def __repr__(self):
        snake = "snake" if self.snake else "raster"
        cfg = (f"{snake}, ±{self.maxshift:g} px @ 1/{self.upsample},"
               f" {self.precision}")
        if self.shifts_ is None or len(self.shifts_) == 0:
            return f"Correlator[{cfg}]"
        return (f"Correlator[{cfg}: {len(self.shifts_)} frames,"
                f" {self.shifts_.min():.2f} … {self.shifts_.max():.2f} px]")


def correlate(frames: Sequence[np.ndarray],
              rows: Optional[int] = None,
              cols: Optional[int] = None,
              snake: bool = True,
              maxshift: float = 1.5,
              upsample: int = 16,
              **kwargs) -> np.ndarray:
    """Align a stack of frames to its last frame in place

    This is shorthand for

        Correlator(snake, maxshift, upsample, **kwargs).correlate(frames, rows, cols)

    See Correlator for details.
    """
    return Correlator(snake, maxshift, upsample, **kwargs).correlate(frames, rows, cols)
