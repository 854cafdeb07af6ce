# stack.py - part of scanalign

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
import cv2
from .correlate import Correlator
from .errors import ConfigurationError
import numpy.typing
ArrayLike = numpy.typing.ArrayLike


class Stack(np.ndarray):
    """A stack of equally sized frames as a 3D array

    Stacks can be constructed in several ways:

    * from numpy arrays using

          stk = Stack(array)

      where ARRAY is frames × rows × cols, or a list of 2D frames;

    * loaded from a multi-page TIFF file using

          stk = Stack.load(filename)

    Unlike images, stacks keep their native pixel type, as alignment
    rounds and clamps back to that type.

    A Stack is just a numpy array with the following additional
    methods:

        align - Align all frames to the last one, in place
        reference - The reference (last) frame
        save - Save the stack to a multi-page TIFF file
    """

    shifts = None

    @staticmethod
    def load(path: str) -> "Stack":
        """LOAD - Load a stack from a multi-page TIFF file

        Multi-channel pages are not supported; pages are read as
        grayscale at their native bit depth.
        """
        ok, pages = cv2.imreadmulti(path, flags=cv2.IMREAD_ANYDEPTH
                                    + cv2.IMREAD_GRAYSCALE)
        if not ok:
            raise FileNotFoundError(path)
        return Stack(pages)

    def __new__(cls, data: ArrayLike):
        if type(data)==str:
            return cls.load(data)
        obj = np.asarray(data).view(cls)
        if len(obj.shape) == 2:
            obj = obj.reshape((1,) + obj.shape)
        if len(obj.shape) != 3:
            raise ConfigurationError("Data must be a stack of two-dimensional frames")
        return obj

    def __array_finalize__(self, obj):
        if obj is None:
            return
        self.shifts = getattr(obj, "shifts", None)

    @property
    def reference(self) -> np.ndarray:
        """The last frame, against which the others are aligned"""
        return self[-1].view(np.ndarray)

    def align(self, **kwargs) -> np.ndarray:
        """ALIGN - Align all frames to the last one, in place

        shifts = stk.ALIGN() corrects horizontal drift in every frame
        but the last and returns the applied shifts. Keyword arguments
        are passed to Correlator, e.g.

            stk.align(snake=False, maxshift=3)

        The shifts are also retained as the SHIFTS attribute.
        """
        self.shifts = Correlator(**kwargs).correlate(self.view(np.ndarray))
        return self.shifts

    def save(self, path: str) -> None:
        '''SAVE - Save a stack to a multi-page TIFF file
        stk.SAVE(path) saves each frame as a page of the file named PATH.
        The pixel type must be one that TIFF supports (uint8, uint16, or
        float32).'''
        frames = [np.ascontiguousarray(frm) for frm in self.view(np.ndarray)]
        if not cv2.imwritemulti(path, frames):
            raise IOError(f"Could not write {path}")

    def __repr__(self):
        if len(self.shape) != 3:
            return self.view(np.ndarray).__repr__()
        N, Y, X = self.shape
        return f"Stack[{N} × {Y}×{X} {self.dtype}]"

    def __str__(self):
        return self.__repr__()
