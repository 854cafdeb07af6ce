# errors.py - part of scanalign

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


from typing import Optional


class AlignmentError(Exception):
    """Base class for all errors raised by scanalign

    The `frame` attribute identifies the frame that was being aligned
    when the error occurred. It is None for errors that are not tied to
    a particular frame, and is filled in by the stack correlator.
    """
    def __init__(self, message: str, frame: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.frame = frame

    def __str__(self):
        if self.frame is None:
            return self.message
        return f"{self.message} (frame {self.frame})"


class ConfigurationError(AlignmentError, ValueError):
    """Invalid parameters or an inconsistent frame stack

    Always raised before any transform work begins.
    """
    pass


class SearchExhaustedError(AlignmentError, RuntimeError):
    """The shift search ran off the end of the kernel bank

    This means that the true shift exceeds the configured maximum.
    The `row` attribute identifies the offending row.
    """
    def __init__(self, message: str, row: Optional[int] = None,
                 frame: Optional[int] = None):
        super().__init__(message, frame)
        self.row = row


class TransformPlanningError(AlignmentError, RuntimeError):
    """A real FFT could not be set up for the requested row length"""
    pass
