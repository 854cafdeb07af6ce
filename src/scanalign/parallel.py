# parallel.py - part of scanalign

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
import os
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def workercount(workers: Optional[int] = None) -> int:
    """Number of worker threads to use

    Returns WORKERS if given, otherwise the number of CPUs, but never
    less than one.
    """
    if workers is None:
        workers = os.cpu_count() or 1
    return max(int(workers), 1)


def partition(n: int, workers: int) -> List[range]:
    """Split range(N) into contiguous chunks, one per worker

    Chunk boundaries are placed at round(N · i / WORKERS). Empty
    chunks (when there are more workers than items) are dropped, so
    the result may be shorter than WORKERS.
    """
    workers = max(int(workers), 1)
    bounds = [int(round(n * i / workers)) for i in range(workers + 1)]
    return [range(a, b) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


def fanout(task: Callable[[range], T], chunks: Sequence[range],
           workers: Optional[int] = None) -> List[T]:
    """Run a task on each chunk in parallel and collect the results

    FANOUT(task, chunks) calls TASK(chunk) for every chunk on a fresh
    pool of threads and waits for all of them to finish. The results
    are returned in the order of CHUNKS.

    If any call raises, the exception from the earliest chunk is
    re-raised, but only after every other chunk has run to completion.
    There is no early abort.
    """
    if not chunks:
        return []
    workers = min(workercount(workers), len(chunks))
    logger.debug("Fanning out %i chunks over %i threads", len(chunks), workers)
    with ThreadPoolExecutor(max_workers=workers,
                            thread_name_prefix="scanalign") as ex:
        futures = [ex.submit(task, chunk) for chunk in chunks]
        wait(futures)
    errors = [(k, fut.exception()) for k, fut in enumerate(futures)
              if fut.exception() is not None]
    for k, err in errors[1:]:
        logger.warning("Chunk %s also failed: %s", chunks[k], err)
    if errors:
        raise errors[0][1]
    return [fut.result() for fut in futures]
