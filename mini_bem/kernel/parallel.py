# mini_bem/kernel/parallel.py
"""Chunked fan-out/fan-in over independent index ranges (joblib threads)."""

from typing import Callable, List, Sequence, TypeVar

from joblib import Parallel, delayed
from tqdm import tqdm

T = TypeVar("T")


def chunk_ranges(n_items: int, chunk_size: int) -> List[range]:
    return [range(i, min(i + chunk_size, n_items)) for i in range(0, n_items, chunk_size)]


def map_chunks(
    func: Callable[[Sequence[int]], T],
    n_items: int,
    chunk_size: int = 256,
    n_jobs: int = -1,
    desc: str = "",
    show_progress: bool = False,
) -> List[T]:
    """
    Apply func to consecutive index chunks and return the results in order.

    Tasks must only read shared data; each returns its own result block and
    the caller stitches the blocks together after the barrier.
    """
    chunks = chunk_ranges(n_items, chunk_size)
    if not chunks:
        return []
    iterator = tqdm(chunks, desc=desc) if show_progress else chunks
    if n_jobs == 1 or len(chunks) == 1:
        return [func(chunk) for chunk in iterator]
    return Parallel(n_jobs=n_jobs, prefer="threads")(delayed(func)(chunk) for chunk in iterator)
