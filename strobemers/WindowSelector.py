# WindowSelector.py
from __future__ import annotations

from typing import Optional, Union

import numpy as np

from strobemers.configs import DEFAULT_PRIME_NUMBER, MASK64, SelectionPolicy
from strobemers.HashStream import HashTable

__all__ = [
    "SelectionPolicy",
    "candidate_window",
    "combine",
    "select",
    "select_min",
    "select_rand",
]


def combine(base: int, candidate: int, prime: int = DEFAULT_PRIME_NUMBER) -> int:
    """RandStrobes key: ((base + candidate) mod 2^64) & prime."""
    return ((int(base) + int(candidate)) & MASK64) & int(prime)


def candidate_window(n_hashes: int, anchor: int, w_min: int, w_max: int, shrink: bool = True) -> Optional[range]:
    """
    Positions [anchor + w_min, anchor + w_max] clipped to [0, n_hashes - 1].

    None when the clipped window is empty. With shrink=False a window that
    runs past the last hash is treated as empty instead of being clipped.
    """
    last = n_hashes - 1
    start = anchor + w_min
    end = anchor + w_max
    if end > last:
        if not shrink:
            return None
        end = last
    start = max(start, 0)
    if start > end:
        return None
    return range(start, end + 1)


def select_min(values: np.ndarray, window: range) -> int:
    # np.argmin returns the first occurrence: leftmost on ties
    return window.start + int(np.argmin(values[window.start:window.stop]))


def select_rand(values: np.ndarray, base: int, window: range, prime: int = DEFAULT_PRIME_NUMBER) -> int:
    seg = values[window.start:window.stop]
    # uint64 array arithmetic wraps mod 2^64
    keys = (seg + np.uint64(base)) & np.uint64(prime)
    return window.start + int(np.argmin(keys))


def select(
    table: HashTable,
    anchor: int,
    w_min: int,
    w_max: int,
    policy: Union[SelectionPolicy, str] = SelectionPolicy.MIN,
    prime: int = DEFAULT_PRIME_NUMBER,
    shrink: bool = True,
) -> Optional[int]:
    """
    Pick the next strobe position downstream of `anchor`, or None if the
    window is empty.

    MIN  -> argmin H[j]
    RAND -> argmin combine(H[anchor], H[j], prime)
    Both scan only the window (O(w_max - w_min)) and break ties leftmost.
    """
    window = candidate_window(len(table), anchor, w_min, w_max, shrink)
    if window is None:
        return None
    values = table.values
    if SelectionPolicy.parse(policy) is SelectionPolicy.MIN:
        return select_min(values, window)
    return select_rand(values, table[anchor], window, prime)
