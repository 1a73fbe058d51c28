# HashStream.py
from __future__ import annotations

import logging
import numbers
from collections import deque
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from strobemers.errors import HasherFailure, InvalidInput
from strobemers.NtHasher import HasherLike, NtHash64

_MASK64 = 0xFFFFFFFFFFFFFFFF
U64_MAX = np.uint64(_MASK64)

SequenceLike = Union[bytes, bytearray, memoryview, str]

log = logging.getLogger("HashStream")


def as_sequence_bytes(sequence: SequenceLike) -> bytes:
    """Normalise the caller's sequence to immutable bytes (str must be ASCII)."""
    if isinstance(sequence, str):
        try:
            return sequence.encode("ascii")
        except UnicodeEncodeError:
            raise InvalidInput("invalid DNA sequence (contains non-ASCII characters)") from None
    if isinstance(sequence, (bytes, bytearray, memoryview)):
        return bytes(sequence)
    raise InvalidInput(f"sequence must be bytes or str, got {type(sequence).__name__}")


def _check_u64(h, pos: int) -> int:
    if isinstance(h, (bool, np.bool_)) or not isinstance(h, (int, np.integer)):
        raise HasherFailure(f"hasher returned {type(h).__name__} at position {pos}; expected an int")
    h = int(h)
    if h < 0 or h > _MASK64:
        raise HasherFailure(f"hasher returned {h} at position {pos}; outside the unsigned 64-bit range")
    return h


class HashTable:
    """
    Read-only per-position k-mer hashes H[0..n-k] of one sequence.

    Entry i is hasher(sequence[i:i+k]). The backing numpy array is marked
    non-writeable, so one table can be shared by many iterators/threads.
    """

    __slots__ = ("_values", "k", "seq_len")

    def __init__(self, values: np.ndarray, k: int, seq_len: int) -> None:
        arr = np.ascontiguousarray(values, dtype=np.uint64)
        if arr.ndim != 1:
            raise InvalidInput("hash table must be one-dimensional")
        if arr.size != seq_len - k + 1:
            raise InvalidInput(f"hash table has {arr.size} entries, expected n - k + 1 = {seq_len - k + 1}")
        arr.flags.writeable = False
        self._values = arr
        self.k = int(k)
        self.seq_len = int(seq_len)

    def __len__(self) -> int:
        return int(self._values.size)

    def __getitem__(self, i: int) -> int:
        return int(self._values[i])

    def __iter__(self):
        return iter(self._values.tolist())

    def __repr__(self) -> str:
        return f"HashTable(k={self.k}, seq_len={self.seq_len}, n_hashes={len(self)})"

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def last(self) -> int:
        """Largest valid k-mer start position (n - k)."""
        return len(self) - 1

    @classmethod
    def from_hashes(cls, hashes: Sequence[int], k: int = 1) -> "HashTable":
        """Wrap precomputed hashes (e.g. a synthetic H in tests); seq_len is inferred."""
        vals = [_check_u64(h, i) for i, h in enumerate(hashes)]
        if not vals:
            raise InvalidInput("hash table must hold at least one entry")
        return cls(np.asarray(vals, dtype=np.uint64), k=k, seq_len=len(vals) + k - 1)


def build(sequence: SequenceLike, k: int, hasher: Optional[HasherLike] = None) -> HashTable:
    """
    Hash every k-length window of `sequence`, left to right.

    `hasher` is either a callable window -> int, or an object exposing
    hash_all(seq, k) (used in preference, so rolling hashes stay O(1) per step).
    Defaults to NtHash64.
    """
    seq = as_sequence_bytes(sequence)
    if isinstance(k, (bool, np.bool_)) or not isinstance(k, numbers.Integral) or k < 1:
        raise InvalidInput(f"strobe length k must be an int >= 1, got {k!r}")
    k = int(k)
    n = len(seq)
    if n < k:
        raise InvalidInput(f"sequence too short: length {n} < k={k}")

    hasher = NtHash64() if hasher is None else hasher
    expected = n - k + 1

    hash_all = getattr(hasher, "hash_all", None)
    if callable(hash_all):
        raw = hash_all(seq, k)
        if raw is None:
            raise HasherFailure(f"hasher.hash_all returned None, expected {expected} values")
        if not isinstance(raw, (list, tuple, np.ndarray)):
            # generators and other one-shot iterables
            try:
                it = iter(raw)
            except TypeError:
                raise HasherFailure(
                    f"hasher.hash_all returned {type(raw).__name__}; expected a sequence of ints"
                ) from None
            raw = list(it)
        if len(raw) != expected:
            raise HasherFailure(f"hasher.hash_all returned {len(raw)} values, expected {expected}")
        vals = [_check_u64(h, i) for i, h in enumerate(raw)]
    elif callable(hasher):
        vals = [_check_u64(hasher(seq[i:i + k]), i) for i in range(expected)]
    else:
        raise InvalidInput(f"hasher must be callable or provide hash_all(), got {type(hasher).__name__}")

    log.debug("built hash table: n=%d k=%d entries=%d", n, k, expected)
    return HashTable(np.asarray(vals, dtype=np.uint64), k=k, seq_len=n)


def sliding_window_min(values: Sequence[int], w: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Minimum of every width-`w` window, via a monotone deque.

    Returns (locs, mins): locs[i]/mins[i] describe the window ending at i and
    are only meaningful for i >= w - 1 (earlier slots keep 0 / 2^64-1).
    Equal values keep the leftmost position.
    """
    if w < 1:
        raise InvalidInput("window size must be >= 1")
    vals = values.tolist() if isinstance(values, np.ndarray) else [int(v) for v in values]
    n = len(vals)
    locs = np.zeros(n, dtype=np.int64)
    mins = np.full(n, U64_MAX, dtype=np.uint64)
    if w == 1:
        locs[:] = np.arange(n, dtype=np.int64)
        mins[:] = np.asarray(vals, dtype=np.uint64)
        return locs, mins

    q: deque = deque()  # indices, values non-decreasing front to back
    for i, h in enumerate(vals):
        start = i - w + 1
        while q and q[0] < start:
            q.popleft()
        # strict: an equal value already queued stays in front (leftmost wins)
        while q and vals[q[-1]] > h:
            q.pop()
        q.append(i)
        if i >= w - 1:
            locs[i] = q[0]
            mins[i] = vals[q[0]]
    return locs, mins
