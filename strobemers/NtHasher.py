# --------------------------------------------
# NtHasher: k-mer hashing primitives
# (default rolling ntHash + small reference hashers)
# --------------------------------------------
from __future__ import annotations
from typing import Callable, List, Protocol, Sequence, Union, runtime_checkable

from strobemers.rc import complement, nt4

_MASK64 = 0xFFFFFFFFFFFFFFFF


@runtime_checkable
class KmerHasher(Protocol):
    """Pure function of one k-length window -> unsigned 64-bit hash."""
    def __call__(self, window: bytes) -> int: ...


@runtime_checkable
class BatchKmerHasher(Protocol):
    """Hasher that can produce all n-k+1 window hashes of a sequence in one pass."""
    def hash_all(self, seq: bytes, k: int) -> Sequence[int]: ...


HasherLike = Union[KmerHasher, BatchKmerHasher, Callable[[bytes], int]]


def _rol(x: int, r: int) -> int:
    r &= 63
    return ((x << r) | (x >> (64 - r))) & _MASK64 if r else x


def _ror(x: int, r: int) -> int:
    return _rol(x, 64 - (r & 63))


def splitmix64(x: int) -> int:
    x = (x + 0x9E3779B97F4A7C15) & _MASK64
    z = x
    z = (z ^ (z >> 30)) * 0xBF58476D1CE4E5B9 & _MASK64
    z = (z ^ (z >> 27)) * 0x94D049BB133111EB & _MASK64
    z ^= (z >> 31)
    return z & _MASK64


class NtHash64:
    """
    Rolling ntHash over nucleotide windows.

    - Each base has a fixed 64-bit seed; non-ACGT bytes use a zero seed.
    - Forward hash of w[0..k): XOR of rol(seed[w[i]], k-1-i).
    - Sliding by one base costs O(1): rol(h, 1) ^ rol(seed[out], k) ^ seed[in].
    - canonical=True returns min(forward, reverse-complement) so both strands
      hash identically.

    Lowercase bases hash like uppercase; U is read as T.
    """

    SEED_A = 0x3C8BFBB395C60474
    SEED_C = 0x3193C18562A02B4C
    SEED_G = 0x20323ED082572324
    SEED_T = 0x295549F54BE24456
    SEED_N = 0

    def __init__(self, canonical: bool = False) -> None:
        self.canonical = bool(canonical)
        by_code = (self.SEED_A, self.SEED_C, self.SEED_G, self.SEED_T, self.SEED_N)
        # reverse strand reads the complement base
        self._seed = [by_code[nt4(b)] for b in range(256)]
        self._rc_seed = [by_code[nt4(complement(b))] for b in range(256)]

    # ---- per-window ---------------------------------------------------------
    def _forward(self, window: bytes) -> int:
        k = len(window)
        h = 0
        for i, b in enumerate(window):
            h ^= _rol(self._seed[b], k - 1 - i)
        return h

    def _reverse(self, window: bytes) -> int:
        h = 0
        for i, b in enumerate(window):
            h ^= _rol(self._rc_seed[b], i)
        return h

    def __call__(self, window: bytes) -> int:
        fh = self._forward(window)
        if not self.canonical:
            return fh
        return min(fh, self._reverse(window))

    # ---- rolling ------------------------------------------------------------
    def hash_all(self, seq: bytes, k: int) -> List[int]:
        """All n-k+1 window hashes, left to right; empty when len(seq) < k."""
        n = len(seq)
        if k < 1 or n < k:
            return []
        seed = self._seed
        rc_seed = self._rc_seed
        fh = self._forward(seq[:k])
        rh = self._reverse(seq[:k]) if self.canonical else 0
        out = [min(fh, rh) if self.canonical else fh]
        for i in range(n - k):
            b_out = seq[i]
            b_in = seq[i + k]
            fh = _rol(fh, 1) ^ _rol(seed[b_out], k) ^ seed[b_in]
            if self.canonical:
                rh = _ror(rh, 1) ^ _ror(rc_seed[b_out], 1) ^ _rol(rc_seed[b_in], k - 1)
                out.append(min(fh, rh))
            else:
                out.append(fh)
        return out


class XorHasher:
    """XOR of the window's bytes. Tiny value range: handy for forcing hash ties."""

    def __call__(self, window: bytes) -> int:
        h = 0
        for b in window:
            h ^= b
        return h


def fnv1a64(window: bytes) -> int:
    # 64-bit FNV-1a then fold; deterministic and fast.
    h = 1469598103934665603
    for ch in window:
        h ^= ch
        h *= 1099511628211
        h &= _MASK64
    # final mix
    h ^= (h >> 33)
    h *= 0xff51afd7ed558ccd
    h &= _MASK64
    return h
