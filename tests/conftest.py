# conftest.py
# Shared fixtures plus a brute-force strobemer reference used to cross-check
# the iterator and the batch windower.

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from strobemers.configs import DEFAULT_PRIME_NUMBER
from strobemers.NtHasher import splitmix64

EXAMPLE_SEQ = b"ACGATCTGGTACCTAG"  # length 16


def reference_strobes(H, order, w_min, w_max, policy="min", prime=DEFAULT_PRIME_NUMBER, shrink=True):
    """
    Plain-Python strobemers over a list of hashes.

    Returns [(indices, fingerprint), ...] in anchor order, stopping at the
    first anchor for which any window is empty.
    """
    H = [int(h) for h in H]
    last = len(H) - 1
    divisors = {2: (2, 3), 3: (3, 4, 5)}[order]
    out = []
    for i in range(len(H)):
        picked = [i]
        prev = i
        for _ in range(order - 1):
            lo, hi = prev + w_min, prev + w_max
            if hi > last:
                if not shrink:
                    return out
                hi = last
            if lo > hi:
                return out
            if policy == "min":
                nxt = min(range(lo, hi + 1), key=lambda j: (H[j], j))
            else:
                base = H[prev]
                nxt = min(range(lo, hi + 1), key=lambda j: ((((base + H[j]) % 2**64) & prime), j))
            picked.append(nxt)
            prev = nxt
        fp = sum(H[p] // d for p, d in zip(picked, divisors)) % 2**64
        out.append((tuple(picked), fp))
    return out


def pseudo_random_dna(length: int, salt: int = 0) -> bytes:
    return bytes(b"ACGT"[splitmix64(i ^ (salt << 32)) & 3] for i in range(length))


@pytest.fixture
def example_seq() -> bytes:
    return EXAMPLE_SEQ


@pytest.fixture(scope="session")
def long_seq() -> bytes:
    """400 bp deterministic ACGT sequence."""
    return pseudo_random_dna(400, salt=7)


@pytest.fixture(scope="session")
def reference():
    return reference_strobes
