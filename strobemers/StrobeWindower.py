# strobemers/StrobeWindower.py
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

from strobemers.configs import SelectionPolicy, StrobeConfig, validate_params
from strobemers.errors import InvalidInput
from strobemers.HashStream import U64_MAX, HashTable, sliding_window_min
from strobemers.StrobemerIterator import _FINALIZE_DIVISORS, StrobemerRecord


@dataclass
class StrobemerBatch:
    """
    All strobemers of one sequence as arrays.

    indices: [N, order] int64, strobe positions per row (ascending anchor)
    hashes:  [N] uint64 fingerprints
    """
    indices: np.ndarray
    hashes: np.ndarray

    def __len__(self) -> int:
        return int(self.hashes.shape[0])

    def records(self) -> Iterator[StrobemerRecord]:
        for row, h in zip(self.indices.tolist(), self.hashes.tolist()):
            yield StrobemerRecord(indices=tuple(row), hash=int(h))


@dataclass
class StrobeWindower:
    """
    Vectorised strobemer computation over a shared, read-only HashTable.

    - padded(): hash values followed by (width - 1) sentinel 2^64-1 slots, so
      every candidate window can be taken as a fixed-width strided view.
    - select_round(prev): one selection round for many anchors at once.
    - compute(): every record the StrobemerIterator would emit, optionally
      spread over worker threads on disjoint anchor ranges.
    """
    table: HashTable
    cfg: StrobeConfig
    logger: Optional[logging.Logger] = None

    def __post_init__(self):
        if self.table.k != self.cfg.k:
            raise InvalidInput(f"hash table was built with k={self.table.k}, config has k={self.cfg.k}")
        validate_params(self.table.seq_len, self.cfg)
        self.log = self.logger or logging.getLogger("StrobeWindower")
        if not self.log.handlers:
            ch = logging.StreamHandler()
            ch.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
            self.log.addHandler(ch)
            self.log.setLevel(logging.INFO)
        self.width = self.cfg.w_max - self.cfg.w_min + 1
        self._padded = self.padded()
        self._min_locs: Optional[np.ndarray] = None
        if self.cfg.policy is SelectionPolicy.MIN:
            self._min_locs, _ = sliding_window_min(self._padded, self.width)

    def padded(self) -> np.ndarray:
        pad = np.full(self.width - 1, U64_MAX, dtype=np.uint64)
        return np.concatenate([self.table.values, pad])

    def as_windows(self, starts: np.ndarray) -> np.ndarray:
        """[N, width] candidate hash windows starting at `starts` (a strided view, then gathered)."""
        view = np.lib.stride_tricks.sliding_window_view(self._padded, self.width)
        return view[starts]

    def select_round(self, prev: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Select the next strobe for every entry of `prev`.

        Returns (pos, ok): ok[r] is False when the window of row r is empty
        (or, with shrink disabled, does not fit); pos[r] is then 0.
        """
        cfg = self.cfg
        last = self.table.last
        starts = prev + cfg.w_min
        ends = prev + cfg.w_max
        ok = (ends <= last) if not cfg.shrink else (starts <= last)
        starts = np.where(ok, starts, 0)

        if cfg.policy is SelectionPolicy.MIN:
            # leftmost minimum of the window ending at start + width - 1
            pos = self._min_locs[starts + self.width - 1]
        else:
            values = self.table.values
            hv = self.as_windows(starts)
            base = values[np.where(ok, prev, 0)]
            keys = (hv + base[:, None]) & np.uint64(cfg.prime)
            in_range = (starts[:, None] + np.arange(self.width)[None, :]) <= last
            keys = np.where(in_range, keys, U64_MAX)
            pos = starts + np.argmin(keys, axis=1)
        return np.where(ok, pos, 0).astype(np.int64), ok

    def _compute_range(self, lo: int, hi: int) -> Tuple[np.ndarray, np.ndarray]:
        anchors = np.arange(lo, hi, dtype=np.int64)
        picked = [anchors]
        ok = np.ones(anchors.shape[0], dtype=bool)
        prev = anchors
        for _ in range(self.cfg.order - 1):
            prev, ok_round = self.select_round(prev)
            ok &= ok_round
            picked.append(prev)
        return np.stack(picked, axis=1), ok

    def _finalize(self, indices: np.ndarray) -> np.ndarray:
        values = self.table.values
        out = np.zeros(indices.shape[0], dtype=np.uint64)
        for col, d in enumerate(_FINALIZE_DIVISORS[self.cfg.order]):
            out += values[indices[:, col]] // np.uint64(d)
        return out

    def compute(self, workers: int = 1, chunk: Optional[int] = None) -> StrobemerBatch:
        if workers < 1:
            raise InvalidInput("workers must be >= 1")
        if chunk is not None and chunk < 1:
            raise InvalidInput(f"chunk must be >= 1, got {chunk}")
        n_anchors = len(self.table)
        t0 = time.perf_counter()
        if chunk is None:
            chunk = max(1, -(-n_anchors // workers))
        bounds: List[Tuple[int, int]] = [(lo, min(lo + chunk, n_anchors)) for lo in range(0, n_anchors, chunk)]

        if workers == 1 or len(bounds) == 1:
            parts = [self._compute_range(lo, hi) for lo, hi in bounds]
        else:
            # map() hands results back in submission order, i.e. ascending anchor
            with ThreadPoolExecutor(max_workers=workers) as pool:
                parts = list(pool.map(lambda b: self._compute_range(*b), bounds))

        indices = np.concatenate([p[0] for p in parts], axis=0)
        ok = np.concatenate([p[1] for p in parts], axis=0)
        bad = np.flatnonzero(~ok)
        n_valid = int(bad[0]) if bad.size else n_anchors
        indices = np.ascontiguousarray(indices[:n_valid])
        hashes = self._finalize(indices)
        self.log.info(
            "computed %d strobemers (order=%d, policy=%s) over %d anchors with %d worker(s) in %.3f s",
            n_valid, self.cfg.order, self.cfg.policy.value, n_anchors, workers, time.perf_counter() - t0,
        )
        return StrobemerBatch(indices=indices, hashes=hashes)


def compute_records(
    table: HashTable,
    cfg: StrobeConfig,
    workers: int = 1,
    logger: Optional[logging.Logger] = None,
) -> StrobemerBatch:
    """All strobemers for `table` under `cfg`, identical to iterating a StrobemerIterator."""
    return StrobeWindower(table, cfg, logger).compute(workers=workers)
