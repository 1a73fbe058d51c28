# StrobemerIterator.py
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from strobemers.configs import (
    DEFAULT_PRIME_NUMBER,
    MASK64,
    SelectionPolicy,
    StrobeConfig,
    mersenne_mask,
    validate_params,
)
from strobemers.errors import InvalidInput
from strobemers.HashStream import HashTable, SequenceLike, as_sequence_bytes, build
from strobemers.NtHasher import HasherLike
from strobemers.WindowSelector import select

# per-position divisors of the fingerprint, indexed by order
_FINALIZE_DIVISORS = {2: (2, 3), 3: (3, 4, 5)}


def finalize(hashes: Sequence[int]) -> int:
    """
    Fold 2 or 3 strobe hashes into one 64-bit fingerprint.

    order 2: h1 // 2 + h2 // 3
    order 3: h1 // 3 + h2 // 4 + h3 // 5
    (sums taken mod 2^64)
    """
    divisors = _FINALIZE_DIVISORS.get(len(hashes))
    if divisors is None:
        raise InvalidInput(f"finalize expects 2 or 3 hashes, got {len(hashes)}")
    acc = 0
    for h, d in zip(hashes, divisors):
        acc += int(h) // d
    return acc & MASK64


@dataclass(frozen=True)
class StrobemerRecord:
    indices: Tuple[int, ...]
    hash: int


class StrobemerIterator:
    """
    Forward stream of strobemer fingerprints over one sequence.

    Step i (anchor i) runs order-1 selection rounds; each round picks a
    strobe from [prev + w_min, prev + w_max] (clipped to the hash table),
    where prev is the anchor for the first round and the previously chosen
    strobe afterwards. Any empty window exhausts the stream for good.

        it = MinStrobes(b"ACGATCTGGTACCTAG", order=2, k=3, w_min=3, w_max=5)
        for h in it:
            i, j = it.indexes
    """

    policy: SelectionPolicy = SelectionPolicy.MIN

    def __init__(
        self,
        sequence: SequenceLike,
        order: int,
        k: int,
        w_min: int,
        w_max: int,
        policy: Union[SelectionPolicy, str, None] = None,
        hasher: Optional[HasherLike] = None,
        *,
        prime: int = DEFAULT_PRIME_NUMBER,
        shrink: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        cfg = StrobeConfig(
            order=order,
            k=k,
            w_min=w_min,
            w_max=w_max,
            policy=self.policy if policy is None else policy,
            prime=prime,
            shrink=shrink,
        )
        seq = as_sequence_bytes(sequence)
        validate_params(len(seq), cfg)
        self._setup(build(seq, cfg.k, hasher), cfg, logger)

    @classmethod
    def with_hasher(
        cls,
        hasher: HasherLike,
        sequence: SequenceLike,
        order: int,
        k: int,
        w_min: int,
        w_max: int,
        policy: Union[SelectionPolicy, str, None] = None,
        **kwargs,
    ) -> "StrobemerIterator":
        return cls(sequence, order, k, w_min, w_max, policy, hasher, **kwargs)

    @classmethod
    def from_table(
        cls,
        table: HashTable,
        cfg: StrobeConfig,
        logger: Optional[logging.Logger] = None,
    ) -> "StrobemerIterator":
        """Iterate over an existing (possibly shared) hash table."""
        if table.k != cfg.k:
            raise InvalidInput(f"hash table was built with k={table.k}, config has k={cfg.k}")
        validate_params(table.seq_len, cfg)
        obj = cls.__new__(cls)
        obj._setup(table, cfg, logger)
        return obj

    def _setup(self, table: HashTable, cfg: StrobeConfig, logger: Optional[logging.Logger]) -> None:
        self.table = table
        self.cfg = cfg
        self._idx = 0                     # anchor of the next step
        self._exhausted = False
        self._emitted = 0
        self._indexes: List[int] = [0] * cfg.order

        self.log = logger or logging.getLogger(type(self).__name__)
        if not self.log.handlers:
            ch = logging.StreamHandler()
            ch.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
            self.log.addHandler(ch)
            self.log.setLevel(logging.INFO)
        self.log.debug(
            "ready: n=%d order=%d k=%d w=[%d,%d] policy=%s",
            table.seq_len, cfg.order, cfg.k, cfg.w_min, cfg.w_max, cfg.policy.value,
        )

    # --------------------------- settings ------------------------------------

    def _ensure_not_started(self, what: str) -> None:
        if self._emitted or self._exhausted:
            raise RuntimeError(f"cannot change {what} after iteration has started")

    def set_prime(self, q: int) -> None:
        """Use q (rounded up to 2^b - 1, q >= 256) as the RandStrobes combine mask."""
        self._ensure_not_started("prime")
        self.cfg = replace(self.cfg, prime=mersenne_mask(q))

    def set_window_shrink(self, shrink: bool) -> None:
        """When False, a window that runs off the sequence end terminates the stream."""
        self._ensure_not_started("window shrink")
        self.cfg = replace(self.cfg, shrink=bool(shrink))

    # --------------------------- queries -------------------------------------

    @property
    def order(self) -> int:
        return self.cfg.order

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def indexes(self) -> List[int]:
        """
        Positions of the strobes behind the most recent fingerprint.

        This is the iterator's own buffer; it is overwritten on every advance,
        so copy it if you need to keep it.
        """
        return self._indexes

    def index(self) -> Optional[int]:
        """Anchor of the most recent fingerprint, None before the first one."""
        return self._indexes[0] if self._emitted else None

    # --------------------------- iteration -----------------------------------

    def _pick(self, prev: int) -> Optional[int]:
        cfg = self.cfg
        return select(self.table, prev, cfg.w_min, cfg.w_max, cfg.policy, cfg.prime, cfg.shrink)

    def _exhaust(self) -> None:
        self._exhausted = True
        self.log.debug("exhausted at anchor %d after %d strobemers", self._idx, self._emitted)

    def _advance(self) -> Optional[int]:
        if self._exhausted:
            return None
        i = self._idx
        if i > self.table.last:
            self._exhaust()
            return None

        picked = [i]
        prev = i
        for _ in range(self.cfg.order - 1):
            nxt = self._pick(prev)
            if nxt is None:
                self._exhaust()
                return None
            picked.append(nxt)
            prev = nxt

        self._indexes[:] = picked
        self._idx = i + 1
        self._emitted += 1
        return finalize([self.table[p] for p in picked])

    def __iter__(self) -> "StrobemerIterator":
        return self

    def __next__(self) -> int:
        h = self._advance()
        if h is None:
            raise StopIteration
        return h

    def next_record(self) -> Optional[StrobemerRecord]:
        """Advance once; None at end of sequence."""
        h = self._advance()
        if h is None:
            return None
        return StrobemerRecord(indices=tuple(self._indexes), hash=h)

    def records(self) -> Iterator[StrobemerRecord]:
        while True:
            rec = self.next_record()
            if rec is None:
                return
            yield rec


class MinStrobes(StrobemerIterator):
    """Strobemers whose later strobes are the window's minimum-hash k-mer."""
    policy = SelectionPolicy.MIN


class RandStrobes(StrobemerIterator):
    """Strobemers whose later strobes minimise (H[prev] + H[j]) & prime."""
    policy = SelectionPolicy.RAND
