import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import logging

import numpy as np
import pytest

from strobemers.configs import SelectionPolicy, StrobeConfig
from strobemers.errors import HasherFailure, InvalidInput
import importlib

iterator_mod = importlib.import_module("strobemers.StrobemerIterator")
from strobemers.HashStream import HashTable, build
from strobemers.NtHasher import NtHash64, XorHasher, fnv1a64, splitmix64
from strobemers.StrobemerIterator import (
    MinStrobes,
    RandStrobes,
    StrobemerIterator,
    StrobemerRecord,
    finalize,
)

K, W_MIN, W_MAX = 3, 3, 5


def drain(it):
    """[(indices, fingerprint), ...] copying the index buffer at each step."""
    out = []
    for h in it:
        out.append((tuple(it.indexes), h))
    return out


# ------------------------------- Fixtures ------------------------------------

@pytest.fixture
def order3_table() -> HashTable:
    # built so the second window (relative to m2) is easy to follow by hand
    return HashTable.from_hashes([50, 60, 70, 10, 80, 90, 5, 40, 30, 20])


# =============================== Test Classes ================================

class TestExampleSequence:
    def test_order2_min_windows_and_termination(self, example_seq):
        it = MinStrobes(example_seq, 2, K, W_MIN, W_MAX)
        got = drain(it)
        last = len(example_seq) - K  # 13
        assert len(got) == 11, "anchors 0..10; i + 3 > 13 from anchor 11 on"
        for anchor, ((i, j), _) in enumerate(got):
            assert i == anchor
            assert i + W_MIN <= j <= min(i + W_MAX, last)

    @pytest.mark.parametrize("cls", [MinStrobes, RandStrobes])
    @pytest.mark.parametrize("order", [2, 3])
    def test_matches_reference(self, example_seq, reference, cls, order):
        got = drain(cls(example_seq, order, K, W_MIN, W_MAX))
        H = list(build(example_seq, K))
        assert got == reference(H, order, W_MIN, W_MAX, cls.policy.value)

    @pytest.mark.parametrize("cls", [MinStrobes, RandStrobes])
    @pytest.mark.parametrize("order", [2, 3])
    def test_repeatable(self, example_seq, cls, order):
        a = drain(cls(example_seq, order, K, W_MIN, W_MAX))
        b = drain(cls(example_seq, order, K, W_MIN, W_MAX))
        assert a == b
        assert len(a) > 0

    def test_str_input(self, example_seq):
        a = drain(MinStrobes(example_seq, 2, K, W_MIN, W_MAX))
        b = drain(MinStrobes(example_seq.decode(), 2, K, W_MIN, W_MAX))
        assert a == b

    def test_numpy_parameters(self, example_seq):
        a = drain(MinStrobes(example_seq, np.int64(2), np.int64(K), np.int32(W_MIN), np.int64(W_MAX)))
        assert a == drain(MinStrobes(example_seq, 2, K, W_MIN, W_MAX))

    @pytest.mark.parametrize("cls", [MinStrobes, RandStrobes])
    def test_rounds_go_through_window_selector(self, example_seq, monkeypatch, cls):
        calls = []
        real = iterator_mod.select

        def spy(table, anchor, *args):
            calls.append(anchor)
            return real(table, anchor, *args)

        monkeypatch.setattr(iterator_mod, "select", spy)
        got = drain(cls(example_seq, 3, K, W_MIN, W_MAX))
        # order 3: two rounds per record
        assert len(calls) >= 2 * len(got)
        assert calls[:2] == [0, got[0][0][1]]


class TestOrder3:
    def test_second_window_anchored_at_first_strobe(self, order3_table):
        it = StrobemerIterator.from_table(order3_table, StrobeConfig(order=3, k=1, w_min=2, w_max=3))
        got = drain(it)
        assert [idx for idx, _ in got[:3]] == [(0, 3, 6), (1, 3, 6), (2, 4, 6)]
        last = order3_table.last
        for (i, m2, m3), _ in got:
            assert i + 2 <= m2 <= min(i + 3, last)
            assert m2 + 2 <= m3 <= min(m2 + 3, last)

    def test_fingerprint_uses_all_three_strobes(self, order3_table):
        it = StrobemerIterator.from_table(order3_table, StrobeConfig(order=3, k=1, w_min=2, w_max=3))
        h = next(it)
        assert h == 50 // 3 + 10 // 4 + 5 // 5

    def test_rand_second_round_combines_with_m2(self, reference):
        H = [7, 0xFFFFE, 1, 3, 3, 2]
        table = HashTable.from_hashes(H)
        cfg = StrobeConfig(order=3, k=1, w_min=1, w_max=2, policy="rand")
        got = drain(StrobemerIterator.from_table(table, cfg))
        assert got == reference(H, 3, 1, 2, "rand")
        # anchor 0: (7 + 0xFFFFE) & M = 5 beats 8, so m2 = 1; against H[1],
        # position 3 scores 1 and position 2 scores 0xFFFFF (H[0] would pick 2)
        assert got[0][0] == (0, 1, 3)

    def test_long_sequence(self, long_seq, reference):
        for policy in ("min", "rand"):
            got = drain(StrobemerIterator(long_seq, 3, 9, 4, 12, policy))
            assert got == reference(list(build(long_seq, 9)), 3, 4, 12, policy)


class TestExhaustion:
    def test_end_is_permanent(self, example_seq):
        it = MinStrobes(example_seq, 2, K, W_MIN, W_MAX)
        list(it)
        assert it.exhausted
        for _ in range(3):
            with pytest.raises(StopIteration):
                next(it)
            assert it.next_record() is None

    def test_exhausted_order3_stays_exhausted(self, order3_table):
        it = StrobemerIterator.from_table(order3_table, StrobeConfig(order=3, k=1, w_min=2, w_max=3))
        n = len(list(it))
        assert n > 0
        assert list(it) == []
        assert it.exhausted

    def test_exactly_one_record_at_minimum_length(self):
        seq = b"ACGTAC"  # k + w_min
        got = drain(MinStrobes(seq, 2, 3, 3, 5))
        assert [idx for idx, _ in got] == [(0, 3)]

    def test_degenerate_zero_offsets(self):
        got = drain(MinStrobes(b"ACG", 2, 3, 0, 0))
        assert [idx for idx, _ in got] == [(0, 0)]

    def test_no_shrink_stops_at_first_partial_window(self, example_seq, reference):
        it = MinStrobes(example_seq, 2, K, W_MIN, W_MAX, shrink=False)
        got = drain(it)
        assert len(got) == 9  # i + 5 <= 13
        H = list(build(example_seq, K))
        assert got == reference(H, 2, W_MIN, W_MAX, "min", shrink=False)

    def test_order3_may_end_with_zero_records(self):
        # long enough for order 2, too short for a third strobe
        it = MinStrobes(b"ACGTAC", 3, 3, 3, 5)
        assert list(it) == []
        assert it.exhausted


class TestConstructionErrors:
    def test_shorter_than_k(self):
        with pytest.raises(InvalidInput):
            MinStrobes(b"AC", 2, 3, 1, 2)

    def test_shorter_than_k_plus_w_min(self):
        with pytest.raises(InvalidInput, match="too short"):
            MinStrobes(b"ACGTA", 2, 3, 3, 5)

    @pytest.mark.parametrize(
        "order, k, w_min, w_max",
        [(2, 0, 1, 2), (2, 3, 4, 2), (4, 3, 1, 2), (1, 3, 1, 2)],
    )
    def test_bad_config(self, example_seq, order, k, w_min, w_max):
        with pytest.raises(InvalidInput):
            RandStrobes(example_seq, order, k, w_min, w_max)

    def test_from_table_k_mismatch(self, example_seq):
        table = build(example_seq, 4)
        with pytest.raises(InvalidInput, match="k=4"):
            StrobemerIterator.from_table(table, StrobeConfig(order=2, k=3, w_min=1, w_max=2))

    def test_hasher_failure_surfaces_at_construction(self, example_seq):
        with pytest.raises(HasherFailure):
            MinStrobes.with_hasher(lambda w: -5, example_seq, 2, K, W_MIN, W_MAX)


class TestIndexBuffer:
    def test_buffer_is_overwritten_in_place(self, example_seq):
        it = MinStrobes(example_seq, 2, K, W_MIN, W_MAX)
        assert it.index() is None
        buf = it.indexes
        next(it)
        first = list(buf)
        next(it)
        assert it.indexes is buf
        assert buf != first
        assert it.index() == 1
        assert len(buf) == 2

    def test_records_are_independent(self, example_seq):
        it = RandStrobes(example_seq, 3, K, W_MIN, W_MAX)
        recs = list(it.records())
        assert recs
        assert all(isinstance(r, StrobemerRecord) for r in recs)
        assert [r.indices[0] for r in recs] == list(range(len(recs)))
        for r in recs:
            assert list(r.indices) == sorted(set(r.indices))
            assert all(0 <= p <= len(example_seq) - K for p in r.indices)


class TestHashers:
    @pytest.mark.parametrize(
        "hasher",
        [NtHash64(), NtHash64(canonical=True), fnv1a64, XorHasher(), lambda w: splitmix64(fnv1a64(w))],
        ids=["nthash", "nthash-canonical", "fnv1a64", "xor", "splitmix"],
    )
    @pytest.mark.parametrize("policy", ["min", "rand"])
    def test_selection_only_reads_the_table(self, long_seq, reference, hasher, policy):
        it = StrobemerIterator.with_hasher(hasher, long_seq, 2, 5, 2, 9, policy)
        H = list(build(long_seq, 5, hasher))
        assert drain(it) == reference(H, 2, 2, 9, policy)

    def test_different_hashers_different_fingerprints(self, long_seq):
        a = [h for h in MinStrobes(long_seq, 2, 5, 2, 9)]
        b = [h for h in MinStrobes.with_hasher(fnv1a64, long_seq, 2, 5, 2, 9)]
        assert a != b

    def test_shared_table(self, long_seq):
        table = build(long_seq, 7)
        cfg = StrobeConfig(order=2, k=7, w_min=3, w_max=8, policy="rand")
        before = table.values.copy()
        a = drain(StrobemerIterator.from_table(table, cfg))
        b = drain(StrobemerIterator.from_table(table, cfg))
        assert a == b
        assert (table.values == before).all()


class TestSettings:
    def test_set_prime_rounds(self, example_seq):
        it = RandStrobes(example_seq, 2, K, W_MIN, W_MAX)
        it.set_prime(300)
        assert it.cfg.prime == 511
        it.set_prime(256)
        assert it.cfg.prime == 255

    def test_set_prime_too_small(self, example_seq):
        it = RandStrobes(example_seq, 2, K, W_MIN, W_MAX)
        with pytest.raises(InvalidInput, match="too small"):
            it.set_prime(100)

    def test_set_prime_changes_rand_output(self, long_seq, reference):
        it = RandStrobes(long_seq, 2, 5, 2, 9)
        it.set_prime(1000)
        H = list(build(long_seq, 5))
        assert drain(it) == reference(H, 2, 2, 9, "rand", prime=1023)

    def test_settings_locked_after_first_advance(self, example_seq):
        it = RandStrobes(example_seq, 2, K, W_MIN, W_MAX)
        next(it)
        with pytest.raises(RuntimeError):
            it.set_prime(1024)
        with pytest.raises(RuntimeError):
            it.set_window_shrink(False)

    def test_set_window_shrink(self, example_seq):
        it = MinStrobes(example_seq, 2, K, W_MIN, W_MAX)
        it.set_window_shrink(False)
        assert len(list(it)) == 9

    def test_subclass_policies(self, example_seq):
        assert MinStrobes(example_seq, 2, K, W_MIN, W_MAX).cfg.policy is SelectionPolicy.MIN
        assert RandStrobes(example_seq, 2, K, W_MIN, W_MAX).cfg.policy is SelectionPolicy.RAND


class TestFinalize:
    def test_order2(self):
        assert finalize([6, 9]) == 3 + 3

    def test_order3(self):
        assert finalize([9, 8, 10]) == 3 + 2 + 2

    def test_stays_64_bit(self):
        m = 2**64 - 1
        assert 0 <= finalize([m, m]) < 2**64
        assert 0 <= finalize([m, m, m]) < 2**64

    def test_rejects_other_orders(self):
        with pytest.raises(InvalidInput):
            finalize([1])


class TestLogging:
    def test_uses_given_logger(self, example_seq, caplog):
        logger = logging.getLogger("strobe-test")
        logger.addHandler(logging.NullHandler())
        with caplog.at_level(logging.DEBUG, logger="strobe-test"):
            it = MinStrobes(example_seq, 2, K, W_MIN, W_MAX, logger=logger)
            list(it)
        assert it.log is logger
        assert any("exhausted" in r.getMessage() for r in caplog.records)
