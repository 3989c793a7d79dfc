"""Index arithmetic: pairs, groups, outcome codes."""
import numpy as np
import pytest

from svsim.errors import ValidationError
from svsim.indexing import (
    check_qubits, code_to_bits, deposit_bits, group_offsets, index_pairs, ket, outcome_codes,
)


@pytest.mark.parametrize("n,q", [(1, 0), (3, 0), (3, 1), (3, 2), (5, 4)])
def test_index_pairs_partition(n, q):
    i0, i1 = index_pairs(n, q)
    assert len(i0) == 1 << (n - 1)
    assert np.all((i0 >> q) & 1 == 0)
    np.testing.assert_array_equal(i1, i0 ^ (1 << q))
    both = np.concatenate([i0, i1])
    np.testing.assert_array_equal(np.sort(both), np.arange(1 << n))


@pytest.mark.parametrize("n,q", [(3, 0), (4, 2), (6, 5)])
def test_deposit_matches_pairs(n, q):
    units = np.arange(1 << (n - 1))
    np.testing.assert_array_equal(deposit_bits(units, [q]), index_pairs(n, q)[0])


def test_deposit_with_controls():
    # 4 qubits, target 1, control 3 -> free bits 0 and 2, bit 3 forced to 1
    got = deposit_bits(np.arange(4), [1, 3], 1 << 3)
    np.testing.assert_array_equal(got, [8, 9, 12, 13])


def test_group_offsets_little_endian():
    np.testing.assert_array_equal(group_offsets([2, 0]), [0, 4, 1, 5])


def test_outcome_codes():
    idx = np.arange(8)
    np.testing.assert_array_equal(outcome_codes(idx, [2]), [0, 0, 0, 0, 1, 1, 1, 1])
    np.testing.assert_array_equal(outcome_codes(idx, [1, 0]), [0, 2, 1, 3, 0, 2, 1, 3])


def test_code_to_bits_and_ket():
    assert code_to_bits(5, 3) == (1, 0, 1)
    assert ket(1, 3) == "|001>"


class TestCheckQubits:
    def test_ok(self):
        assert check_qubits([2, np.int64(0)], 3) == (2, 0)

    def test_out_of_range(self):
        with pytest.raises(ValidationError, match="out of range"):
            check_qubits([3], 3)

    def test_negative(self):
        with pytest.raises(ValidationError, match="out of range"):
            check_qubits([-1], 3)

    def test_duplicate(self):
        with pytest.raises(ValidationError, match="duplicate"):
            check_qubits([1, 1], 3)

    @pytest.mark.parametrize("bad", [1.0, "0", True, None])
    def test_not_int(self, bad):
        with pytest.raises(ValidationError, match="must be int"):
            check_qubits([bad], 3)
