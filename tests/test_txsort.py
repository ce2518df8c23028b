import pytest

from twhutil.txsort import (
    in_place_sort,
    input_sort_key,
    is_sorted,
    output_sort_key,
    sort,
)
from twhutil.wire import MsgTx, OutPoint, TxIn, TxOut

# Internal byte order: HIGH_FIRST is larger byte-wise, but smaller once reversed.
HIGH_FIRST = b"\xff" + bytes(31)
LOW_LAST = bytes(31) + b"\x01"


def _in(op_hash, index):
    return TxIn(previous_out_point=OutPoint(op_hash, index))


def _unsorted_tx():
    return MsgTx(
        version=1,
        tx_in=[_in(LOW_LAST, 0), _in(HIGH_FIRST, 5), _in(HIGH_FIRST, 2)],
        tx_out=[
            TxOut(value=300, pk_script=b"\x51"),
            TxOut(value=100, pk_script=b"\x52"),
            TxOut(value=100, pk_script=b"\x51"),
        ],
    )


def test_inputs_compare_reversed_hash():
    assert input_sort_key(_in(HIGH_FIRST, 0)) < input_sort_key(_in(LOW_LAST, 0))
    assert input_sort_key(_in(HIGH_FIRST, 1)) < input_sort_key(_in(HIGH_FIRST, 2))


def test_outputs_compare_value_then_script():
    assert output_sort_key(TxOut(1, b"\xff")) < output_sort_key(TxOut(2, b"\x00"))
    assert output_sort_key(TxOut(1, b"\x00\x01")) < output_sort_key(TxOut(1, b"\x01"))


def test_sort_orders_inputs_and_outputs():
    result = sort(_unsorted_tx())
    assert [(i.previous_out_point.hash, i.previous_out_point.index) for i in result.tx_in] == [
        (HIGH_FIRST, 2),
        (HIGH_FIRST, 5),
        (LOW_LAST, 0),
    ]
    assert [(o.value, o.pk_script) for o in result.tx_out] == [
        (100, b"\x51"),
        (100, b"\x52"),
        (300, b"\x51"),
    ]
    assert is_sorted(result)


def test_sort_does_not_modify_original():
    tx = _unsorted_tx()
    before = tx.tx_hash()
    sorted_tx = sort(tx)
    assert tx.tx_hash() == before
    assert not is_sorted(tx)
    assert sorted_tx.tx_hash() != before


def test_in_place_sort_matches_sort():
    tx = _unsorted_tx()
    expected = sort(tx).tx_hash()
    in_place_sort(tx)
    assert tx.tx_hash() == expected
    assert is_sorted(tx)


def test_sort_is_idempotent():
    once = sort(_unsorted_tx())
    twice = sort(once)
    assert twice == once
    assert twice.tx_hash() == once.tx_hash()


@pytest.mark.parametrize(
    "tx",
    [
        MsgTx(),
        MsgTx(tx_in=[_in(HIGH_FIRST, 1)]),
        MsgTx(tx_out=[TxOut(1, b"\x00")]),
    ],
)
def test_trivial_transactions_are_sorted(tx):
    assert is_sorted(tx)
    assert sort(tx) == tx


def test_only_outputs_unsorted():
    tx = MsgTx(
        tx_in=[_in(HIGH_FIRST, 0), _in(LOW_LAST, 0)],
        tx_out=[TxOut(2, b"\x00"), TxOut(1, b"\x00")],
    )
    assert not is_sorted(tx)
    result = sort(tx)
    assert result.tx_in == tx.tx_in
    assert [o.value for o in result.tx_out] == sorted(o.value for o in tx.tx_out)