"""Transaction sorting according to BIP 69.

BIP 69 defines a standard lexicographical order of transaction inputs and
outputs, which standardises transactions for faster multi-party agreement and
prevents information leaks in single-party use.

Inputs are ordered by the previous output hash, compared in its displayed
(byte-reversed) form, with the output index as a tie breaker.  Outputs are
ordered by amount, with the raw public key script bytes as a tie breaker.
"""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

from twhutil.wire import MsgTx, TxIn, TxOut

_T = TypeVar("_T")


def input_sort_key(tx_in: TxIn) -> tuple[bytes, int]:
    """Return the BIP 69 ordering key of an input."""
    out_point = tx_in.previous_out_point
    return out_point.hash[::-1], out_point.index


def output_sort_key(tx_out: TxOut) -> tuple[int, bytes]:
    """Return the BIP 69 ordering key of an output."""
    return tx_out.value, bytes(tx_out.pk_script)


def in_place_sort(tx: MsgTx) -> None:
    """Sort the inputs and outputs of ``tx`` in place.

    This changes the transaction hash when the transaction was not already
    sorted, so it must not be applied to published transactions.
    """
    tx.tx_in.sort(key=input_sort_key)
    tx.tx_out.sort(key=output_sort_key)


def sort(tx: MsgTx) -> MsgTx:
    """Return a sorted copy of ``tx``, leaving ``tx`` unchanged."""
    sorted_tx = tx.copy()
    in_place_sort(sorted_tx)
    return sorted_tx


def _in_order(items: Iterable[_T], key: Callable[[_T], tuple]) -> bool:
    keys = [key(item) for item in items]
    return all(a <= b for a, b in zip(keys, keys[1:]))


def is_sorted(tx: MsgTx) -> bool:
    """Return whether the inputs and outputs of ``tx`` follow BIP 69."""
    return _in_order(tx.tx_in, input_sort_key) and _in_order(tx.tx_out, output_sort_key)