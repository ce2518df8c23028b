"""BIP 69 ordering of a packet's inputs and outputs, keeping sections aligned."""

from __future__ import annotations

from twhutil.psbt.checks import verify_input_output_len
from twhutil.psbt.packet import Packet
from twhutil.txsort import input_sort_key, output_sort_key


def in_place_sort(packet: Packet | None) -> None:
    """Sort the packet's wire inputs and outputs by BIP 69, in place.

    The partial input and output sections are moved together with the wire
    inputs and outputs they belong to.  Sorting changes the transaction
    hash, so it must only be applied by whoever is creating the transaction.
    """
    verify_input_output_len(packet, False, False)
    tx = packet.unsigned_tx

    inputs = sorted(
        zip(tx.tx_in, packet.inputs), key=lambda pair: input_sort_key(pair[0])
    )
    tx.tx_in[:] = [tx_in for tx_in, _ in inputs]
    packet.inputs[:] = [pin for _, pin in inputs]

    outputs = sorted(
        zip(tx.tx_out, packet.outputs), key=lambda pair: output_sort_key(pair[0])
    )
    tx.tx_out[:] = [tx_out for tx_out, _ in outputs]
    packet.outputs[:] = [pout for _, pout in outputs]