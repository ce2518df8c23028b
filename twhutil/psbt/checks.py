"""Consistency checks and helpers that work on whole packets."""

from __future__ import annotations

from typing import Sequence

from twhutil.psbt.errors import PsbtError
from twhutil.psbt.packet import Packet, new_from_unsigned_tx
from twhutil.wire import MsgTx, TxIn, TxOut


def sum_utxo_input_values(packet: Packet) -> int:
    """Return the total value of the UTXOs that the packet's inputs spend."""
    if len(packet.unsigned_tx.tx_in) != len(packet.inputs):
        raise PsbtError("TX input length doesn't match PSBT input length")

    total = 0
    for index, (pin, tx_in) in enumerate(zip(packet.inputs, packet.unsigned_tx.tx_in)):
        if pin.witness_utxo is not None:
            total += pin.witness_utxo.value
        elif pin.non_witness_utxo is not None:
            outs = pin.non_witness_utxo.tx_out
            out_index = tx_in.previous_out_point.index
            if out_index >= len(outs):
                raise PsbtError(f"input {index} has malformed TxOut field")
            total += outs[out_index].value
        else:
            raise PsbtError(f"input {index} has no UTXO information")
    return total


def tx_outs_equal(out1: TxOut | None, out2: TxOut | None) -> bool:
    """Return whether two outputs have the same value and script."""
    if out1 is None or out2 is None:
        return out1 is out2
    return out1.value == out2.value and bytes(out1.pk_script) == bytes(out2.pk_script)


def verify_outputs_equal(
    outs1: Sequence[TxOut] | None, outs2: Sequence[TxOut] | None
) -> None:
    """Raise unless both output lists are equal element by element."""
    outs1 = list(outs1 or [])
    outs2 = list(outs2 or [])
    if len(outs1) != len(outs2):
        raise PsbtError("number of outputs are different")
    for index, (a, b) in enumerate(zip(outs1, outs2)):
        if not tx_outs_equal(a, b):
            raise PsbtError(f"output {index} is different")


def verify_input_prev_outpoints_equal(
    ins1: Sequence[TxIn] | None, ins2: Sequence[TxIn] | None
) -> None:
    """Raise unless both input lists spend the same previous outpoints."""
    ins1 = list(ins1 or [])
    ins2 = list(ins2 or [])
    if len(ins1) != len(ins2):
        raise PsbtError("number of inputs are different")
    for index, (a, b) in enumerate(zip(ins1, ins2)):
        if a.previous_out_point != b.previous_out_point:
            raise PsbtError(f"previous outpoint of input {index} is different")


def verify_input_output_len(
    packet: Packet | None, need_inputs: bool, need_outputs: bool
) -> None:
    """Raise unless the wire and partial input and output counts agree."""
    if packet is None or packet.unsigned_tx is None:
        raise PsbtError("PSBT packet cannot be nil")
    tx = packet.unsigned_tx
    if len(tx.tx_in) != len(packet.inputs):
        raise PsbtError("invalid PSBT, wire inputs don't match partial inputs")
    if len(tx.tx_out) != len(packet.outputs):
        raise PsbtError("invalid PSBT, wire outputs don't match partial outputs")
    if need_inputs and not tx.tx_in:
        raise PsbtError("PSBT packet must contain at least one input")
    if need_outputs and not tx.tx_out:
        raise PsbtError("PSBT packet must contain at least one output")


def new_from_signed_tx(tx: MsgTx) -> tuple[Packet, list[bytes], list[list[bytes]]]:
    """Strip the signing data from ``tx`` into a packet.

    Returns the packet, the signature script of each input and the witness
    of each input.
    """
    stripped = tx.copy()
    script_sigs = [tx_in.signature_script for tx_in in tx.tx_in]
    witnesses = [tx_in.witness for tx_in in tx.tx_in]
    for tx_in in stripped.tx_in:
        tx_in.signature_script = b""
        tx_in.witness = []
    return new_from_unsigned_tx(stripped), script_sigs, witnesses