"""The Signer role of BIP 174: inserting signatures into a packet."""

from __future__ import annotations

from enum import IntEnum

from twhutil.psbt.packet import Packet, is_finalized
from twhutil.psbt.script import is_witness_program
from twhutil.psbt.updater import Updater


class SignOutcome(IntEnum):
    """The outcome of a call to :func:`sign`."""

    SUCCESSFUL = 0
    FINALIZED = 1
    INVALID = -1


def non_witness_to_witness(packet: Packet, in_index: int) -> None:
    """Copy the spent output from the non-witness UTXO into the witness UTXO.

    The non-witness UTXO is kept, since segwit v0 signing must not rely on
    the witness UTXO alone.
    """
    out_index = packet.unsigned_tx.tx_in[in_index].previous_out_point.index
    tx_out = packet.inputs[in_index].non_witness_utxo.tx_out[out_index]
    Updater(packet).add_in_witness_utxo(tx_out, in_index)


def sign(
    updater: Updater,
    in_index: int,
    sig: bytes,
    pub_key: bytes,
    redeem_script: bytes | None,
    witness_script: bytes | None,
) -> SignOutcome:
    """Attach a signature to an input, storing any scripts given with it.

    Returns ``SignOutcome.FINALIZED`` without attaching anything when the
    input is already finalized.  Invalid data raises the updater's errors.
    """
    packet = updater.packet
    if is_finalized(packet, in_index):
        return SignOutcome.FINALIZED

    if witness_script is not None:
        updater.add_in_witness_script(witness_script, in_index)
    if redeem_script is not None:
        updater.add_in_redeem_script(redeem_script, in_index)

    pin = packet.inputs[in_index]
    if pin.witness_script is not None:
        if pin.witness_utxo is None:
            non_witness_to_witness(packet, in_index)
    elif pin.redeem_script is not None:
        # Only the redeem script passed in decides whether this is witness.
        if is_witness_program(redeem_script or b"") and pin.witness_utxo is None:
            non_witness_to_witness(packet, in_index)
    elif pin.witness_utxo is None and pin.non_witness_utxo is not None:
        out_index = packet.unsigned_tx.tx_in[in_index].previous_out_point.index
        script = pin.non_witness_utxo.tx_out[out_index].pk_script
        if is_witness_program(script):
            non_witness_to_witness(packet, in_index)

    updater.add_partial_signature(in_index, sig, pub_key)
    return SignOutcome.SUCCESSFUL