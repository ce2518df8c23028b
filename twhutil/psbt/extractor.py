"""The Extractor role of BIP 174: building the network transaction."""

from __future__ import annotations

import io

from twhutil.psbt.errors import IncompletePsbtError
from twhutil.psbt.packet import Packet
from twhutil.psbt.script import MAX_SCRIPT_SIZE
from twhutil.wire import MsgTx, read_var_bytes, read_var_int


def _parse_witness(serialized: bytes) -> list[bytes]:
    stream = io.BytesIO(bytes(serialized))
    count = read_var_int(stream)
    return [read_var_bytes(stream, MAX_SCRIPT_SIZE, "witness") for _ in range(count)]


def extract(packet: Packet) -> MsgTx:
    """Return the fully signed transaction of a complete packet.

    The packet's unsigned transaction is left untouched.
    """
    if not packet.is_complete():
        raise IncompletePsbtError()

    final_tx = packet.unsigned_tx.copy()
    for tx_in, pin in zip(final_tx.tx_in, packet.inputs):
        if pin.final_script_sig is not None:
            tx_in.signature_script = bytes(pin.final_script_sig)
        if pin.final_script_witness is not None:
            tx_in.witness = _parse_witness(pin.final_script_witness)
    return final_tx