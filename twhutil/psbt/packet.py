"""The PSBT packet: creation, parsing, serialization and basic sanity checks."""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable

from twhutil.psbt.codec import get_key, read_value, serialize_kv_pair_with_type
from twhutil.psbt.errors import (
    InvalidMagicBytesError,
    InvalidPsbtFormatError,
    InvalidRawTxSignedError,
    PsbtError,
)
from twhutil.psbt.partial_input import PInput
from twhutil.psbt.partial_output import POutput
from twhutil.psbt.types import GlobalType
from twhutil.wire import (
    MessageError,
    MsgTx,
    OutPoint,
    TxIn,
    TxOut,
    deserialize_tx,
    deserialize_tx_no_witness,
)

PSBT_MAGIC = b"psbt\xff"

# The lowest transaction version that is permitted.
MIN_TX_VERSION = 1

_SEPARATOR = b"\x00"


@dataclass
class Unknown:
    """A global key-value pair whose key type is not recognised."""

    key: bytes
    value: bytes


@dataclass
class Packet:
    """An unsigned transaction with one section per input and per output."""

    unsigned_tx: MsgTx | None = None
    inputs: list[PInput] = field(default_factory=list)
    outputs: list[POutput] = field(default_factory=list)
    unknowns: list[Unknown] = field(default_factory=list)

    def serialize(self) -> bytes:
        """Encode the packet in the binary format of BIP 174."""
        parts = [
            PSBT_MAGIC,
            serialize_kv_pair_with_type(
                GlobalType.UNSIGNED_TX, None, self.unsigned_tx.serialize()
            ),
            _SEPARATOR,
        ]
        for pin in self.inputs:
            parts.append(pin.serialize())
            parts.append(_SEPARATOR)
        for pout in self.outputs:
            parts.append(pout.serialize())
            parts.append(_SEPARATOR)
        return b"".join(parts)

    def b64_encode(self) -> str:
        """Return the base64 form of the serialized packet."""
        return base64.b64encode(self.serialize()).decode("ascii")

    def is_complete(self) -> bool:
        """Return whether every input is finalized, so extraction is possible."""
        return all(
            is_finalized(self, index) for index in range(len(self.unsigned_tx.tx_in))
        )

    def sanity_check(self) -> None:
        """Raise unless the packet obeys the rules of BIP 174."""
        if not validate_unsigned_tx(self.unsigned_tx):
            raise InvalidRawTxSignedError()
        if not all(pin.is_sane() for pin in self.inputs):
            raise InvalidPsbtFormatError()


def validate_unsigned_tx(tx: MsgTx) -> bool:
    """Return whether no input of ``tx`` carries a signature script or witness."""
    return all(not tx_in.signature_script and not tx_in.witness for tx_in in tx.tx_in)


def is_finalized(packet: Packet, in_index: int) -> bool:
    """Return whether the input holds a final script signature or witness."""
    pin = packet.inputs[in_index]
    return pin.final_script_sig is not None or pin.final_script_witness is not None


def new(
    inputs: Iterable[OutPoint],
    outputs: Iterable[TxOut] | None,
    version: int,
    lock_time: int,
    sequences: Iterable[int],
) -> Packet:
    """Create a packet around a fresh unsigned transaction (the Creator role)."""
    inputs = list(inputs or [])
    sequences = list(sequences or [])
    if version < MIN_TX_VERSION or len(sequences) != len(inputs):
        raise InvalidPsbtFormatError()

    tx = MsgTx(version=version, lock_time=lock_time)
    for out_point, sequence in zip(inputs, sequences):
        tx.add_tx_in(TxIn(previous_out_point=out_point, sequence=sequence))
    for tx_out in outputs or []:
        tx.add_tx_out(tx_out)

    return Packet(
        unsigned_tx=tx,
        inputs=[PInput() for _ in tx.tx_in],
        outputs=[POutput() for _ in tx.tx_out],
    )


def new_from_unsigned_tx(tx: MsgTx) -> Packet:
    """Create a packet with empty sections for an unsigned transaction."""
    if not validate_unsigned_tx(tx):
        raise InvalidRawTxSignedError()
    return Packet(
        unsigned_tx=tx,
        inputs=[PInput() for _ in tx.tx_in],
        outputs=[POutput() for _ in tx.tx_out],
    )


def _open(data: BinaryIO | bytes | str, b64: bool) -> BinaryIO:
    if b64:
        raw = data if isinstance(data, (bytes, bytearray, memoryview, str)) else data.read()
        if isinstance(raw, str):
            raw = raw.encode("ascii")
        raw = bytes(raw).replace(b"\r", b"").replace(b"\n", b"")
        return io.BytesIO(base64.b64decode(raw, validate=True))
    if isinstance(data, str):
        raise TypeError("binary PSBT data must be bytes or a binary stream")
    if isinstance(data, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(data))
    return data


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) < size:
        raise EOFError("unexpected EOF" if data else "EOF")
    return data


def _decode_unsigned_tx(value: bytes) -> MsgTx:
    try:
        return deserialize_tx(value)
    except (EOFError, MessageError) as first:
        # A transaction without inputs looks like the witness encoding, so
        # try the encoding without witness data before giving up.
        try:
            return deserialize_tx_no_witness(value)
        except (EOFError, MessageError):
            raise first from None


def new_from_raw_bytes(data: BinaryIO | bytes | str, b64: bool) -> Packet:
    """Parse a serialized packet, base64 encoded when ``b64`` is true."""
    stream = _open(data, b64)

    if _read_exact(stream, len(PSBT_MAGIC)) != PSBT_MAGIC:
        raise InvalidMagicBytesError()

    key = get_key(stream)
    if key is None or key[0] != GlobalType.UNSIGNED_TX or key[1] is not None:
        raise InvalidPsbtFormatError()

    tx = _decode_unsigned_tx(read_value(stream))
    if not validate_unsigned_tx(tx):
        raise InvalidRawTxSignedError()

    unknowns: list[Unknown] = []
    while True:
        try:
            key = get_key(stream)
        except (PsbtError, EOFError) as exc:
            raise InvalidPsbtFormatError() from exc
        if key is None:
            break
        key_type, key_data = key
        value = read_value(stream)
        unknowns.append(Unknown(key=bytes([key_type]) + (key_data or b""), value=value))

    inputs = [PInput.deserialize(stream) for _ in tx.tx_in]
    outputs = [POutput.deserialize(stream) for _ in tx.tx_out]

    packet = Packet(unsigned_tx=tx, inputs=inputs, outputs=outputs, unknowns=unknowns)
    packet.sanity_check()
    return packet