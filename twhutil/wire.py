"""Bitcoin wire encoding of transactions, their inputs and their outputs."""

from __future__ import annotations

import hashlib
import io
import struct
from dataclasses import dataclass, field
from typing import BinaryIO

HASH_SIZE = 32
MAX_TX_IN_SEQUENCE_NUM = 0xFFFFFFFF
MAX_PREV_OUT_INDEX = 0xFFFFFFFF
MAX_MESSAGE_PAYLOAD = 32 * 1024 * 1024

_MIN_TX_IN_PAYLOAD = 9 + HASH_SIZE
_MIN_TX_OUT_PAYLOAD = 9
MAX_TX_IN_PER_MESSAGE = MAX_MESSAGE_PAYLOAD // _MIN_TX_IN_PAYLOAD + 1
MAX_TX_OUT_PER_MESSAGE = MAX_MESSAGE_PAYLOAD // _MIN_TX_OUT_PAYLOAD + 1
MAX_WITNESS_ITEMS_PER_INPUT = 500_000
MAX_WITNESS_ITEM_SIZE = 11_000

_WITNESS_MARKER = 0x00
_WITNESS_FLAG = 0x01
_MAX_UINT64 = (1 << 64) - 1


class MessageError(ValueError):
    """Raised when wire data is well-formed bytes but not a valid message."""


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) < size:
        if not data:
            raise EOFError("EOF")
        raise EOFError("unexpected EOF")
    return data


def double_sha256(data: bytes) -> bytes:
    """Return SHA-256 applied twice to ``data``."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash_to_str(digest: bytes) -> str:
    """Return the byte-reversed hex form in which hashes are displayed."""
    return digest[::-1].hex()


def read_var_int(stream: BinaryIO) -> int:
    """Read a canonically encoded variable length integer."""
    discriminant = _read_exact(stream, 1)[0]
    if discriminant == 0xFF:
        value = struct.unpack("<Q", _read_exact(stream, 8))[0]
        minimum = 0x100000000
    elif discriminant == 0xFE:
        value = struct.unpack("<I", _read_exact(stream, 4))[0]
        minimum = 0x10000
    elif discriminant == 0xFD:
        value = struct.unpack("<H", _read_exact(stream, 2))[0]
        minimum = 0xFD
    else:
        return discriminant
    if value < minimum:
        raise MessageError(
            f"non-canonical varint {value:x} - discriminant {discriminant:x} "
            f"must encode a value greater than {minimum:x}"
        )
    return value


def write_var_int(value: int) -> bytes:
    """Encode ``value`` as a variable length integer."""
    if not 0 <= value <= _MAX_UINT64:
        raise ValueError(f"varint out of range: {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def read_var_bytes(stream: BinaryIO, max_allowed: int, field_name: str) -> bytes:
    """Read a length-prefixed byte string no longer than ``max_allowed``."""
    count = read_var_int(stream)
    if count > max_allowed:
        raise MessageError(
            f"{field_name} is larger than the max allowed size "
            f"[count {count}, max {max_allowed}]"
        )
    return _read_exact(stream, count)


def write_var_bytes(data: bytes) -> bytes:
    """Encode ``data`` with its variable length integer prefix."""
    return write_var_int(len(data)) + bytes(data)


@dataclass(frozen=True)
class OutPoint:
    """A reference to one output of a previous transaction."""

    hash: bytes = bytes(HASH_SIZE)
    index: int = 0

    def __post_init__(self) -> None:
        if len(self.hash) != HASH_SIZE:
            raise ValueError(
                f"outpoint hash must be {HASH_SIZE} bytes, got {len(self.hash)}"
            )

    def __str__(self) -> str:
        return f"{hash_to_str(self.hash)}:{self.index}"


@dataclass
class TxIn:
    """A transaction input."""

    previous_out_point: OutPoint = field(default_factory=OutPoint)
    signature_script: bytes = b""
    witness: list[bytes] = field(default_factory=list)
    sequence: int = MAX_TX_IN_SEQUENCE_NUM

    def _encode(self) -> bytes:
        op = self.previous_out_point
        return (
            op.hash
            + struct.pack("<I", op.index)
            + write_var_bytes(self.signature_script)
            + struct.pack("<I", self.sequence)
        )

    def copy(self) -> TxIn:
        return TxIn(
            previous_out_point=self.previous_out_point,
            signature_script=bytes(self.signature_script),
            witness=[bytes(item) for item in self.witness],
            sequence=self.sequence,
        )


@dataclass
class TxOut:
    """A transaction output."""

    value: int = 0
    pk_script: bytes = b""

    def copy(self) -> TxOut:
        return TxOut(value=self.value, pk_script=bytes(self.pk_script))


def write_tx_out(tx_out: TxOut) -> bytes:
    """Encode a transaction output: value then length-prefixed script."""
    return struct.pack("<q", tx_out.value) + write_var_bytes(tx_out.pk_script)


@dataclass
class MsgTx:
    """A bitcoin transaction as sent over the wire."""

    version: int = 1
    tx_in: list[TxIn] = field(default_factory=list)
    tx_out: list[TxOut] = field(default_factory=list)
    lock_time: int = 0

    def add_tx_in(self, tx_in: TxIn) -> None:
        self.tx_in.append(tx_in)

    def add_tx_out(self, tx_out: TxOut) -> None:
        self.tx_out.append(tx_out)

    def copy(self) -> MsgTx:
        """Return a deep copy that shares no mutable state with this one."""
        return MsgTx(
            version=self.version,
            tx_in=[tx_in.copy() for tx_in in self.tx_in],
            tx_out=[tx_out.copy() for tx_out in self.tx_out],
            lock_time=self.lock_time,
        )

    def has_witness(self) -> bool:
        return any(tx_in.witness for tx_in in self.tx_in)

    def _encode(self, with_witness: bool) -> bytes:
        do_witness = with_witness and self.has_witness()
        parts = [struct.pack("<i", self.version)]
        if do_witness:
            parts.append(bytes([_WITNESS_MARKER, _WITNESS_FLAG]))
        parts.append(write_var_int(len(self.tx_in)))
        parts.extend(tx_in._encode() for tx_in in self.tx_in)
        parts.append(write_var_int(len(self.tx_out)))
        parts.extend(write_tx_out(tx_out) for tx_out in self.tx_out)
        if do_witness:
            for tx_in in self.tx_in:
                parts.append(write_var_int(len(tx_in.witness)))
                parts.extend(write_var_bytes(item) for item in tx_in.witness)
        parts.append(struct.pack("<I", self.lock_time))
        return b"".join(parts)

    def serialize(self) -> bytes:
        """Encode the transaction, with witness data when it has any."""
        return self._encode(with_witness=True)

    def serialize_no_witness(self) -> bytes:
        """Encode the transaction without witness data."""
        return self._encode(with_witness=False)

    def serialize_size(self) -> int:
        return len(self.serialize())

    def tx_hash(self) -> bytes:
        """Return the transaction id, which excludes witness data."""
        return double_sha256(self.serialize_no_witness())

    def witness_hash(self) -> bytes:
        """Return the witness transaction id (equal to the id without witness)."""
        if self.has_witness():
            return double_sha256(self.serialize())
        return self.tx_hash()


def _read_tx_in(stream: BinaryIO) -> TxIn:
    op_hash = _read_exact(stream, HASH_SIZE)
    op_index = struct.unpack("<I", _read_exact(stream, 4))[0]
    script = read_var_bytes(
        stream, MAX_MESSAGE_PAYLOAD, "transaction input signature script"
    )
    sequence = struct.unpack("<I", _read_exact(stream, 4))[0]
    return TxIn(
        previous_out_point=OutPoint(op_hash, op_index),
        signature_script=script,
        sequence=sequence,
    )


def _read_tx_out(stream: BinaryIO) -> TxOut:
    value = struct.unpack("<q", _read_exact(stream, 8))[0]
    script = read_var_bytes(
        stream, MAX_MESSAGE_PAYLOAD, "transaction output public key script"
    )
    return TxOut(value=value, pk_script=script)


def _read_witness(stream: BinaryIO) -> list[bytes]:
    count = read_var_int(stream)
    if count > MAX_WITNESS_ITEMS_PER_INPUT:
        raise MessageError(
            f"too many witness items to fit into max message size "
            f"[count {count}, max {MAX_WITNESS_ITEMS_PER_INPUT}]"
        )
    return [
        read_var_bytes(stream, MAX_WITNESS_ITEM_SIZE, "script witness item")
        for _ in range(count)
    ]


def _decode(stream: BinaryIO, allow_witness: bool) -> MsgTx:
    version = struct.unpack("<i", _read_exact(stream, 4))[0]
    count = read_var_int(stream)

    flag = 0
    if count == 0 and allow_witness:
        flag = _read_exact(stream, 1)[0]
        if flag != _WITNESS_FLAG:
            raise MessageError(f"witness tx but flag byte is {flag:x}")
        count = read_var_int(stream)

    if count > MAX_TX_IN_PER_MESSAGE:
        raise MessageError(
            f"too many input transactions to fit into max message size "
            f"[count {count}, max {MAX_TX_IN_PER_MESSAGE}]"
        )
    tx_ins = [_read_tx_in(stream) for _ in range(count)]

    count = read_var_int(stream)
    if count > MAX_TX_OUT_PER_MESSAGE:
        raise MessageError(
            f"too many output transactions to fit into max message size "
            f"[count {count}, max {MAX_TX_OUT_PER_MESSAGE}]"
        )
    tx_outs = [_read_tx_out(stream) for _ in range(count)]

    if flag:
        for tx_in in tx_ins:
            tx_in.witness = _read_witness(stream)

    lock_time = struct.unpack("<I", _read_exact(stream, 4))[0]
    return MsgTx(version=version, tx_in=tx_ins, tx_out=tx_outs, lock_time=lock_time)


def _as_stream(stream: BinaryIO | bytes) -> BinaryIO:
    if isinstance(stream, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(stream))
    return stream


def deserialize_tx(stream: BinaryIO | bytes) -> MsgTx:
    """Decode a transaction that may carry witness data."""
    return _decode(_as_stream(stream), allow_witness=True)


def deserialize_tx_no_witness(stream: BinaryIO | bytes) -> MsgTx:
    """Decode a transaction in the encoding without witness data."""
    return _decode(_as_stream(stream), allow_witness=False)