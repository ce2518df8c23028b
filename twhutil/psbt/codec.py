"""Low-level encoding of PSBT key-value pairs, witnesses and outputs."""

from __future__ import annotations

import struct
from typing import BinaryIO, Iterable

from twhutil.psbt.errors import InvalidKeydataError, InvalidPsbtFormatError
from twhutil.wire import (
    MessageError,
    TxOut,
    read_var_bytes,
    read_var_int,
    write_var_bytes,
    write_var_int,
)

# The largest value accepted, big enough for any NonWitnessUtxo transaction.
MAX_PSBT_VALUE_LENGTH = 4_000_000

# The largest key accepted; anything longer is rejected as invalid key data.
MAX_PSBT_KEY_LENGTH = 10_000


def write_tx_witness(witness: Iterable[bytes | None]) -> bytes:
    """Encode a witness stack: item count, then each item length-prefixed."""
    items = [bytes(item or b"") for item in witness]
    return write_var_int(len(items)) + b"".join(write_var_bytes(item) for item in items)


def write_pkh_witness(sig: bytes, pub: bytes) -> bytes:
    """Encode the witness that spends a pay-to-witness-pubkey-hash output."""
    return write_tx_witness([sig, pub])


def serialize_kv_pair(key: bytes, value: bytes) -> bytes:
    """Encode a key and a value, each with a length prefix."""
    return write_var_bytes(key) + write_var_bytes(value)


def serialize_kv_pair_with_type(
    key_type: int, key_data: bytes | None, value: bytes
) -> bytes:
    """Encode a pair whose key is the type byte followed by ``key_data``."""
    key = bytes([key_type]) + bytes(key_data or b"")
    return serialize_kv_pair(key, value)


def get_key(stream: BinaryIO) -> tuple[int, bytes | None] | None:
    """Read one key as (key type, key data).

    Returns None on a separator (a zero-length key), which ends a key-value
    list.  The key data is None when the key holds only its type byte.
    """
    try:
        count = read_var_int(stream)
    except (EOFError, MessageError) as exc:
        raise InvalidPsbtFormatError() from exc
    if count == 0:
        return None
    if count > MAX_PSBT_KEY_LENGTH:
        raise InvalidKeydataError()
    data = stream.read(count)
    if len(data) < count:
        raise EOFError("unexpected EOF" if data else "EOF")
    key_data = bytes(data[1:]) if len(data) > 1 else None
    return data[0], key_data


def read_value(stream: BinaryIO) -> bytes:
    """Read one length-prefixed PSBT value."""
    return read_var_bytes(stream, MAX_PSBT_VALUE_LENGTH, "PSBT value")


def read_tx_out(data: bytes) -> TxOut:
    """Decode a transaction output: 8-byte value, length byte, then script."""
    if len(data) < 10:
        raise InvalidPsbtFormatError()
    value = struct.unpack_from("<q", data)[0]
    return TxOut(value=value, pk_script=bytes(data[9:]))