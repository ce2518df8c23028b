"""A transaction wrapper that remembers its hashes and block position."""

from __future__ import annotations

import io
from typing import BinaryIO

from twhutil.wire import MsgTx, deserialize_tx

TX_INDEX_UNKNOWN = -1


class Tx:
    """A transaction whose hashes are computed once and then cached.

    ``index`` is the position within a block, or ``TX_INDEX_UNKNOWN``.
    """

    def __init__(self, msg_tx: MsgTx) -> None:
        self.msg_tx = msg_tx
        self.index = TX_INDEX_UNKNOWN
        self._hash: bytes | None = None
        self._witness_hash: bytes | None = None
        self._has_witness: bool | None = None

    def hash(self) -> bytes:
        """Return the transaction id, computing it on first use."""
        if self._hash is None:
            self._hash = self.msg_tx.tx_hash()
        return self._hash

    def witness_hash(self) -> bytes:
        """Return the witness transaction id, computing it on first use."""
        if self._witness_hash is None:
            self._witness_hash = self.msg_tx.witness_hash()
        return self._witness_hash

    def has_witness(self) -> bool:
        """Return whether any input carries witness data, cached on first use."""
        if self._has_witness is None:
            self._has_witness = self.msg_tx.has_witness()
        return self._has_witness


def new_tx_from_reader(reader: BinaryIO) -> Tx:
    """Decode a transaction from a binary stream."""
    return Tx(deserialize_tx(reader))


def new_tx_from_bytes(serialized_tx: bytes) -> Tx:
    """Decode a transaction from its serialized bytes."""
    return new_tx_from_reader(io.BytesIO(serialized_tx))