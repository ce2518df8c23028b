"""The per-input section of a PSBT."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import BinaryIO

from twhutil.psbt.codec import (
    get_key,
    read_tx_out,
    read_value,
    serialize_kv_pair,
    serialize_kv_pair_with_type,
)
from twhutil.psbt.errors import (
    DuplicateKeyError,
    InvalidKeydataError,
    InvalidPsbtFormatError,
)
from twhutil.psbt.keys import (
    Bip32Derivation,
    PartialSig,
    read_bip32_derivation,
    serialize_bip32_derivation,
    validate_pubkey,
)
from twhutil.psbt.types import InputType
from twhutil.wire import MsgTx, TxOut, deserialize_tx, write_tx_out


def _no_key_data(key_data: bytes | None) -> None:
    if key_data is not None:
        raise InvalidKeydataError()


@dataclass
class PInput:
    """Everything that can be attached to one input of a PSBT.

    Normally only one of ``non_witness_utxo`` and ``witness_utxo`` is set.
    ``unknowns`` holds (full key, value) pairs of unrecognised key types.
    """

    non_witness_utxo: MsgTx | None = None
    witness_utxo: TxOut | None = None
    partial_sigs: list[PartialSig] = field(default_factory=list)
    sighash_type: int = 0
    redeem_script: bytes | None = None
    witness_script: bytes | None = None
    bip32_derivation: list[Bip32Derivation] = field(default_factory=list)
    final_script_sig: bytes | None = None
    final_script_witness: bytes | None = None
    unknowns: list[tuple[bytes, bytes]] = field(default_factory=list)

    def is_sane(self) -> bool:
        """Return whether no fields conflict; segwit v0 needs no checks."""
        return True

    @classmethod
    def deserialize(cls, stream: BinaryIO) -> PInput:
        """Read an input section up to and including its separator."""
        pin = cls()
        while (key := get_key(stream)) is not None:
            key_type, key_data = key
            value = read_value(stream)

            match key_type:
                case InputType.NON_WITNESS_UTXO:
                    if pin.non_witness_utxo is not None:
                        raise DuplicateKeyError()
                    _no_key_data(key_data)
                    pin.non_witness_utxo = deserialize_tx(value)

                case InputType.WITNESS_UTXO:
                    if pin.witness_utxo is not None:
                        raise DuplicateKeyError()
                    _no_key_data(key_data)
                    pin.witness_utxo = read_tx_out(value)

                case InputType.PARTIAL_SIG:
                    sig = PartialSig(pub_key=key_data or b"", signature=value)
                    if not sig.check_valid():
                        raise InvalidPsbtFormatError()
                    if any(x.pub_key == sig.pub_key for x in pin.partial_sigs):
                        raise DuplicateKeyError()
                    pin.partial_sigs.append(sig)

                case InputType.SIGHASH_TYPE:
                    if pin.sighash_type != 0:
                        raise DuplicateKeyError()
                    _no_key_data(key_data)
                    if len(value) != 4:
                        raise InvalidKeydataError()
                    pin.sighash_type = struct.unpack("<I", value)[0]

                case InputType.REDEEM_SCRIPT:
                    if pin.redeem_script is not None:
                        raise DuplicateKeyError()
                    _no_key_data(key_data)
                    pin.redeem_script = value

                case InputType.WITNESS_SCRIPT:
                    if pin.witness_script is not None:
                        raise DuplicateKeyError()
                    _no_key_data(key_data)
                    pin.witness_script = value

                case InputType.BIP32_DERIVATION:
                    if not validate_pubkey(key_data or b""):
                        raise InvalidPsbtFormatError()
                    master, path = read_bip32_derivation(value)
                    if any(x.pub_key == key_data for x in pin.bip32_derivation):
                        raise DuplicateKeyError()
                    pin.bip32_derivation.append(
                        Bip32Derivation(
                            pub_key=key_data,
                            master_key_fingerprint=master,
                            bip32_path=path,
                        )
                    )

                case InputType.FINAL_SCRIPT_SIG:
                    if pin.final_script_sig is not None:
                        raise DuplicateKeyError()
                    _no_key_data(key_data)
                    pin.final_script_sig = value

                case InputType.FINAL_SCRIPT_WITNESS:
                    if pin.final_script_witness is not None:
                        raise DuplicateKeyError()
                    _no_key_data(key_data)
                    pin.final_script_witness = value

                case _:
                    full_key = bytes([key_type]) + (key_data or b"")
                    if (full_key, value) in pin.unknowns:
                        raise DuplicateKeyError()
                    pin.unknowns.append((full_key, value))

        return pin

    def serialize(self) -> bytes:
        """Encode the input section, without its trailing separator."""
        if not self.is_sane():
            raise InvalidPsbtFormatError()

        parts: list[bytes] = []
        if self.non_witness_utxo is not None:
            parts.append(
                serialize_kv_pair_with_type(
                    InputType.NON_WITNESS_UTXO, None, self.non_witness_utxo.serialize()
                )
            )
        if self.witness_utxo is not None:
            parts.append(
                serialize_kv_pair_with_type(
                    InputType.WITNESS_UTXO, None, write_tx_out(self.witness_utxo)
                )
            )

        if self.final_script_sig is None and self.final_script_witness is None:
            for sig in sorted(self.partial_sigs, key=lambda s: bytes(s.pub_key)):
                parts.append(
                    serialize_kv_pair_with_type(
                        InputType.PARTIAL_SIG, sig.pub_key, sig.signature
                    )
                )
            if self.sighash_type != 0:
                parts.append(
                    serialize_kv_pair_with_type(
                        InputType.SIGHASH_TYPE,
                        None,
                        struct.pack("<I", self.sighash_type),
                    )
                )
            if self.redeem_script is not None:
                parts.append(
                    serialize_kv_pair_with_type(
                        InputType.REDEEM_SCRIPT, None, self.redeem_script
                    )
                )
            if self.witness_script is not None:
                parts.append(
                    serialize_kv_pair_with_type(
                        InputType.WITNESS_SCRIPT, None, self.witness_script
                    )
                )
            for deriv in sorted(self.bip32_derivation, key=lambda d: bytes(d.pub_key)):
                parts.append(
                    serialize_kv_pair_with_type(
                        InputType.BIP32_DERIVATION,
                        deriv.pub_key,
                        serialize_bip32_derivation(
                            deriv.master_key_fingerprint, deriv.bip32_path
                        ),
                    )
                )

        if self.final_script_sig is not None:
            parts.append(
                serialize_kv_pair_with_type(
                    InputType.FINAL_SCRIPT_SIG, None, self.final_script_sig
                )
            )
        if self.final_script_witness is not None:
            parts.append(
                serialize_kv_pair_with_type(
                    InputType.FINAL_SCRIPT_WITNESS, None, self.final_script_witness
                )
            )

        parts.extend(serialize_kv_pair(key, value) for key, value in self.unknowns)
        return b"".join(parts)