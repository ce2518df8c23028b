"""The Updater role of BIP 174: adding data to the inputs and outputs of a packet."""

from __future__ import annotations

import hashlib
from typing import Sequence

from twhutil.psbt.errors import (
    DuplicateKeyError,
    InvalidPrevOutNonWitnessTransactionError,
    InvalidPsbtFormatError,
    InvalidSignatureForInputError,
    PsbtError,
)
from twhutil.psbt.keys import Bip32Derivation, PartialSig
from twhutil.psbt.packet import Packet
from twhutil.psbt.script import (
    OP_0,
    OP_EQUAL,
    OP_HASH160,
    ScriptBuilder,
    hash160,
)
from twhutil.wire import MsgTx, TxOut


def _p2sh_script(redeem_script: bytes) -> bytes:
    return (
        ScriptBuilder()
        .add_op(OP_HASH160)
        .add_data(hash160(redeem_script))
        .add_op(OP_EQUAL)
        .script()
    )


def _witness_v0_script(program: bytes) -> bytes:
    return ScriptBuilder().add_op(OP_0).add_data(program).script()


class Updater:
    """Adds fields to the input and output sections of a sane packet."""

    def __init__(self, packet: Packet) -> None:
        packet.sanity_check()
        self.packet = packet

    def _check_as_format_error(self) -> None:
        try:
            self.packet.sanity_check()
        except PsbtError as exc:
            raise InvalidPsbtFormatError() from exc

    def add_in_non_witness_utxo(self, tx: MsgTx, in_index: int) -> None:
        """Attach the full previous transaction of a non-witness input."""
        if not 0 <= in_index < len(self.packet.inputs):
            raise InvalidPrevOutNonWitnessTransactionError()
        self.packet.inputs[in_index].non_witness_utxo = tx
        self._check_as_format_error()

    def add_in_witness_utxo(self, tx_out: TxOut, in_index: int) -> None:
        """Attach the previous output spent by a witness input."""
        if not 0 <= in_index < len(self.packet.inputs):
            raise InvalidPsbtFormatError()
        self.packet.inputs[in_index].witness_utxo = tx_out
        self._check_as_format_error()

    def add_partial_signature(self, in_index: int, sig: bytes, pub_key: bytes) -> None:
        """Attach a signature after checking it suits the input's scripts.

        The ECDSA signature itself is not verified.
        """
        partial_sig = PartialSig(pub_key=bytes(pub_key), signature=bytes(sig))
        if not partial_sig.check_valid():
            raise InvalidPsbtFormatError()

        packet = self.packet
        pin = packet.inputs[in_index]

        if any(bytes(x.pub_key) == partial_sig.pub_key for x in pin.partial_sigs):
            raise DuplicateKeyError()

        if pin.witness_utxo is None and pin.non_witness_utxo is None:
            raise InvalidPsbtFormatError()

        if pin.non_witness_utxo is not None:
            tx_ins = packet.unsigned_tx.tx_in
            if len(tx_ins) < in_index + 1:
                raise InvalidPrevOutNonWitnessTransactionError()
            out_point = tx_ins[in_index].previous_out_point
            if pin.non_witness_utxo.tx_hash() != out_point.hash:
                raise InvalidSignatureForInputError()
            if pin.redeem_script is not None:
                script_pub_key = pin.non_witness_utxo.tx_out[out_point.index].pk_script
                if _p2sh_script(pin.redeem_script) != bytes(script_pub_key):
                    raise InvalidSignatureForInputError()

        # Both UTXO fields may be set by wallets that guard against fee
        # attacks on segwit inputs, so the witness checks always run too.
        if pin.witness_utxo is not None:
            script_pub_key = bytes(pin.witness_utxo.pk_script)
            if pin.redeem_script is not None:
                if _p2sh_script(pin.redeem_script) != script_pub_key:
                    raise InvalidSignatureForInputError()
                script = bytes(pin.redeem_script)
            else:
                script = script_pub_key

            if pin.witness_script is not None:
                expected = _witness_v0_script(
                    hashlib.sha256(pin.witness_script).digest()
                )
            else:
                expected = _witness_v0_script(hash160(partial_sig.pub_key))
            if expected != script:
                raise InvalidSignatureForInputError()

        pin.partial_sigs.append(partial_sig)
        packet.sanity_check()

    def add_in_sighash_type(self, sighash_type: int, in_index: int) -> None:
        """Set the sighash type that signatures of the input must use."""
        self.packet.inputs[in_index].sighash_type = int(sighash_type)
        self.packet.sanity_check()

    def add_in_redeem_script(self, redeem_script: bytes, in_index: int) -> None:
        """Set the redeem script of an input."""
        self.packet.inputs[in_index].redeem_script = bytes(redeem_script)
        self._check_as_format_error()

    def add_in_witness_script(self, witness_script: bytes, in_index: int) -> None:
        """Set the witness script of an input."""
        self.packet.inputs[in_index].witness_script = bytes(witness_script)
        self.packet.sanity_check()

    @staticmethod
    def _new_derivation(
        derivations: list[Bip32Derivation],
        master_key_fingerprint: int,
        bip32_path: Sequence[int],
        pub_key_data: bytes,
    ) -> None:
        derivation = Bip32Derivation(
            pub_key=bytes(pub_key_data),
            master_key_fingerprint=master_key_fingerprint,
            bip32_path=list(bip32_path),
        )
        if not derivation.check_valid():
            raise InvalidPsbtFormatError()
        if any(bytes(x.pub_key) == derivation.pub_key for x in derivations):
            raise DuplicateKeyError()
        derivations.append(derivation)

    def add_in_bip32_derivation(
        self,
        master_key_fingerprint: int,
        bip32_path: Sequence[int],
        pub_key_data: bytes,
        in_index: int,
    ) -> None:
        """Record the BIP 32 derivation of a key that signs an input."""
        self._new_derivation(
            self.packet.inputs[in_index].bip32_derivation,
            master_key_fingerprint,
            bip32_path,
            pub_key_data,
        )
        self.packet.sanity_check()

    def add_out_bip32_derivation(
        self,
        master_key_fingerprint: int,
        bip32_path: Sequence[int],
        pub_key_data: bytes,
        out_index: int,
    ) -> None:
        """Record the BIP 32 derivation of a key needed to spend an output."""
        self._new_derivation(
            self.packet.outputs[out_index].bip32_derivation,
            master_key_fingerprint,
            bip32_path,
            pub_key_data,
        )
        self.packet.sanity_check()

    def add_out_redeem_script(self, redeem_script: bytes, out_index: int) -> None:
        """Set the redeem script of an output."""
        self.packet.outputs[out_index].redeem_script = bytes(redeem_script)
        self._check_as_format_error()

    def add_out_witness_script(self, witness_script: bytes, out_index: int) -> None:
        """Set the witness script of an output."""
        self.packet.outputs[out_index].witness_script = bytes(witness_script)
        self.packet.sanity_check()