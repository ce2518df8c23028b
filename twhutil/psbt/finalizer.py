"""The Finalizer role of BIP 174: turning partial signatures into final scripts.

Legacy P2SH and P2WSH inputs are supported only for multisig scripts.
"""

from __future__ import annotations

from typing import Sequence

from twhutil.psbt.codec import write_pkh_witness, write_tx_witness
from twhutil.psbt.errors import (
    InputAlreadyFinalizedError,
    InvalidPsbtFormatError,
    InvalidSigHashFlagsError,
    NotFinalizableError,
    PsbtError,
    UnsupportedScriptTypeError,
)
from twhutil.psbt.packet import Packet, is_finalized
from twhutil.psbt.partial_input import PInput
from twhutil.psbt.script import (
    OP_FALSE,
    ScriptBuilder,
    ScriptError,
    SigHashType,
    calc_multisig_stats,
    is_multisig_script,
    is_pay_to_script_hash,
    is_pay_to_witness_pub_key_hash,
    is_pay_to_witness_script_hash,
    is_witness_program,
)


def check_sig_hash_flags(sig: bytes, pinput: PInput) -> bool:
    """Return whether the signature's sighash byte is the one the input expects.

    An input without a sighash type expects SIGHASH_ALL.
    """
    if not sig:
        return False
    expected = pinput.sighash_type or SigHashType.ALL
    return int(expected) == sig[-1]


def _is_multisig_for(pub_keys: Sequence[bytes], sigs: Sequence[bytes], script: bytes) -> bool:
    if not is_multisig_script(script):
        return False
    try:
        _, num_sigs = calc_multisig_stats(script)
    except ScriptError:
        return False
    return num_sigs == len(pub_keys) and num_sigs == len(sigs)


def extract_key_order_from_script(
    script: bytes, expected_pubkeys: Sequence[bytes], sigs: Sequence[bytes]
) -> list[bytes]:
    """Order the signatures the way their public keys appear in a multisig script."""
    script = bytes(script)
    if not _is_multisig_for(expected_pubkeys, sigs, script):
        raise UnsupportedScriptTypeError()

    positioned = []
    for pub, sig in zip(expected_pubkeys, sigs):
        position = script.find(bytes(pub))
        if position < 0:
            raise PsbtError("script does not contain pubkeys")
        positioned.append((position, sig))

    positioned.sort(key=lambda entry: entry[0])
    return [sig for _, sig in positioned]


def get_multisig_script_witness(
    witness_script: bytes, pub_keys: Sequence[bytes], sigs: Sequence[bytes]
) -> bytes:
    """Return the serialized witness that spends an M-of-N multisig script.

    The stack is an empty item (for the extra multisig pop), the ordered
    signatures and finally the witness script.
    """
    ordered = extract_key_order_from_script(witness_script, pub_keys, sigs)
    return write_tx_witness([b"", *ordered, bytes(witness_script)])


def _is_finalizable_witness_input(pin: PInput) -> bool:
    pk_script = bytes(pin.witness_utxo.pk_script)

    if is_witness_program(pk_script):
        if is_pay_to_witness_script_hash(pk_script):
            return pin.witness_script is not None and pin.redeem_script is None
        return pin.witness_script is None and pin.redeem_script is None

    if is_pay_to_script_hash(pk_script):
        if pin.redeem_script is None:
            return False
        redeem = bytes(pin.redeem_script)
        if is_pay_to_witness_script_hash(redeem):
            return pin.witness_script is not None
        if is_pay_to_witness_pub_key_hash(redeem):
            return pin.witness_script is None
        return False

    return False


def _is_finalizable_legacy_input(packet: Packet, pin: PInput, in_index: int) -> bool:
    if pin.witness_script is not None:
        return False
    out_index = packet.unsigned_tx.tx_in[in_index].previous_out_point.index
    pk_script = bytes(pin.non_witness_utxo.tx_out[out_index].pk_script)
    if is_pay_to_script_hash(pk_script):
        return pin.redeem_script is not None
    return pin.redeem_script is None


def is_finalizable(packet: Packet, in_index: int) -> bool:
    """Return whether the input holds enough data to be finalized."""
    pin = packet.inputs[in_index]
    if not pin.partial_sigs:
        return False
    if pin.witness_utxo is not None:
        return _is_finalizable_witness_input(pin)
    if pin.non_witness_utxo is not None:
        return _is_finalizable_legacy_input(packet, pin, in_index)
    return False


def _collect_signatures(pin: PInput) -> tuple[list[bytes], list[bytes]]:
    pub_keys: list[bytes] = []
    sigs: list[bytes] = []
    for partial in pin.partial_sigs:
        pub_keys.append(bytes(partial.pub_key))
        if not check_sig_hash_flags(partial.signature, pin):
            raise InvalidSigHashFlagsError()
        sigs.append(bytes(partial.signature))
    if not sigs or not pub_keys:
        raise NotFinalizableError()
    return pub_keys, sigs


def _finalize_non_witness_input(packet: Packet, in_index: int) -> None:
    if is_finalized(packet, in_index):
        raise InputAlreadyFinalizedError()

    pin = packet.inputs[in_index]
    pub_keys, sigs = _collect_signatures(pin)

    if pin.redeem_script is None:
        # Pay-to-pubkey-hash: <sig> <pubkey>.
        if len(sigs) != 1 or len(pub_keys) != 1:
            raise NotFinalizableError()
        sig_script = ScriptBuilder().add_data(sigs[0]).add_data(pub_keys[0]).script()
    else:
        # Assumed P2SH multisig: OP_FALSE <sigs...> <redeemScript>.
        ordered = extract_key_order_from_script(pin.redeem_script, pub_keys, sigs)
        builder = ScriptBuilder().add_op(OP_FALSE)
        for sig in ordered:
            builder.add_data(sig)
        builder.add_data(pin.redeem_script)
        sig_script = builder.script()

    packet.inputs[in_index] = PInput(
        non_witness_utxo=pin.non_witness_utxo, final_script_sig=sig_script
    )


def _finalize_witness_input(packet: Packet, in_index: int) -> None:
    if is_finalized(packet, in_index):
        raise InputAlreadyFinalizedError()

    pin = packet.inputs[in_index]
    pub_keys, sigs = _collect_signatures(pin)
    has_witness_script = pin.witness_script is not None
    sig_script = b""

    if pin.redeem_script is None:
        if len(pub_keys) == 1 and len(sigs) == 1 and not has_witness_script:
            witness = write_pkh_witness(sigs[0], pub_keys[0])
        else:
            if not has_witness_script:
                raise NotFinalizableError()
            witness = get_multisig_script_witness(pin.witness_script, pub_keys, sigs)
    else:
        # Nested in P2SH: the sigScript only pushes the witness program.
        sig_script = ScriptBuilder().add_data(pin.redeem_script).script()
        if not has_witness_script:
            if len(sigs) != 1 or len(pub_keys) != 1:
                raise NotFinalizableError()
            witness = write_pkh_witness(sigs[0], pub_keys[0])
        else:
            witness = get_multisig_script_witness(pin.witness_script, pub_keys, sigs)

    packet.inputs[in_index] = PInput(
        witness_utxo=pin.witness_utxo,
        final_script_sig=sig_script or None,
        final_script_witness=witness,
    )


def finalize(packet: Packet, in_index: int) -> None:
    """Replace the input's signing data by its final scriptSig and witness.

    The UTXO field is kept; every other field of the input is dropped.
    """
    pin = packet.inputs[in_index]
    if pin.witness_utxo is not None:
        _finalize_witness_input(packet, in_index)
    elif pin.non_witness_utxo is not None:
        _finalize_non_witness_input(packet, in_index)
    else:
        raise InvalidPsbtFormatError()
    packet.sanity_check()


def maybe_finalize(packet: Packet, in_index: int) -> bool:
    """Finalize the input unless it already is; return True on success."""
    if is_finalized(packet, in_index):
        return True
    if not is_finalizable(packet, in_index):
        raise NotFinalizableError()
    finalize(packet, in_index)
    return True


def maybe_finalize_all(packet: Packet) -> None:
    """Finalize every input that is not finalized yet."""
    for in_index in range(len(packet.unsigned_tx.tx_in)):
        maybe_finalize(packet, in_index)