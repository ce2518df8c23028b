import io
import struct

import pytest

from twhutil.psbt.codec import serialize_kv_pair, serialize_kv_pair_with_type
from twhutil.psbt.errors import (
    DuplicateKeyError,
    InvalidKeydataError,
    InvalidPsbtFormatError,
)
from twhutil.psbt.keys import Bip32Derivation, PartialSig
from twhutil.psbt.partial_input import PInput
from twhutil.psbt.types import InputType
from twhutil.wire import MsgTx, OutPoint, TxIn, TxOut

PUB_G = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)
PUB_2G = bytes.fromhex(
    "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
)


def _der_sig(fill: int, sighash: int = 0x01) -> bytes:
    part = bytes([fill]) * 32
    return (
        bytes([0x30, 0x44, 0x02, 0x20])
        + part
        + bytes([0x02, 0x20])
        + part
        + bytes([sighash])
    )


def _decode(data: bytes) -> PInput:
    return PInput.deserialize(io.BytesIO(data + b"\x00"))


def _prev_tx() -> MsgTx:
    return MsgTx(
        version=2,
        tx_in=[TxIn(previous_out_point=OutPoint(bytes(range(32)), 3))],
        tx_out=[TxOut(value=5000, pk_script=b"\x51\x52")],
    )


def test_full_input_round_trip_sorts_signatures():
    sig_2g = PartialSig(PUB_2G, _der_sig(0x02))
    sig_g = PartialSig(PUB_G, _der_sig(0x01))
    pin = PInput(
        non_witness_utxo=_prev_tx(),
        partial_sigs=[sig_2g, sig_g],
        sighash_type=1,
        redeem_script=b"\x51",
        witness_script=b"\x52\x53",
        bip32_derivation=[Bip32Derivation(PUB_G, 7, [1, 2, 3])],
        unknowns=[(b"\xfc\x01\x02", b"data")],
    )
    decoded = _decode(pin.serialize())
    assert decoded.non_witness_utxo == pin.non_witness_utxo
    assert decoded.partial_sigs == [sig_g, sig_2g]
    assert decoded.sighash_type == 1
    assert decoded.redeem_script == b"\x51"
    assert decoded.witness_script == b"\x52\x53"
    assert decoded.bip32_derivation == pin.bip32_derivation
    assert decoded.unknowns == pin.unknowns
    assert decoded.final_script_sig is None


def test_serialize_is_independent_of_signature_order():
    sigs = [PartialSig(PUB_2G, _der_sig(0x02)), PartialSig(PUB_G, _der_sig(0x01))]
    forward = PInput(partial_sigs=list(sigs)).serialize()
    backward = PInput(partial_sigs=list(reversed(sigs))).serialize()
    assert forward == backward


def test_witness_utxo_round_trip():
    pin = PInput(witness_utxo=TxOut(value=99, pk_script=b"\x00\x14" + bytes(20)))
    assert _decode(pin.serialize()) == pin


def test_final_fields_hide_partial_data():
    pin = PInput(
        witness_utxo=TxOut(value=1, pk_script=b"\x51" * 3),
        partial_sigs=[PartialSig(PUB_G, _der_sig(0x01))],
        redeem_script=b"\x51",
        final_script_sig=b"\x01\x02",
        final_script_witness=b"\x00",
    )
    decoded = _decode(pin.serialize())
    assert decoded.partial_sigs == []
    assert decoded.redeem_script is None
    assert decoded.final_script_sig == b"\x01\x02"
    assert decoded.final_script_witness == b"\x00"


def test_sighash_encoded_little_endian():
    data = PInput(sighash_type=0x81).serialize()
    assert data == serialize_kv_pair_with_type(
        InputType.SIGHASH_TYPE, None, struct.pack("<I", 0x81)
    )


def test_empty_input_serializes_to_nothing_and_is_sane():
    pin = PInput()
    assert pin.serialize() == b""
    assert pin.is_sane() is True


def test_empty_redeem_script_is_kept():
    decoded = _decode(PInput(redeem_script=b"").serialize())
    assert decoded.redeem_script == b""


def test_duplicate_redeem_script():
    pair = serialize_kv_pair_with_type(InputType.REDEEM_SCRIPT, None, b"\x51")
    with pytest.raises(DuplicateKeyError):
        _decode(pair + pair)


def test_redeem_script_with_key_data():
    pair = serialize_kv_pair_with_type(InputType.REDEEM_SCRIPT, b"x", b"\x51")
    with pytest.raises(InvalidKeydataError):
        _decode(pair)


def test_sighash_wrong_length():
    pair = serialize_kv_pair_with_type(InputType.SIGHASH_TYPE, None, b"\x01\x00")
    with pytest.raises(InvalidKeydataError):
        _decode(pair)


def test_invalid_partial_sig():
    pair = serialize_kv_pair_with_type(InputType.PARTIAL_SIG, PUB_G, b"\x30\x01")
    with pytest.raises(InvalidPsbtFormatError):
        _decode(pair)


def test_duplicate_partial_sig():
    pair = serialize_kv_pair_with_type(InputType.PARTIAL_SIG, PUB_G, _der_sig(0x01))
    with pytest.raises(DuplicateKeyError):
        _decode(pair + pair)


def test_bip32_invalid_pubkey():
    pair = serialize_kv_pair_with_type(
        InputType.BIP32_DERIVATION, b"\x02" + bytes(3), struct.pack("<II", 1, 2)
    )
    with pytest.raises(InvalidPsbtFormatError):
        _decode(pair)


def test_duplicate_unknown_same_value():
    pair = serialize_kv_pair(b"\xfc\x01", b"v")
    with pytest.raises(DuplicateKeyError):
        _decode(pair + pair)


def test_unknown_same_key_different_value_allowed():
    data = serialize_kv_pair(b"\xfc\x01", b"a") + serialize_kv_pair(b"\xfc\x01", b"b")
    assert _decode(data).unknowns == [(b"\xfc\x01", b"a"), (b"\xfc\x01", b"b")]


def test_missing_separator():
    pair = serialize_kv_pair_with_type(InputType.REDEEM_SCRIPT, None, b"\x51")
    with pytest.raises(InvalidPsbtFormatError):
        PInput.deserialize(io.BytesIO(pair))