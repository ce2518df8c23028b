import hashlib

import pytest

from twhutil.psbt.errors import InvalidPsbtFormatError, InvalidSignatureForInputError
from twhutil.psbt.keys import PartialSig
from twhutil.psbt.packet import new
from twhutil.psbt.script import OP_0, OP_EQUAL, OP_HASH160, ScriptBuilder, hash160
from twhutil.psbt.signer import SignOutcome, non_witness_to_witness, sign
from twhutil.psbt.updater import Updater
from twhutil.wire import MsgTx, OutPoint, TxIn, TxOut

PUB_G = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)
PUB_2G = bytes.fromhex(
    "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
)
SIG = bytes.fromhex("300602010102010101")


def p2wpkh(pub):
    return ScriptBuilder().add_op(OP_0).add_data(hash160(pub)).script()


def p2sh(script):
    return (
        ScriptBuilder().add_op(OP_HASH160).add_data(hash160(script)).add_op(OP_EQUAL).script()
    )


def p2wsh(script):
    return ScriptBuilder().add_op(OP_0).add_data(hashlib.sha256(script).digest()).script()


def prev_tx(pk_script):
    return MsgTx(
        version=2,
        tx_in=[TxIn(previous_out_point=OutPoint(bytes([3]) * 32, 1))],
        tx_out=[TxOut(value=70000, pk_script=pk_script)],
    )


def updater_for(tx):
    packet = new(
        [OutPoint(tx.tx_hash(), 0)], [TxOut(value=1, pk_script=b"\x51")], 2, 0, [0]
    )
    updater = Updater(packet)
    updater.add_in_non_witness_utxo(tx, 0)
    return updater


def test_finalized_input_is_left_alone():
    updater = updater_for(prev_tx(p2wpkh(PUB_G)))
    updater.packet.inputs[0].final_script_sig = b"\x00"
    assert sign(updater, 0, SIG, PUB_G, None, None) is SignOutcome.FINALIZED
    assert updater.packet.inputs[0].partial_sigs == []


def test_native_witness_output_converted():
    tx = prev_tx(p2wpkh(PUB_G))
    updater = updater_for(tx)
    assert sign(updater, 0, SIG, PUB_G, None, None) is SignOutcome.SUCCESSFUL
    pin = updater.packet.inputs[0]
    assert pin.witness_utxo == tx.tx_out[0]
    assert pin.non_witness_utxo is tx
    assert pin.partial_sigs == [PartialSig(PUB_G, SIG)]


def test_legacy_output_stays_non_witness():
    legacy = ScriptBuilder().add_data(PUB_G).add_op(0xAC).script()
    updater = updater_for(prev_tx(legacy))
    assert sign(updater, 0, SIG, PUB_G, None, None) is SignOutcome.SUCCESSFUL
    assert updater.packet.inputs[0].witness_utxo is None
    assert len(updater.packet.inputs[0].partial_sigs) == 1


def test_witness_script_given():
    witness_script = ScriptBuilder().add_data(PUB_2G).add_op(0xAC).script()
    tx = prev_tx(p2wsh(witness_script))
    updater = updater_for(tx)
    outcome = sign(updater, 0, SIG, PUB_2G, None, witness_script)
    assert outcome is SignOutcome.SUCCESSFUL
    pin = updater.packet.inputs[0]
    assert pin.witness_script == witness_script
    assert pin.witness_utxo == tx.tx_out[0]


def test_nested_p2wpkh_redeem_script():
    redeem = p2wpkh(PUB_G)
    tx = prev_tx(p2sh(redeem))
    updater = updater_for(tx)
    assert sign(updater, 0, SIG, PUB_G, redeem, None) is SignOutcome.SUCCESSFUL
    pin = updater.packet.inputs[0]
    assert pin.redeem_script == redeem
    assert pin.witness_utxo == tx.tx_out[0]
    assert [s.pub_key for s in pin.partial_sigs] == [PUB_G]


def test_wrong_key_raises():
    updater = updater_for(prev_tx(p2wpkh(PUB_G)))
    with pytest.raises(InvalidSignatureForInputError):
        sign(updater, 0, SIG, PUB_2G, None, None)


def test_invalid_signature_raises():
    updater = updater_for(prev_tx(p2wpkh(PUB_G)))
    with pytest.raises(InvalidPsbtFormatError):
        sign(updater, 0, b"\x30\x00", PUB_G, None, None)


def test_non_witness_to_witness():
    tx = prev_tx(p2wpkh(PUB_2G))
    updater = updater_for(tx)
    non_witness_to_witness(updater.packet, 0)
    pin = updater.packet.inputs[0]
    assert pin.witness_utxo == TxOut(value=70000, pk_script=p2wpkh(PUB_2G))
    assert pin.non_witness_utxo is tx