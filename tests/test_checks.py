import pytest

from twhutil.psbt.checks import (
    new_from_signed_tx,
    sum_utxo_input_values,
    tx_outs_equal,
    verify_input_output_len,
    verify_input_prev_outpoints_equal,
    verify_outputs_equal,
)
from twhutil.psbt.errors import PsbtError
from twhutil.psbt.packet import Packet, new, new_from_unsigned_tx
from twhutil.psbt.partial_input import PInput
from twhutil.psbt.partial_output import POutput
from twhutil.wire import MsgTx, OutPoint, TxIn, TxOut


def _hash(*prefix):
    return bytes(prefix) + bytes(32 - len(prefix))


def test_sum_fails_on_length_mismatch():
    bad_packet = new_from_unsigned_tx(MsgTx(version=2))
    bad_packet.inputs.append(PInput())
    with pytest.raises(PsbtError):
        sum_utxo_input_values(bad_packet)


def test_sum_fails_without_utxo_info():
    packet = new([OutPoint(), OutPoint()], None, 2, 0, [0, 0])
    with pytest.raises(PsbtError):
        sum_utxo_input_values(packet)


def test_sum_of_witness_and_non_witness():
    packet = new([OutPoint(), OutPoint()], None, 2, 0, [0, 0])
    packet.inputs[0].witness_utxo = TxOut(value=1234)
    packet.inputs[1].non_witness_utxo = MsgTx(tx_out=[TxOut(value=6543)])
    assert sum_utxo_input_values(packet) == 1234 + 6543


def test_sum_fails_on_malformed_index():
    packet = new([OutPoint(), OutPoint(index=500)], None, 2, 0, [0, 0])
    packet.inputs[0].witness_utxo = TxOut(value=1234)
    packet.inputs[1].non_witness_utxo = MsgTx(tx_out=[TxOut(value=6543)])
    with pytest.raises(PsbtError):
        sum_utxo_input_values(packet)


@pytest.mark.parametrize(
    "out1, out2, expected",
    [
        (None, None, True),
        (None, TxOut(), False),
        (TxOut(), TxOut(), True),
        (TxOut(), TxOut(pk_script=b"foo"), False),
        (TxOut(value=1234, pk_script=b"bar"), TxOut(value=1234, pk_script=b"bar"), True),
    ],
    ids=["both nil", "one nil", "both empty", "one pk script set", "both fully set"],
)
def test_tx_outs_equal(out1, out2, expected):
    assert tx_outs_equal(out1, out2) is expected


@pytest.mark.parametrize(
    "outs1, outs2, expect_err",
    [
        (None, None, False),
        (None, [TxOut()], True),
        ([TxOut()], [TxOut()], False),
        ([TxOut()], [TxOut(pk_script=b"foo")], True),
        (
            [TxOut(value=1234, pk_script=b"bar"), TxOut()],
            [TxOut(value=1234, pk_script=b"bar"), TxOut()],
            False,
        ),
    ],
    ids=["both nil", "one nil", "both empty", "one pk script set", "both fully set"],
)
def test_verify_outputs_equal(outs1, outs2, expect_err):
    if expect_err:
        with pytest.raises(PsbtError):
            verify_outputs_equal(outs1, outs2)
    else:
        assert verify_outputs_equal(outs1, outs2) is None


@pytest.mark.parametrize(
    "ins1, ins2, expect_err",
    [
        (None, None, False),
        (None, [TxIn()], True),
        ([TxIn()], [TxIn()], False),
        ([TxIn()], [TxIn(previous_out_point=OutPoint(_hash(11, 22, 33), 7))], True),
        (
            [TxIn(previous_out_point=OutPoint(_hash(11, 22, 33), 7)), TxIn()],
            [TxIn(previous_out_point=OutPoint(_hash(11, 22, 33), 7)), TxIn()],
            False,
        ),
    ],
    ids=["both nil", "one nil", "both empty", "one previous output set", "both fully set"],
)
def test_verify_input_prev_outpoints_equal(ins1, ins2, expect_err):
    if expect_err:
        with pytest.raises(PsbtError):
            verify_input_prev_outpoints_equal(ins1, ins2)
    else:
        assert verify_input_prev_outpoints_equal(ins1, ins2) is None


@pytest.mark.parametrize(
    "packet, need_inputs, need_outputs, expect_err",
    [
        (None, False, False, True),
        (Packet(), False, False, True),
        (Packet(unsigned_tx=MsgTx()), False, False, False),
        (Packet(unsigned_tx=MsgTx()), False, True, True),
        (Packet(unsigned_tx=MsgTx()), True, False, True),
        (Packet(unsigned_tx=MsgTx(tx_in=[TxIn()])), True, False, True),
        (Packet(unsigned_tx=MsgTx(tx_out=[TxOut()])), False, True, True),
        (
            Packet(
                unsigned_tx=MsgTx(tx_in=[TxIn()], tx_out=[TxOut()]),
                inputs=[PInput()],
                outputs=[POutput()],
            ),
            True,
            True,
            False,
        ),
    ],
    ids=[
        "packet nil",
        "wire tx nil",
        "both empty don't need outputs",
        "both empty but need outputs",
        "both empty but need inputs",
        "input len mismatch",
        "output len mismatch",
        "all fully set",
    ],
)
def test_verify_input_output_len(packet, need_inputs, need_outputs, expect_err):
    if expect_err:
        with pytest.raises(PsbtError):
            verify_input_output_len(packet, need_inputs, need_outputs)
    else:
        assert verify_input_output_len(packet, need_inputs, need_outputs) is None


def test_new_from_signed_tx():
    orig = MsgTx(
        tx_in=[
            TxIn(
                previous_out_point=OutPoint(),
                signature_script=b"script",
                witness=[b"witness"],
                sequence=1234,
            )
        ],
        tx_out=[TxOut(pk_script=bytes([77, 88]), value=99)],
    )

    packet, scripts, witnesses = new_from_signed_tx(orig)

    tx = packet.unsigned_tx
    assert tx.tx_in == [TxIn(previous_out_point=OutPoint(), sequence=1234)]
    assert tx.tx_out == orig.tx_out
    assert scripts == [b"script"]
    assert len(witnesses) == 1
    assert witnesses[0][0] == b"witness"
    assert orig.tx_in[0].signature_script == b"script"