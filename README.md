# twhutil

A library for working with bitcoin transactions:

- `twhutil.wire`: the transaction structures `MsgTx`, `TxIn`, `TxOut` and
  `OutPoint`, with encoding (`MsgTx.serialize`, `MsgTx.serialize_no_witness`),
  decoding (`deserialize_tx`, `deserialize_tx_no_witness`), variable length
  integer helpers and double-SHA256 hashing (`MsgTx.tx_hash`,
  `MsgTx.witness_hash`, `hash_to_str`).
- `twhutil.tx`: `Tx`, a wrapper around a `MsgTx` that computes its hash,
  witness hash and witness flag once and caches them. Its `index` attribute
  holds the transaction's position in a block, `TX_INDEX_UNKNOWN` (-1) until
  it is set.
- `twhutil.txsort`: BIP 69 ordering of inputs and outputs.
- `twhutil.psbt`: BIP 174 partially signed transactions: creating, parsing,
  updating, signing, finalizing, extracting and serializing.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Transactions

```python
from twhutil.tx import new_tx_from_bytes
from twhutil.wire import hash_to_str

tx = new_tx_from_bytes(raw_bytes)
print(hash_to_str(tx.hash()))   # txid in its displayed (byte-reversed) form
print(tx.has_witness())
```

Truncated data raises `EOFError`; data that is not a valid transaction
raises `twhutil.wire.MessageError`.

## BIP 69 sorting

Inputs are ordered by previous output hash, compared in its displayed
(byte-reversed) form, then by output index. Outputs are ordered by amount,
then by their public key script bytes.

```python
from twhutil import txsort

if not txsort.is_sorted(msg_tx):
    sorted_tx = txsort.sort(msg_tx)   # a sorted copy; msg_tx is unchanged
    txsort.in_place_sort(msg_tx)      # or sort the transaction itself
```

Sorting changes the transaction hash, so only sort transactions that are
still being built.

## Partially signed transactions

```python
from twhutil.psbt.packet import new_from_raw_bytes
from twhutil.psbt.updater import Updater
from twhutil.psbt.signer import sign
from twhutil.psbt.finalizer import maybe_finalize_all
from twhutil.psbt.extractor import extract

packet = new_from_raw_bytes(encoded, b64=True)

updater = Updater(packet)
updater.add_in_witness_utxo(prev_out, 0)
sign(updater, 0, signature, pub_key, None, None)

maybe_finalize_all(packet)
if packet.is_complete():
    final_tx = extract(packet)

print(packet.b64_encode())
```

- `twhutil.psbt.packet`: `Packet`, `new(inputs, outputs, version, lock_time,
  sequences)`, `new_from_unsigned_tx(tx)` and `new_from_raw_bytes(data, b64)`;
  `Packet.serialize()` and `Packet.b64_encode()` write the packet back out.
- `twhutil.psbt.updater`: `Updater` adds UTXOs, scripts, sighash types, BIP 32
  derivations and partial signatures, checking that a signature's key and
  scripts match the input it is added to.
- `twhutil.psbt.signer`: `sign` stores any scripts passed with a signature,
  moves the spent output into the witness UTXO field where the input is a
  witness input, and returns a `SignOutcome`.
- `twhutil.psbt.finalizer`: `finalize`, `maybe_finalize` and
  `maybe_finalize_all` build the final scriptSig and witness for
  pay-to-pubkey-hash, pay-to-witness-pubkey-hash (native or nested in P2SH)
  and multisig P2SH / P2WSH inputs.
- `twhutil.psbt.extractor`: `extract` returns the signed `MsgTx` of a
  complete packet.
- `twhutil.psbt.checks`: `sum_utxo_input_values`, `tx_outs_equal`,
  `verify_outputs_equal`, `verify_input_prev_outpoints_equal`,
  `verify_input_output_len` and `new_from_signed_tx`.
- `twhutil.psbt.sort`: `in_place_sort` applies BIP 69 to a packet, keeping its
  per-input and per-output sections aligned with the transaction.

Errors about the packet itself are subclasses of
`twhutil.psbt.errors.PsbtError`, such as `InvalidPsbtFormatError`,
`DuplicateKeyError` or `NotFinalizableError`. Truncated data may also raise
`EOFError`, and a malformed embedded transaction `twhutil.wire.MessageError`.

## What it does not do

The package holds no private keys and makes no signatures: signatures and
public keys are supplied by the caller. Signatures are checked only for a
well-formed DER encoding and the expected sighash flag, never verified
against a message or key. Finalizing supports only the script kinds listed
above. There is no command-line tool and no network access.