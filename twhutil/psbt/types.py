"""Key types of the global, input and output sections of a PSBT."""

from __future__ import annotations

from enum import IntEnum


class GlobalType(IntEnum):
    """Key types known in the global section."""

    UNSIGNED_TX = 0x00
    XPUB = 0x01
    VERSION = 0xFB
    PROPRIETARY = 0xFC


class InputType(IntEnum):
    """Key types known in each input section."""

    NON_WITNESS_UTXO = 0x00
    WITNESS_UTXO = 0x01
    PARTIAL_SIG = 0x02
    SIGHASH_TYPE = 0x03
    REDEEM_SCRIPT = 0x04
    WITNESS_SCRIPT = 0x05
    BIP32_DERIVATION = 0x06
    FINAL_SCRIPT_SIG = 0x07
    FINAL_SCRIPT_WITNESS = 0x08
    PROPRIETARY = 0xFC


class OutputType(IntEnum):
    """Key types known in each output section."""

    REDEEM_SCRIPT = 0x00
    WITNESS_SCRIPT = 0x01
    BIP32_DERIVATION = 0x02