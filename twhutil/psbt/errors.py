"""Errors raised while reading, building and finishing partially signed transactions."""

from __future__ import annotations


class PsbtError(ValueError):
    """Base class of every error about a partially signed transaction."""

    default_message = "PSBT error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidPsbtFormatError(PsbtError):
    """The serialization does not conform to the rules of BIP 174."""

    default_message = "Invalid PSBT serialization format"


class DuplicateKeyError(PsbtError):
    """The same key appears twice in one key-value list."""

    default_message = "Invalid Psbt due to duplicate key"


class InvalidKeydataError(PsbtError):
    """A key carries data that is not valid for its type."""

    default_message = "Invalid key data"


class InvalidMagicBytesError(PsbtError):
    """The serialization does not start with the expected magic bytes."""

    default_message = "Invalid Psbt due to incorrect magic bytes"


class InvalidRawTxSignedError(PsbtError):
    """The global transaction carries signature scripts or witnesses."""

    default_message = "Invalid Psbt, raw transaction must be unsigned."


class InvalidPrevOutNonWitnessTransactionError(PsbtError):
    """The non-witness UTXO does not hash to the referenced previous outpoint."""

    default_message = (
        "Prevout hash does not match the provided non-witness utxo serialization"
    )


class InvalidSignatureForInputError(PsbtError):
    """A signature does not correspond to the input's scripts or UTXO."""

    default_message = "Signature does not correspond to this input"


class InputAlreadyFinalizedError(PsbtError):
    """The input already holds a final script signature or witness."""

    default_message = (
        "Cannot finalize PSBT, finalized scriptSig or scriptWitnes already exists"
    )


class IncompletePsbtError(PsbtError):
    """Not every input is finalized, so no transaction can be extracted."""

    default_message = "PSBT cannot be extracted as it is incomplete"


class NotFinalizableError(PsbtError):
    """The input lacks the data, such as signatures, needed to finalize it."""

    default_message = "PSBT is not finalizable"


class InvalidSigHashFlagsError(PsbtError):
    """A signature's sighash flag differs from the one the input requires."""

    default_message = "Invalid Sighash Flags"


class UnsupportedScriptTypeError(PsbtError):
    """The redeem or witness script is of a kind that is not supported."""

    default_message = "Unsupported script type"