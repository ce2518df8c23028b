"""The per-output section of a PSBT."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO

from twhutil.psbt.codec import get_key, read_value, serialize_kv_pair_with_type
from twhutil.psbt.errors import (
    DuplicateKeyError,
    InvalidKeydataError,
    InvalidPsbtFormatError,
)
from twhutil.psbt.keys import (
    Bip32Derivation,
    read_bip32_derivation,
    serialize_bip32_derivation,
    validate_pubkey,
)
from twhutil.psbt.types import OutputType


@dataclass
class POutput:
    """Everything that can be attached to one output of a PSBT."""

    redeem_script: bytes | None = None
    witness_script: bytes | None = None
    bip32_derivation: list[Bip32Derivation] = field(default_factory=list)

    @classmethod
    def deserialize(cls, stream: BinaryIO) -> POutput:
        """Read an output section up to and including its separator."""
        pout = cls()
        while (key := get_key(stream)) is not None:
            key_type, key_data = key
            value = read_value(stream)

            match key_type:
                case OutputType.REDEEM_SCRIPT:
                    if pout.redeem_script is not None:
                        raise DuplicateKeyError()
                    if key_data is not None:
                        raise InvalidKeydataError()
                    pout.redeem_script = value

                case OutputType.WITNESS_SCRIPT:
                    if pout.witness_script is not None:
                        raise DuplicateKeyError()
                    if key_data is not None:
                        raise InvalidKeydataError()
                    pout.witness_script = value

                case OutputType.BIP32_DERIVATION:
                    if not validate_pubkey(key_data or b""):
                        raise InvalidKeydataError()
                    master, path = read_bip32_derivation(value)
                    if any(x.pub_key == key_data for x in pout.bip32_derivation):
                        raise DuplicateKeyError()
                    pout.bip32_derivation.append(
                        Bip32Derivation(
                            pub_key=key_data,
                            master_key_fingerprint=master,
                            bip32_path=path,
                        )
                    )

                case _:
                    # Unknown types are allowed for inputs but not outputs.
                    raise InvalidPsbtFormatError()

        return pout

    def serialize(self) -> bytes:
        """Encode the output section, without its trailing separator."""
        parts: list[bytes] = []
        if self.redeem_script is not None:
            parts.append(
                serialize_kv_pair_with_type(
                    OutputType.REDEEM_SCRIPT, None, self.redeem_script
                )
            )
        if self.witness_script is not None:
            parts.append(
                serialize_kv_pair_with_type(
                    OutputType.WITNESS_SCRIPT, None, self.witness_script
                )
            )
        for deriv in sorted(self.bip32_derivation, key=lambda d: bytes(d.pub_key)):
            parts.append(
                serialize_kv_pair_with_type(
                    OutputType.BIP32_DERIVATION,
                    deriv.pub_key,
                    serialize_bip32_derivation(
                        deriv.master_key_fingerprint, deriv.bip32_path
                    ),
                )
            )
        return b"".join(parts)