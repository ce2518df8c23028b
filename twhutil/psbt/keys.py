"""Public keys, partial signatures and BIP 32 derivation records of a PSBT."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from twhutil.psbt.errors import InvalidPsbtFormatError

_P = 2**256 - 2**32 - 977
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_B = 7

_PUBKEY_COMPRESSED = 0x02
_PUBKEY_UNCOMPRESSED = 0x04
_PUBKEY_HYBRID = 0x06
_MIN_SIG_LEN = 8


def _on_curve(x: int, y: int) -> bool:
    return (y * y - (x * x * x + _B)) % _P == 0


def validate_pubkey(pub_key: bytes) -> bool:
    """Return whether ``pub_key`` is any valid secp256k1 public key encoding."""
    if not pub_key:
        return False
    fmt = pub_key[0]
    y_odd = bool(fmt & 1)
    fmt &= ~1
    if len(pub_key) == 65:
        if fmt not in (_PUBKEY_UNCOMPRESSED, _PUBKEY_HYBRID):
            return False
        x = int.from_bytes(pub_key[1:33], "big")
        y = int.from_bytes(pub_key[33:], "big")
        if fmt == _PUBKEY_HYBRID and y_odd != bool(y & 1):
            return False
    elif len(pub_key) == 33:
        if fmt != _PUBKEY_COMPRESSED:
            return False
        x = int.from_bytes(pub_key[1:], "big")
        y = pow((x * x * x + _B) % _P, (_P + 1) // 4, _P)
        if y_odd != bool(y & 1):
            y = _P - y
        if y_odd != bool(y & 1):
            return False
    else:
        return False
    if x >= _P or y >= _P:
        return False
    return _on_curve(x, y)


def _canonical_int(value: bytes) -> bool:
    if value[0] & 0x80:
        return False
    if len(value) > 1 and value[0] == 0x00 and not value[1] & 0x80:
        return False
    return True


def validate_signature(sig: bytes) -> bool:
    """Return whether ``sig`` starts with a strict DER ECDSA signature.

    Bytes after the DER structure, such as the sighash flag, are ignored.
    The signature is not checked against any message or key.
    """
    if len(sig) < _MIN_SIG_LEN or sig[0] != 0x30:
        return False
    total = sig[1] + 2
    if total > len(sig) or total < _MIN_SIG_LEN:
        return False
    body = sig[:total]
    index = 2
    if body[index] != 0x02:
        return False
    index += 1
    r_len = body[index]
    index += 1
    if r_len <= 0 or r_len > len(body) - index - 3:
        return False
    r_bytes = body[index : index + r_len]
    if not _canonical_int(r_bytes):
        return False
    index += r_len
    if body[index] != 0x02:
        return False
    index += 1
    s_len = body[index]
    index += 1
    if s_len <= 0 or s_len > len(body) - index:
        return False
    s_bytes = body[index : index + s_len]
    if not _canonical_int(s_bytes):
        return False
    index += s_len
    if index != len(body):
        return False
    r = int.from_bytes(r_bytes, "big")
    s = int.from_bytes(s_bytes, "big")
    return 0 < r < _N and 0 < s < _N


@dataclass
class PartialSig:
    """A public key and the signature it made, both kept as raw bytes."""

    pub_key: bytes
    signature: bytes

    def check_valid(self) -> bool:
        """Return whether both the key and the DER signature are well-formed."""
        return validate_pubkey(self.pub_key) and validate_signature(self.signature)


@dataclass
class Bip32Derivation:
    """The master key fingerprint and BIP 32 path from which a key derives."""

    pub_key: bytes
    master_key_fingerprint: int
    bip32_path: list[int] = field(default_factory=list)

    def check_valid(self) -> bool:
        """Return whether the public key is valid."""
        return validate_pubkey(self.pub_key)


def serialize_bip32_derivation(master_key_fingerprint: int, bip32_path: list[int]) -> bytes:
    """Encode fingerprint and path as consecutive 4-byte little-endian integers."""
    return struct.pack(
        f"<{1 + len(bip32_path)}I", master_key_fingerprint, *bip32_path
    )


def read_bip32_derivation(path: bytes) -> tuple[int, list[int]]:
    """Decode a fingerprint and a non-empty derivation path."""
    if len(path) % 4 != 0 or len(path) // 4 - 1 < 1:
        raise InvalidPsbtFormatError()
    values = [value for (value,) in struct.iter_unpack("<I", path)]
    return values[0], values[1:]