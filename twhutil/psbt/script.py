"""The small part of bitcoin script needed to build and classify PSBT scripts."""

from __future__ import annotations

import hashlib
import struct
from enum import IntEnum

from Crypto.Hash import RIPEMD160

OP_0 = 0x00
OP_FALSE = OP_0
OP_DATA_1 = 0x01
OP_DATA_75 = 0x4B
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_TRUE = OP_1
OP_16 = 0x60
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC
OP_CHECKMULTISIG = 0xAE

MAX_SCRIPT_SIZE = 10_000
MAX_SCRIPT_ELEMENT_SIZE = 520


class ScriptError(ValueError):
    """Raised when a script cannot be built or parsed."""


class SigHashType(IntEnum):
    """Signature hash types; ANYONECANPAY is combined with the others."""

    ALL = 0x01
    NONE = 0x02
    SINGLE = 0x03
    ANYONECANPAY = 0x80


def hash160(data: bytes) -> bytes:
    """Return RIPEMD-160 of SHA-256 of ``data``."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def _push_size(data: bytes) -> int:
    size = len(data)
    if size == 0 or (size == 1 and (data[0] <= 16 or data[0] == 0x81)):
        return 1
    if size < OP_PUSHDATA1:
        return 1 + size
    if size <= 0xFF:
        return 2 + size
    if size <= 0xFFFF:
        return 3 + size
    return 5 + size


class ScriptBuilder:
    """Builds a script from opcodes and minimally encoded data pushes."""

    def __init__(self) -> None:
        self._script = bytearray()

    def add_op(self, opcode: int) -> ScriptBuilder:
        """Append one opcode."""
        if len(self._script) + 1 > MAX_SCRIPT_SIZE:
            raise ScriptError(
                f"adding an opcode would exceed the maximum allowed canonical "
                f"script length of {MAX_SCRIPT_SIZE}"
            )
        self._script.append(opcode)
        return self

    def add_data(self, data: bytes) -> ScriptBuilder:
        """Append a push of ``data`` using the shortest canonical encoding."""
        data = bytes(data)
        if len(self._script) + _push_size(data) > MAX_SCRIPT_SIZE:
            raise ScriptError(
                f"adding {len(data)} bytes of data would exceed the maximum "
                f"allowed canonical script length of {MAX_SCRIPT_SIZE}"
            )
        if len(data) > MAX_SCRIPT_ELEMENT_SIZE:
            raise ScriptError(
                f"adding a data element of {len(data)} bytes would exceed the "
                f"maximum allowed script element size of {MAX_SCRIPT_ELEMENT_SIZE}"
            )
        size = len(data)
        if size == 0 or (size == 1 and data[0] == 0):
            self._script.append(OP_0)
        elif size == 1 and data[0] <= 16:
            self._script.append(OP_1 - 1 + data[0])
        elif size == 1 and data[0] == 0x81:
            self._script.append(OP_1NEGATE)
        elif size < OP_PUSHDATA1:
            self._script.append(OP_DATA_1 - 1 + size)
            self._script += data
        elif size <= 0xFF:
            self._script += bytes([OP_PUSHDATA1, size]) + data
        elif size <= 0xFFFF:
            self._script += bytes([OP_PUSHDATA2]) + struct.pack("<H", size) + data
        else:
            self._script += bytes([OP_PUSHDATA4]) + struct.pack("<I", size) + data
        return self

    def script(self) -> bytes:
        """Return the script built so far."""
        return bytes(self._script)


def _parse_script(script: bytes) -> list[tuple[int, bytes]]:
    """Split a script into (opcode, pushed data) pairs."""
    ops: list[tuple[int, bytes]] = []
    pos = 0
    while pos < len(script):
        opcode = script[pos]
        pos += 1
        if OP_DATA_1 <= opcode <= OP_DATA_75:
            size = opcode
        elif opcode == OP_PUSHDATA1:
            width = 1
            size = None
        elif opcode == OP_PUSHDATA2:
            width = 2
            size = None
        elif opcode == OP_PUSHDATA4:
            width = 4
            size = None
        else:
            ops.append((opcode, b""))
            continue
        if size is None:
            if pos + width > len(script):
                raise ScriptError(
                    f"opcode 0x{opcode:02x} requires {width} bytes for its length"
                )
            size = int.from_bytes(script[pos : pos + width], "little")
            pos += width
        if pos + size > len(script):
            raise ScriptError(
                f"opcode 0x{opcode:02x} pushes {size} bytes, but script has "
                f"only {len(script) - pos} remaining"
            )
        ops.append((opcode, bytes(script[pos : pos + size])))
        pos += size
    return ops


def _is_small_int(opcode: int) -> bool:
    return opcode == OP_0 or OP_1 <= opcode <= OP_16


def _as_small_int(opcode: int) -> int:
    return 0 if opcode == OP_0 else opcode - (OP_1 - 1)


def is_witness_program(script: bytes) -> bool:
    """Return whether ``script`` is a version byte followed by a 2 to 40 byte program."""
    if not 4 <= len(script) <= 42:
        return False
    if not _is_small_int(script[0]):
        return False
    program_len = script[1]
    return 2 <= program_len <= 40 and program_len == len(script) - 2


def is_pay_to_script_hash(script: bytes) -> bool:
    """Return whether ``script`` is OP_HASH160 <20 bytes> OP_EQUAL."""
    return (
        len(script) == 23
        and script[0] == OP_HASH160
        and script[1] == 0x14
        and script[22] == OP_EQUAL
    )


def is_pay_to_witness_script_hash(script: bytes) -> bool:
    """Return whether ``script`` is a version 0 witness program of 32 bytes."""
    return len(script) == 34 and script[0] == OP_0 and script[1] == 0x20


def is_pay_to_witness_pub_key_hash(script: bytes) -> bool:
    """Return whether ``script`` is a version 0 witness program of 20 bytes."""
    return len(script) == 22 and script[0] == OP_0 and script[1] == 0x14


def is_multisig_script(script: bytes) -> bool:
    """Return whether ``script`` is a standard bare M-of-N multisig script."""
    try:
        ops = _parse_script(script)
    except ScriptError:
        return False
    if len(ops) < 4:
        return False
    first, count_op, last = ops[0][0], ops[-2][0], ops[-1][0]
    if not _is_small_int(first) or not _is_small_int(count_op):
        return False
    if last != OP_CHECKMULTISIG:
        return False
    if len(ops) - 3 != _as_small_int(count_op):
        return False
    return all(len(data) in (33, 65) for _, data in ops[1:-2])


def calc_multisig_stats(script: bytes) -> tuple[int, int]:
    """Return (number of public keys, number of signatures) of a multisig script."""
    ops = _parse_script(script)
    if len(ops) < 4:
        raise ScriptError(
            f"script {script.hex()} is not a multisig script"
        )
    num_sigs = _as_small_int(ops[0][0])
    num_pub_keys = _as_small_int(ops[-2][0])
    return num_pub_keys, num_sigs