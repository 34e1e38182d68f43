"""Wire format, checksum and helpers for CRC-protected arithmetic requests."""

from __future__ import annotations

import random
import struct
import zlib
from dataclasses import dataclass, replace
from enum import IntEnum

PORT = 8080
SERVER_PORT = PORT + 1
MAX_OP_SIZE = 10

# operation, operand1, operand2, result, error flag, 3 padding bytes, crc
_LAYOUT = struct.Struct("<iiiiB3sI")
MESSAGE_SIZE = _LAYOUT.size
_CHECKED_SIZE = MESSAGE_SIZE - 4


class Operation(IntEnum):
    """Arithmetic operation codes as they travel on the wire."""

    ADD = 0
    SUB = 1
    MUL = 2
    DIV = 3
    INVALID_OP = 4


_SYMBOLS = {
    Operation.ADD: "+",
    Operation.SUB: "-",
    Operation.MUL: "*",
    Operation.DIV: "/",
}
_BY_SYMBOL = {symbol: operation for operation, symbol in _SYMBOLS.items()}


@dataclass(frozen=True)
class BinaryOperation:
    """One request or reply: an operation, its operands, result and checksum.

    ``operation`` is an :class:`Operation` when the code is known, otherwise
    the raw integer received. ``reserved`` holds the padding bytes, which are
    covered by the checksum.
    """

    operation: int
    operand1: int
    operand2: int
    result: int = 0
    error: bool = False
    crc: int = 0
    reserved: bytes = bytes(3)

    def pack(self) -> bytes:
        """Encode the message into its fixed-size wire form."""
        try:
            return _LAYOUT.pack(
                int(self.operation),
                self.operand1,
                self.operand2,
                self.result,
                1 if self.error else 0,
                self.reserved,
                self.crc,
            )
        except struct.error as exc:
            raise ValueError(f"cannot encode {self!r}: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> BinaryOperation:
        """Decode a message from exactly MESSAGE_SIZE bytes."""
        if len(data) != MESSAGE_SIZE:
            raise ValueError(
                f"expected {MESSAGE_SIZE} bytes, got {len(data)}"
            )
        code, operand1, operand2, result, flag, reserved, crc = _LAYOUT.unpack(data)
        try:
            operation: int = Operation(code)
        except ValueError:
            operation = code
        return cls(operation, operand1, operand2, result, flag != 0, crc, reserved)

    def with_crc(self) -> BinaryOperation:
        """Return a copy whose crc field matches its contents."""
        return replace(self, crc=compute_crc(self))


def parse_operation(text: str) -> Operation:
    """Map an operator symbol to its Operation; raise ValueError otherwise."""
    try:
        return _BY_SYMBOL[text]
    except KeyError:
        raise ValueError(f"invalid operation: {text!r}") from None


def compute_crc(op: BinaryOperation) -> int:
    """CRC-32 over every encoded byte of the message except the crc field."""
    return zlib.crc32(op.pack()[:_CHECKED_SIZE]) & 0xFFFFFFFF


def format_operation(op: BinaryOperation, show_crc: bool = False) -> str:
    """Render a message as ``[op, a, b, result]``, optionally with its CRC."""
    symbol = _SYMBOLS.get(op.operation, "?")
    outcome = "Erreur" if op.error else str(op.result)
    text = f"[{symbol}, {op.operand1}, {op.operand2}, {outcome}]"
    if show_crc:
        text += f" (CRC: 0x{op.crc:08X})"
    return text


def introduce_error(
    op: BinaryOperation, probability: int, rng: random.Random | None = None
) -> BinaryOperation:
    """With the given percent probability, invert one to three checked bytes."""
    source = random if rng is None else rng
    if source.randrange(100) >= probability:
        return op
    data = bytearray(op.pack())
    for _ in range(1 + source.randrange(3)):
        data[source.randrange(_CHECKED_SIZE)] ^= 0xFF
    return BinaryOperation.unpack(bytes(data))