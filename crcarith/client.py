"""Interactive client that sends CRC-protected arithmetic requests."""

from __future__ import annotations

import socket
import sys
from collections.abc import Iterable, Iterator
from typing import TextIO

from .protocol import (
    MESSAGE_SIZE,
    PORT,
    BinaryOperation,
    format_operation,
    parse_operation,
)

DEFAULT_ADDRESS = ("127.0.0.1", PORT)

_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1


def _tokens(stdin: Iterable[str]) -> Iterator[str]:
    for line in stdin:
        yield from line.split()


def _parse_operand(word: str) -> int:
    value = int(word)
    if not _INT_MIN <= value <= _INT_MAX:
        raise ValueError(f"operand out of range: {word}")
    return value


def _recv_exact(sock: socket.socket, size: int) -> bytes | None:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = sock.recv(size - len(chunks))
        if not chunk:
            return None
        chunks += chunk
    return bytes(chunks)


def read_operations(
    stdin: TextIO | None = None, stdout: TextIO | None = None
) -> Iterator[BinaryOperation]:
    """Prompt for requests and yield each one with its CRC set.

    Stops at the word ``exit`` or at end of input.
    """
    source = sys.stdin if stdin is None else stdin
    out = sys.stdout if stdout is None else stdout
    tokens = _tokens(source)

    def prompt(text: str) -> str | None:
        out.write(text)
        out.flush()
        return next(tokens, None)

    while True:
        word = prompt("Enter operation (+, -, *, /) or 'exit': ")
        if word is None or word == "exit":
            return
        try:
            operation = parse_operation(word)
        except ValueError:
            print("Invalid operation", file=out)
            continue
        first = prompt("Enter first operand: ")
        if first is None:
            return
        second = prompt("Enter second operand: ")
        if second is None:
            return
        try:
            operand1, operand2 = _parse_operand(first), _parse_operand(second)
        except ValueError:
            print("Invalid operand", file=out)
            continue
        yield BinaryOperation(operation, operand1, operand2).with_crc()


def run_tcp_client(
    address: tuple[str, int] = DEFAULT_ADDRESS,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Send requests over one TCP connection and print each reply."""
    out = sys.stdout if stdout is None else stdout
    with socket.create_connection(address) as sock:
        print("TCP Client connected to middle man", file=out)
        for op in read_operations(stdin, out):
            sock.sendall(op.pack())
            data = _recv_exact(sock, MESSAGE_SIZE)
            if data is None:
                print("Connection closed by middle man", file=out)
                return
            reply = BinaryOperation.unpack(data)
            print("Server response: " + format_operation(reply, False), file=out)


def run_udp_client(
    address: tuple[str, int] = DEFAULT_ADDRESS,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Send each request as a datagram and print the reply."""
    out = sys.stdout if stdout is None else stdout
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        for op in read_operations(stdin, out):
            sock.sendto(op.pack(), address)
            data, _ = sock.recvfrom(MESSAGE_SIZE + 1)
            reply = BinaryOperation.unpack(data)
            print("Server response: " + format_operation(reply, False), file=out)


def main(argv: list[str] | None = None) -> int:
    """Command entry point: ``client <tcp|udp>``."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: crcarith-client <tcp|udp>")
        return 1
    runners = {"tcp": run_tcp_client, "udp": run_udp_client}
    runner = runners.get(args[0])
    if runner is None:
        print("Invalid protocol. Use 'tcp' or 'udp'.")
        return 1
    try:
        runner()
    except OSError as exc:
        print(f"{args[0].upper()} client failed: {exc}", file=sys.stderr)
        return 1
    except (ValueError, KeyboardInterrupt) as exc:
        if isinstance(exc, ValueError):
            print(f"Bad reply: {exc}", file=sys.stderr)
            return 1
    return 0