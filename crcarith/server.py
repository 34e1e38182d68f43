"""Arithmetic server that checks each request's CRC before computing it."""

from __future__ import annotations

import socket
import socketserver
import sys
from dataclasses import replace

from .protocol import (
    MESSAGE_SIZE,
    SERVER_PORT,
    BinaryOperation,
    Operation,
    compute_crc,
    format_operation,
)

MSG_INVALID = "Invalid operation"
MSG_CORRUPTED = "Error detected"
MSG_DONE = "Operation completed"


class VerificationError(Exception):
    """A request could not be answered with a result."""


class CorruptionDetected(VerificationError):
    """The request's CRC does not match its contents."""


class InvalidOperation(VerificationError):
    """The request is intact but cannot be computed."""


def _wrap32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def _truncating_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def verify_operation(op: BinaryOperation) -> BinaryOperation:
    """Check the CRC and compute the result.

    Returns the reply with the result filled in, the crc field cleared and the
    error flag unset. Raises CorruptionDetected or InvalidOperation.
    """
    cleared = replace(op, crc=0, error=False)
    if compute_crc(cleared) != op.crc:
        raise CorruptionDetected(f"CRC mismatch (received 0x{op.crc:08X})")

    a, b = op.operand1, op.operand2
    if op.operation == Operation.ADD:
        result = a + b
    elif op.operation == Operation.SUB:
        result = a - b
    elif op.operation == Operation.MUL:
        result = a * b
    elif op.operation == Operation.DIV:
        if b == 0:
            raise InvalidOperation("division by zero")
        result = _truncating_div(a, b)
    else:
        raise InvalidOperation(f"unknown operation code {int(op.operation)}")
    return replace(cleared, result=_wrap32(result))


def process_request(op: BinaryOperation) -> tuple[BinaryOperation, str]:
    """Build the reply for a request and a short status message."""
    try:
        return verify_operation(op), MSG_DONE
    except InvalidOperation:
        return replace(op, crc=0, error=True), MSG_INVALID
    except CorruptionDetected:
        return replace(op, crc=0, error=True), MSG_CORRUPTED


def _handle(data: bytes) -> bytes:
    op = BinaryOperation.unpack(data)
    print("Received operation: " + format_operation(op, True), flush=True)
    reply, message = process_request(op)
    print(message, flush=True)
    return reply.pack()


def _recv_exact(sock: socket.socket, size: int) -> bytes | None:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = sock.recv(size - len(chunks))
        if not chunk:
            return None
        chunks += chunk
    return bytes(chunks)


class _TCPHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        while (data := _recv_exact(self.request, MESSAGE_SIZE)) is not None:
            self.request.sendall(_handle(data))


class _TCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


def run_tcp_server(host: str = "0.0.0.0", port: int = SERVER_PORT) -> None:
    """Serve requests over TCP, one thread per connection, forever."""
    with _TCPServer((host, port), _TCPHandler) as server:
        print(f"TCP Server running on port {port}", flush=True)
        server.serve_forever()


def run_udp_server(host: str = "0.0.0.0", port: int = SERVER_PORT) -> None:
    """Serve one request per datagram, forever."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind((host, port))
        print(f"UDP Server running on port {port}", flush=True)
        while True:
            data, address = sock.recvfrom(MESSAGE_SIZE + 1)
            if len(data) != MESSAGE_SIZE:
                print("Failed to receive operation", file=sys.stderr, flush=True)
                continue
            sock.sendto(_handle(data), address)


def main(argv: list[str] | None = None) -> int:
    """Command entry point: ``server <tcp|udp>``."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: crcarith-server <tcp|udp>")
        return 1
    runners = {"tcp": run_tcp_server, "udp": run_udp_server}
    runner = runners.get(args[0])
    if runner is None:
        print("Invalid protocol. Use 'tcp' or 'udp'.")
        return 1
    try:
        runner()
    except OSError as exc:
        print(f"{args[0].upper()} server failed: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0