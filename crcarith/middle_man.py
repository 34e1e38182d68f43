"""Relay between clients and the server that may corrupt requests on the way."""

from __future__ import annotations

import random
import re
import socket
import sys

from .protocol import (
    MESSAGE_SIZE,
    PORT,
    SERVER_PORT,
    BinaryOperation,
    format_operation,
    introduce_error,
)

DEFAULT_SERVER_ADDRESS = ("127.0.0.1", SERVER_PORT)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _recv_exact(sock: socket.socket, size: int) -> bytes | None:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = sock.recv(size - len(chunks))
        if not chunk:
            return None
        chunks += chunk
    return bytes(chunks)


def _leading_int(text: str) -> int:
    """Read a leading integer the way a lenient C parser does; 0 if none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def relay_tcp(
    op: BinaryOperation,
    server_address: tuple[str, int] = DEFAULT_SERVER_ADDRESS,
    probability: int = 0,
    rng: random.Random | None = None,
) -> BinaryOperation:
    """Possibly corrupt a request, send it to the server and return its reply.

    Raises OSError when the server cannot be reached or closes the connection
    without replying.
    """
    outgoing = introduce_error(op, probability, rng)
    with socket.create_connection(server_address) as upstream:
        upstream.sendall(outgoing.pack())
        data = _recv_exact(upstream, MESSAGE_SIZE)
    if data is None:
        raise ConnectionError("server closed the connection without replying")
    return BinaryOperation.unpack(data)


def _serve_tcp_client(
    conn: socket.socket,
    error_probability: int,
    server_address: tuple[str, int],
    rng: random.Random | None,
) -> None:
    while (data := _recv_exact(conn, MESSAGE_SIZE)) is not None:
        op = BinaryOperation.unpack(data)
        print("Received from client: " + format_operation(op, True), flush=True)
        try:
            reply = relay_tcp(op, server_address, error_probability, rng)
        except OSError as exc:
            print(f"Failed to connect to server: {exc}", file=sys.stderr, flush=True)
            continue
        conn.sendall(reply.pack())


def run_tcp_middle_man(
    error_probability: int = 0,
    host: str = "0.0.0.0",
    port: int = PORT,
    server_address: tuple[str, int] = DEFAULT_SERVER_ADDRESS,
    rng: random.Random | None = None,
) -> None:
    """Accept clients one at a time and relay each request over TCP, forever."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((host, port))
        listener.listen(5)
        print(
            f"TCP Middle Man running on port {port} "
            f"(error probability: {error_probability}%)",
            flush=True,
        )
        while True:
            try:
                conn, _ = listener.accept()
            except OSError as exc:
                print(f"TCP accept failed: {exc}", file=sys.stderr, flush=True)
                continue
            print("TCP Client connected", flush=True)
            with conn:
                try:
                    _serve_tcp_client(conn, error_probability, server_address, rng)
                except OSError as exc:
                    print(f"TCP client lost: {exc}", file=sys.stderr, flush=True)


def run_udp_middle_man(
    error_probability: int = 0,
    host: str = "0.0.0.0",
    port: int = PORT,
    server_address: tuple[str, int] = DEFAULT_SERVER_ADDRESS,
    rng: random.Random | None = None,
) -> None:
    """Relay one request per datagram to the server and back, forever."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind((host, port))
        print(
            f"UDP Middle Man running on port {port} "
            f"(error probability: {error_probability}%)",
            flush=True,
        )
        while True:
            data, client_address = sock.recvfrom(MESSAGE_SIZE + 1)
            if len(data) != MESSAGE_SIZE:
                print("Failed to receive from client", file=sys.stderr, flush=True)
                continue
            op = BinaryOperation.unpack(data)
            print("Received from client: " + format_operation(op, True), flush=True)
            outgoing = introduce_error(op, error_probability, rng)
            sock.sendto(outgoing.pack(), server_address)
            reply, _ = sock.recvfrom(MESSAGE_SIZE + 1)
            sock.sendto(reply, client_address)


def main(argv: list[str] | None = None) -> int:
    """Command entry point: ``middle_man <tcp|udp> <error_probability>``."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print("Usage: crcarith-middle-man <tcp|udp> <error_probability>")
        return 1
    runners = {"tcp": run_tcp_middle_man, "udp": run_udp_middle_man}
    runner = runners.get(args[0])
    if runner is None:
        print("Invalid protocol. Use 'tcp' or 'udp'.")
        return 1
    probability = _leading_int(args[1])
    try:
        runner(probability, rng=random.Random())
    except OSError as exc:
        print(f"{args[0].upper()} middle man failed: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0