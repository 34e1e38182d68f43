import random
import socket
import threading
import time

import pytest

from crcarith.middle_man import (
    main,
    relay_tcp,
    run_tcp_middle_man,
    run_udp_middle_man,
)
from crcarith.protocol import (
    MESSAGE_SIZE,
    BinaryOperation,
    Operation,
    compute_crc,
    introduce_error,
)
from crcarith.server import process_request, run_tcp_server


def _free_port(kind=socket.SOCK_STREAM):
    with socket.socket(socket.AF_INET, kind) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _wait_for_tcp(port):
    for _ in range(200):
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=0.2):
                return
        except OSError:
            time.sleep(0.02)
    raise RuntimeError(f"nothing listening on {port}")


def _recv_exact(sock, size):
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            return None
        data += chunk
    return data


def _start(target, *args, **kwargs):
    thread = threading.Thread(target=target, args=args, kwargs=kwargs, daemon=True)
    thread.start()
    return thread


@pytest.fixture(scope="module")
def tcp_server_port():
    port = _free_port()
    _start(run_tcp_server, "127.0.0.1", port)
    _wait_for_tcp(port)
    return port


@pytest.fixture
def udp_server_address():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))

    def serve():
        while True:
            try:
                data, addr = sock.recvfrom(64)
            except OSError:
                return
            reply, _ = process_request(BinaryOperation.unpack(data))
            sock.sendto(reply.pack(), addr)

    _start(serve)
    yield sock.getsockname()
    sock.close()


def test_relay_tcp_without_errors_returns_result(tcp_server_port):
    op = BinaryOperation(Operation.MUL, 6, 7).with_crc()
    reply = relay_tcp(op, ("127.0.0.1", tcp_server_port), 0, random.Random(1))
    assert reply.result == 42
    assert reply.error is False
    assert (reply.operand1, reply.operand2) == (6, 7)


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4, 5])
def test_relay_tcp_with_certain_error_matches_corruption(tcp_server_port, seed):
    op = BinaryOperation(Operation.ADD, 11, 31).with_crc()
    corrupted = introduce_error(op, 100, random.Random(seed))
    reply = relay_tcp(op, ("127.0.0.1", tcp_server_port), 100, random.Random(seed))
    assert reply == process_request(corrupted)[0]
    assert reply.error == (corrupted != op)


def test_relay_tcp_unreachable_server_raises():
    op = BinaryOperation(Operation.ADD, 1, 1).with_crc()
    with pytest.raises(OSError):
        relay_tcp(op, ("127.0.0.1", _free_port()), 0, random.Random(0))


def test_tcp_middle_man_relays_requests(tcp_server_port):
    port = _free_port()
    _start(
        run_tcp_middle_man,
        0,
        "127.0.0.1",
        port,
        ("127.0.0.1", tcp_server_port),
        random.Random(0),
    )
    _wait_for_tcp(port)
    requests = [
        BinaryOperation(Operation.SUB, 10, 4).with_crc(),
        BinaryOperation(Operation.DIV, 9, 0).with_crc(),
    ]
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        replies = []
        for op in requests:
            sock.sendall(op.pack())
            replies.append(BinaryOperation.unpack(_recv_exact(sock, MESSAGE_SIZE)))
    assert replies[0].result == 6
    assert replies[0].error is False
    assert replies[1].error is True
    assert replies == [process_request(op)[0] for op in requests]


def test_udp_middle_man_relays_requests(udp_server_address):
    port = _free_port(socket.SOCK_DGRAM)
    _start(
        run_udp_middle_man,
        0,
        "127.0.0.1",
        port,
        udp_server_address,
        random.Random(0),
    )
    op = BinaryOperation(Operation.ADD, 20, 22).with_crc()
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as client:
        client.settimeout(0.5)
        for _ in range(20):
            client.sendto(op.pack(), ("127.0.0.1", port))
            try:
                data, _ = client.recvfrom(64)
                break
            except socket.timeout:
                continue
        else:
            pytest.fail("no reply from UDP middle man")
    reply = BinaryOperation.unpack(data)
    assert reply.result == 42
    assert reply.error is False
    assert compute_crc(BinaryOperation(Operation.ADD, 20, 22)) == op.crc


def test_main_without_arguments_prints_usage(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().out


def test_main_with_unknown_protocol(capsys):
    assert main(["sctp", "10"]) == 1
    assert "Invalid protocol. Use 'tcp' or 'udp'." in capsys.readouterr().out