# crcarith

A small three-part network demo. It shows how a CRC-32 checksum catches
corruption in transit.

- **client** (`crcarith.client`) reads an arithmetic operation (`+`, `-`,
  `*`, `/`) and two 32-bit integer operands. It stamps the packet with a CRC
  and sends it.
- **middle man** (`crcarith.middle_man`) sits between client and server.
  With a given probability it inverts one to three bytes of each packet
  before passing it on.
- **server** (`crcarith.server`) checks the CRC. If the CRC matches, it
  computes the result. Otherwise it flags the packet as an error. Either way
  it sends the packet back.

All three speak either TCP or UDP. The middle man listens on port 8080 on all
interfaces and forwards to the server at 127.0.0.1:8081. The client connects
to 127.0.0.1:8080.

## Installation

```
pip install .
```

## Running

Start each part in its own terminal, in this order:

```
crcarith-server tcp
crcarith-middle-man tcp 30
crcarith-client tcp
```

The second argument to `crcarith-middle-man` is the error probability as a
percentage, from 0 to 100. The middle man reads the leading integer of that
argument and treats anything non-numeric as 0. To use datagrams, replace
`tcp` with `udp` in all three commands.

At the client prompt, type an operator and then the two operands. Type
`exit` or end the input to quit:

```
Enter operation (+, -, *, /) or 'exit': *
Enter first operand: 6
Enter second operand: 7
Server response: [*, 6, 7, 42]
```

If the middle man corrupted the packet, the server finds the CRC mismatch and
the response reads `[*, 6, 7, Erreur]`. Division by zero and unknown
operation codes are reported the same way. The operands in the response may
be the corrupted values.

Each request the server receives is printed with its CRC. It is followed by
`Operation completed`, `Error detected` or `Invalid operation`. The TCP
server handles each connection in its own thread. The TCP middle man serves
one client connection at a time and opens a fresh connection to the server
for every request.

## Using the library

The wire format and the checksum are in `crcarith.protocol`:

```python
from crcarith.protocol import BinaryOperation, Operation, compute_crc, format_operation

op = BinaryOperation(Operation.ADD, 2, 3).with_crc()
data = op.pack()
same = BinaryOperation.unpack(data)
assert compute_crc(same) == same.crc
print(format_operation(same, True))   # [+, 2, 3, 0] (CRC: 0x...)
```

- `parse_operation(text)` maps `+`, `-`, `*`, `/` to an `Operation` and
  raises `ValueError` for anything else.
- `compute_crc(op)` is a CRC-32 over every encoded byte except the CRC field.
- `introduce_error(op, probability, rng=None)` returns the operation, which
  is corrupted with the given percent probability. It uses `rng` when one is
  given and the `random` module otherwise.

In `crcarith.server`:

- `verify_operation(op)` returns the reply with its result computed using
  32-bit wraparound and truncating division. It raises `CorruptionDetected`
  on a CRC mismatch, and `InvalidOperation` for division by zero or an
  unknown operation. Both exceptions are subclasses of `VerificationError`.
- `process_request(op)` returns `(reply, message)` and never raises for
  these cases.
- `run_tcp_server(host, port)` and `run_udp_server(host, port)` serve
  forever.

In `crcarith.middle_man`:

- `relay_tcp(op, server_address, probability, rng)` may corrupt one request,
  sends it to the server and returns the reply.
- `run_tcp_middle_man(...)` and `run_udp_middle_man(...)` accept a host,
  a port, a server address and a random generator.

In `crcarith.client`:

- `read_operations(stdin, stdout)` yields CRC-stamped requests from prompted
  input.
- `run_tcp_client(address, stdin, stdout)` and
  `run_udp_client(address, stdin, stdout)` drive a whole session.

## Limitations

- The commands take no options for hosts or ports. To use other addresses,
  call the `run_*` functions directly.
- UDP has no timeouts or retries. A lost datagram leaves the client or the
  middle man waiting.

## Tests

```
pip install ".[test]"
pytest
```