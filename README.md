# sockdemos

A handful of small networking programs built directly on TCP sockets,
each runnable from the command line and usable as a library:

| Command | What it does |
| --- | --- |
| `sockdemos-webserver` | Minimal HTTP server that answers every request with a fixed HTML page (TCP 8080 by default). |
| `sockdemos-chat-server` | Broadcast message server: every message a client sends is relayed to all other clients (TCP 9000 by default). |
| `sockdemos-chat-client` | Interactive client for the chat server, by default at `127.0.0.1:9000`. |
| `sockdemos-rest-server` | JSON REST service with `/hello`, `/query` and `/user` endpoints (`0.0.0.0:8081` by default). |
| `sockdemos-transfer-server` | File transfer server using a binary packet protocol with acknowledgements and MD5 verification. |
| `sockdemos-transfer-client` | Uploads a file to, or downloads a file from, the transfer server. |

No third-party libraries are needed; Python 3.10 or later is enough.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Static web server

```
sockdemos-webserver
sockdemos-webserver 8000
```

Listens on all interfaces, on 8080 unless a number is given. Each request
is printed to the console and answered with `200 OK` and a small HTML page,
after which the connection is closed. Connections are handled one after
another.

## Broadcast chat

Start the server (optionally giving the number to listen on):

```
sockdemos-chat-server
```

Then, in as many other terminals as you like:

```
sockdemos-chat-client
sockdemos-chat-client 127.0.0.1 9000
```

Type a line and press Enter to send it; every other connected client prints
it. Type `exit` to leave. The server prints every message it receives,
serves each client in its own thread and forgets clients as soon as they
disconnect.

In code, `BroadcastServer` offers `serve_forever()`, `broadcast(data,
sender)` and `close()`; `chat_client.run(host, address_number, lines, out)`
sends the given lines and writes incoming messages to `out`.

## REST service

```
sockdemos-rest-server
```

Serves JSON (`application/json; charset=utf-8`) on `0.0.0.0:8081`, or on
the number given as the only argument:

- `GET /hello?name=Alice` returns a greeting and echoes the `name`
  parameter; without `name` an anonymous default is used.
- `GET /query?name=Alice&age=30` echoes `name` and `age` (empty strings
  when missing) together with an acknowledgement message.
- `POST /user` with a JSON body answers with `"status": "success"`, a
  message and the parsed body under `received_data`. A body that is not
  valid JSON gets status 400.
- Any other path gets status 404.

The response builders `hello_response`, `query_response` and
`user_response` can be called directly, and `make_server(host, number)`
returns a threaded HTTP server using `RestHandler`.

## File transfer

Start the server, giving the TCP number to listen on as its only argument:

```
sockdemos-transfer-server 9100
```

Upload or download with the client:

```
sockdemos-transfer-client 127.0.0.1 9100 upload notes.txt
sockdemos-transfer-client 127.0.0.1 9100 download notes.txt
```

The client takes exactly four arguments: server address, the server's
number, mode (`upload` or `download`) and file name. The server stores an
upload under the name the client sent; a download is saved to the same
path on the client side. Progress, size and speed are shown while the
transfer runs.

### How it works

Every message is a `Packet`: a fixed-size, packed `PacketHeader` (protocol
version, `PacketType`, sequence number, payload size, file offset, total
size and a 256-byte file name) followed by the payload.

1. The client sends `REQ_UPLOAD` or `REQ_DOWNLOAD`.
2. The receiving side acknowledges with `ACK` sequence 0 (for a download the
   server first sends a `DATA` packet carrying the file's total size).
3. File contents follow as `DATA` packets numbered from 1, each at most
   1 MiB including its header, each acknowledged before the next is sent.
4. Data is written to `<name>.tmp`; a final `MD5_CHECK` packet carries the
   hex digest of the whole file. If it matches, the temporary file is
   renamed into place; otherwise the transfer fails (the server answers
   with an `ERROR` packet carrying a message).

The server handles each connection in its own thread and serialises access
to each file name.

### Library use

`sockdemos.protocol` provides `PacketType`, `ErrorCode`, `PacketHeader`,
`Packet` and the socket helpers `send_packet`, `receive_packet`,
`wait_for_ack`, `send_ack` and `send_error`. A connection closed in the
middle of a packet raises `ProtocolError`; `wait_for_ack` raises
`TimeoutError` when no matching acknowledgement arrives in time.

`sockdemos.fileutils` holds the file helpers used on both sides, for
example:

```python
from sockdemos.fileutils import calculate_md5, format_size, format_speed

calculate_md5("notes.txt")     # 32-character lowercase hex digest
format_size(1536)              # '1.50 KB'
format_speed(2048, 2.0)        # '1.00 KB/s'
```

`FileServer` and `FileClient` in `sockdemos.transfer_server` and
`sockdemos.transfer_client` can be embedded in your own programs; both
have a `close()` method to release their sockets and work as context
managers.

### Limits

- Transfers always start at the beginning of the file: the `RESUME`
  packet type is defined but no command resumes an interrupted transfer.
- An `ERROR` packet carries only a text message; the `ErrorCode` is checked
  on sending but does not travel on the wire.
- Each `FileClient` makes a single upload or download and then closes its
  connection.