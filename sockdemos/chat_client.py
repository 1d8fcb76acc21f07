"""Console client for the message server: sends typed lines, prints relayed messages."""

from __future__ import annotations

import socket
import sys
import threading
from collections.abc import Iterable
from typing import TextIO

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9000
_READ_LIMIT = 1023
_QUIT = "exit"


def receive_loop(sock: socket.socket, out: TextIO) -> int:
    """Print every message from the socket until it closes; return how many arrived."""
    count = 0
    while True:
        try:
            data = sock.recv(_READ_LIMIT)
        except OSError:
            break
        if not data:
            break
        print(f"收到: {data.decode('utf-8', errors='replace')}", file=out, flush=True)
        count += 1
    return count


def run(host: str, port: int, lines: Iterable[str], out: TextIO) -> int:
    """Connect, send each line until 'exit', printing incoming messages meanwhile.

    Returns the number of lines sent.
    """
    sock = socket.create_connection((host, port))
    receiver = threading.Thread(target=receive_loop, args=(sock, out), daemon=True)
    receiver.start()
    sent = 0
    try:
        for line in lines:
            message = line.removesuffix("\n")
            if message == _QUIT:
                break
            sock.sendall(message.encode("utf-8"))
            sent += 1
    finally:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        receiver.join()
        sock.close()
    return sent


def main(argv: list[str] | None = None) -> int:
    """Chat through the server; optional arguments give host and port."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) > 2:
        print("用法: chat_client [地址] [端口号]", file=sys.stderr)
        return 1
    host = args[0] if args else DEFAULT_HOST
    try:
        port = int(args[1]) if len(args) > 1 else DEFAULT_PORT
        run(host, port, sys.stdin, sys.stdout)
    except KeyboardInterrupt:
        return 0
    except (ValueError, OverflowError, OSError) as exc:
        print(f"connect: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())