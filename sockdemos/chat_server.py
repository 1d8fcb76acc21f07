"""Message server that relays every message to all other connected clients."""

from __future__ import annotations

import socket
import sys
import threading

DEFAULT_PORT = 9000
_BACKLOG = 5
_READ_LIMIT = 1023
_ACCEPT_POLL_SECONDS = 0.5


class BroadcastServer:
    """Keeps the list of connected clients and relays messages between them."""

    def __init__(self, port: int = DEFAULT_PORT, host: str = "") -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._sock.bind((host, port))
            self._sock.listen(_BACKLOG)
        except (OSError, OverflowError):
            self._sock.close()
            raise
        self._clients: list[socket.socket] = []
        self._lock = threading.Lock()
        self._closed = threading.Event()

    @property
    def address(self) -> tuple[str, int]:
        """The host and port the server listens on."""
        host, port = self._sock.getsockname()[:2]
        return host, port

    @property
    def clients(self) -> list[socket.socket]:
        """A snapshot of the connected clients."""
        with self._lock:
            return list(self._clients)

    def _register(self, conn: socket.socket) -> None:
        with self._lock:
            if conn not in self._clients:
                self._clients.append(conn)

    def handle_client(self, conn: socket.socket) -> None:
        """Relay messages from one client until it disconnects, then drop it."""
        self._register(conn)
        try:
            while True:
                try:
                    data = conn.recv(_READ_LIMIT)
                except OSError:
                    break
                if not data:
                    break
                print(f"收到消息: {data.decode('utf-8', errors='replace')}", flush=True)
                self.broadcast(data, conn)
        finally:
            with self._lock:
                self._clients = [c for c in self._clients if c is not conn]
            conn.close()

    def broadcast(self, data: bytes, sender: socket.socket | None) -> int:
        """Send data to every client except the sender; return how many received it."""
        delivered = 0
        with self._lock:
            for client in self._clients:
                if client is sender:
                    continue
                try:
                    client.sendall(data)
                except OSError:
                    continue
                delivered += 1
        return delivered

    def serve_forever(self) -> None:
        """Accept clients, each served by its own thread, until the server is closed."""
        print(f"消息服务器已启动，监听{self.address[1]}端口...", flush=True)
        self._sock.settimeout(_ACCEPT_POLL_SECONDS)
        while not self._closed.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._closed.is_set():
                    break
                print(f"accept: {exc}", file=sys.stderr)
                continue
            conn.settimeout(None)
            self._register(conn)
            threading.Thread(target=self.handle_client, args=(conn,), daemon=True).start()

    def close(self) -> None:
        """Stop accepting clients and release the listening socket."""
        self._closed.set()
        self._sock.close()

    def __enter__(self) -> BroadcastServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def main(argv: list[str] | None = None) -> int:
    """Run the message server; an optional argument overrides the port."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) > 1:
        print("用法: chat_server [端口号]", file=sys.stderr)
        return 1
    try:
        port = int(args[0]) if args else DEFAULT_PORT
        server = BroadcastServer(port)
    except (ValueError, OverflowError, OSError) as exc:
        print(f"bind: {exc}", file=sys.stderr)
        return 1
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())