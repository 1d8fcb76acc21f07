"""Minimal HTTP server that answers every request with a fixed HTML page."""

from __future__ import annotations

import socket
import sys

DEFAULT_PORT = 8080
_BACKLOG = 5
_REQUEST_LIMIT = 4095

HTML_RESPONSE = (
    "HTTP/1.1 200 OK\r\nContent-Type: text/html; charset=utf-8\r\n\r\n"
    "<html>\n"
    "<head>\n<meta charset=\"utf-8\">\n<title>软件体系架构实验</title>\n</head>\n"
    "<body>\n<h1>软件体系架构实验(1)</h1>\n<p>软件体系架构实验(1), WEB服务器实现</p>\n</body>\n"
    "</html>\n"
).encode("utf-8")


def handle_connection(conn: socket.socket) -> str | None:
    """Read one request, answer it with the page and close the connection.

    Returns the request text, or None when the peer sent nothing.
    """
    try:
        data = conn.recv(_REQUEST_LIMIT)
        if not data:
            return None
        request = data.decode("utf-8", errors="replace")
        print(f"收到请求:\n{request}", flush=True)
        conn.sendall(HTML_RESPONSE)
        return request
    finally:
        conn.close()


def serve(host: str, port: int) -> None:
    """Listen on host:port and answer connections one after another, forever."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind((host, port))
        server.listen(_BACKLOG)
        print(f"服务器已启动，监听{port}端口...", flush=True)
        while True:
            try:
                conn, _ = server.accept()
            except OSError as exc:
                print(f"accept: {exc}", file=sys.stderr)
                continue
            try:
                handle_connection(conn)
            except OSError as exc:
                print(f"connection: {exc}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Run the page server; an optional argument overrides the port."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) > 1:
        print("用法: webserver [端口号]", file=sys.stderr)
        return 1
    try:
        port = int(args[0]) if args else DEFAULT_PORT
        serve("", port)
    except KeyboardInterrupt:
        return 0
    except (ValueError, OverflowError, OSError) as exc:
        print(f"bind: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())