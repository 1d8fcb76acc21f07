import socket
import threading
import time

import pytest

from sockdemos.webserver import HTML_RESPONSE, handle_connection, main, serve


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _recv_all(sock):
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def test_handle_connection_answers_with_page():
    server_end, client_end = socket.socketpair()
    with client_end:
        client_end.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")
        request = handle_connection(server_end)
        assert request.startswith("GET / HTTP/1.1")
        assert _recv_all(client_end) == HTML_RESPONSE


def test_handle_connection_empty_request_sends_nothing():
    server_end, client_end = socket.socketpair()
    with client_end:
        client_end.shutdown(socket.SHUT_WR)
        assert handle_connection(server_end) is None
        assert _recv_all(client_end) == b""


def test_response_is_http_200_html():
    head, _, body = HTML_RESPONSE.partition(b"\r\n\r\n")
    assert head.startswith(b"HTTP/1.1 200 OK")
    assert b"text/html; charset=utf-8" in head
    assert body.startswith(b"<html>") and body.endswith(b"</html>\n")


def test_serve_answers_over_tcp():
    port = _free_port()
    threading.Thread(target=lambda: serve("127.0.0.1", port), daemon=True).start()
    deadline = time.monotonic() + 3
    while True:
        try:
            conn = socket.create_connection(("127.0.0.1", port), timeout=2)
            break
        except ConnectionRefusedError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)
    with conn:
        conn.sendall(b"GET /index.html HTTP/1.1\r\n\r\n")
        assert _recv_all(conn) == HTML_RESPONSE


def test_main_fails_when_port_is_taken():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("", 0))
        busy.listen(1)
        port = busy.getsockname()[1]
        assert main([str(port)]) == 1


@pytest.mark.parametrize("argv", [["1", "2"], ["notaport"]])
def test_main_rejects_bad_arguments(argv):
    assert main(argv) == 1