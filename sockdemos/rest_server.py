"""Small JSON REST service with /hello, /query and /user endpoints."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8081
JSON_CONTENT_TYPE = "application/json; charset=utf-8"

_log = logging.getLogger(__name__)


def _dump(obj: Any) -> bytes:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True).encode(
        "utf-8"
    )


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON value {name}")


def hello_response(params: Mapping[str, str]) -> dict[str, str]:
    """Greeting for the optional 'name' parameter."""
    name = params.get("name", "匿名")
    return {"msg": "你好，" + name, "param": name}


def query_response(params: Mapping[str, str]) -> dict[str, str]:
    """Echo of the 'name' and 'age' parameters."""
    return {
        "name": params.get("name", ""),
        "age": params.get("age", ""),
        "info": "参数已收到",
    }


def user_response(body: bytes | str) -> dict[str, Any]:
    """Acknowledge a JSON document; ValueError if the body is not valid JSON."""
    text = body.decode("utf-8") if isinstance(body, bytes) else body
    received = json.loads(text, parse_constant=_reject_constant)
    return {"status": "success", "message": "数据已接收", "received_data": received}


class RestHandler(BaseHTTPRequestHandler):
    """Routes requests to the JSON endpoints."""

    def _params(self) -> dict[str, str]:
        query = urlsplit(self.path).query
        return {k: v[0] for k, v in parse_qs(query, keep_blank_values=True).items()}

    def _send(self, status: int, body: bytes = b"", content_type: str | None = None) -> None:
        self.send_response(status)
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:
        path = urlsplit(self.path).path
        if path == "/hello":
            self._send(200, _dump(hello_response(self._params())), JSON_CONTENT_TYPE)
        elif path == "/query":
            self._send(200, _dump(query_response(self._params())), JSON_CONTENT_TYPE)
        else:
            self._send(404)

    def do_POST(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        if urlsplit(self.path).path != "/user":
            self._send(404)
            return
        try:
            payload = user_response(body)
        except ValueError:
            self._send(400)
            return
        self._send(200, _dump(payload), JSON_CONTENT_TYPE)

    def log_message(self, format: str, *args: Any) -> None:
        """Send request logs to the module logger instead of stderr."""
        _log.info("%s - %s", self.address_string(), format % args)


def make_server(host: str, port: int) -> ThreadingHTTPServer:
    """Create a threaded HTTP server bound to host:port."""
    return ThreadingHTTPServer((host, port), RestHandler)


def main(argv: list[str] | None = None) -> int:
    """Run the REST service; an optional argument overrides the port."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) > 1:
        print("用法: rest_server [端口号]", file=sys.stderr)
        return 1
    try:
        port = int(args[0]) if args else DEFAULT_PORT
        server = make_server(DEFAULT_HOST, port)
    except (ValueError, OverflowError, OSError) as exc:
        print(f"错误: {exc}", file=sys.stderr)
        return 1
    print(f"监听{port}端口...", flush=True)
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())