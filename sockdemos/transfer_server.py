"""Multi-client file transfer server speaking the packet protocol."""

from __future__ import annotations

import os
import socket
import sys
import threading

from .fileutils import (
    calculate_md5,
    file_exists,
    get_file_size,
    read_file_chunk,
    verify_md5,
    write_file_chunk,
)
from .protocol import (
    MAX_DATA_SIZE,
    ErrorCode,
    Packet,
    PacketHeader,
    PacketType,
    ProtocolError,
    receive_packet,
    send_ack,
    send_error,
    send_packet,
    wait_for_ack,
)

_BACKLOG = 5
_ACCEPT_POLL_SECONDS = 0.5


class FileServer:
    """Accepts connections and serves upload and download requests, one thread per client."""

    def __init__(self, port: int, host: str = "") -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._sock.bind((host, port))
            self._sock.listen(_BACKLOG)
        except (OSError, OverflowError):
            self._sock.close()
            raise
        self._file_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._closed = threading.Event()

    @property
    def address(self) -> tuple[str, int]:
        """The host and port the server listens on."""
        host, port = self._sock.getsockname()[:2]
        return host, port

    def _file_lock(self, filename: str) -> threading.Lock:
        with self._locks_guard:
            return self._file_locks.setdefault(filename, threading.Lock())

    def handle_upload(self, conn: socket.socket, request: Packet) -> str:
        """Receive a file from the client; return the name it was saved under."""
        filename = request.header.filename
        with self._file_lock(filename):
            temp_file = filename + ".tmp"
            offset = request.header.offset
            total_size = request.header.total_size

            send_ack(conn, request.header.seq_num)

            received = 0
            seq_num = 1
            while received < total_size:
                packet = receive_packet(conn)
                if packet.header.type != PacketType.DATA or packet.header.seq_num != seq_num:
                    continue
                write_file_chunk(temp_file, packet.data, offset + received)
                received += len(packet.data)
                send_ack(conn, seq_num)
                seq_num += 1

            md5_packet = receive_packet(conn)
            if md5_packet.header.type != PacketType.MD5_CHECK:
                raise ProtocolError(f"expected MD5_CHECK, got packet type {md5_packet.header.type}")
            received_md5 = md5_packet.data.decode("ascii", errors="replace")

            if not verify_md5(temp_file, received_md5):
                send_error(conn, ErrorCode.MD5_MISMATCH, "MD5校验失败")
                raise ProtocolError(f"MD5 mismatch for {filename}")

            try:
                os.replace(temp_file, filename)
            except OSError as exc:
                send_error(conn, ErrorCode.PERMISSION_DENIED, "无法保存文件")
                raise ProtocolError(f"cannot save {filename}") from exc
            return filename

    def handle_download(self, conn: socket.socket, request: Packet) -> int:
        """Send the requested file to the client; return the number of payload bytes sent."""
        filename = request.header.filename
        with self._file_lock(filename):
            if not file_exists(filename):
                send_error(conn, ErrorCode.FILE_NOT_FOUND, "文件不存在")
                raise FileNotFoundError(filename)

            file_size = get_file_size(filename)
            offset = request.header.offset
            if offset >= file_size:
                send_error(conn, ErrorCode.INVALID_REQUEST, "无效的文件偏移量")
                raise ProtocolError(f"offset {offset} beyond size {file_size} of {filename}")

            info = PacketHeader(
                type=PacketType.DATA,
                seq_num=0,
                data_size=0,
                offset=offset,
                total_size=file_size,
                filename=filename,
            )
            send_packet(conn, Packet(info))
            wait_for_ack(conn, 0)

            seq_num = 1
            sent = 0
            remaining = file_size - offset
            while remaining > 0:
                chunk_size = min(remaining, MAX_DATA_SIZE)
                chunk = read_file_chunk(filename, offset, chunk_size)
                header = PacketHeader(
                    type=PacketType.DATA,
                    seq_num=seq_num,
                    data_size=len(chunk),
                    offset=offset,
                    total_size=file_size,
                    filename=filename,
                )
                send_packet(conn, Packet(header, chunk))
                wait_for_ack(conn, seq_num)
                offset += chunk_size
                remaining -= chunk_size
                sent += chunk_size
                seq_num += 1

            md5 = calculate_md5(filename).encode("ascii")
            md5_header = PacketHeader(type=PacketType.MD5_CHECK, seq_num=seq_num, data_size=len(md5))
            send_packet(conn, Packet(md5_header, md5))
            return sent

    def handle_client(self, conn: socket.socket) -> None:
        """Serve requests on one connection until it fails or a request fails, then close it."""
        try:
            while True:
                try:
                    request = receive_packet(conn)
                except (OSError, ValueError):
                    break
                try:
                    if request.header.type == PacketType.REQ_UPLOAD:
                        self.handle_upload(conn, request)
                    elif request.header.type == PacketType.REQ_DOWNLOAD:
                        self.handle_download(conn, request)
                    else:
                        send_error(conn, ErrorCode.INVALID_REQUEST, "无效的请求类型")
                        break
                except (OSError, ValueError, EOFError):
                    break
        finally:
            conn.close()

    def start(self) -> None:
        """Accept connections until the server is closed."""
        print("服务器已启动，等待连接...", flush=True)
        self._sock.settimeout(_ACCEPT_POLL_SECONDS)
        while not self._closed.is_set():
            try:
                conn, addr = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._closed.is_set():
                    break
                print("接受连接失败", file=sys.stderr)
                continue
            conn.settimeout(None)
            print(f"接受来自 {addr[0]}:{addr[1]} 的连接", flush=True)
            threading.Thread(target=self.handle_client, args=(conn,), daemon=True).start()

    def close(self) -> None:
        """Stop accepting connections and release the listening socket."""
        self._closed.set()
        self._sock.close()

    def __enter__(self) -> FileServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def main(argv: list[str] | None = None) -> int:
    """Run the file server on the port given as the only argument."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "transfer_server"
        print(f"用法: {program} <端口号>", file=sys.stderr)
        return 1
    try:
        port = int(args[0])
        server = FileServer(port)
    except (ValueError, OverflowError, OSError) as exc:
        print(f"错误: {exc}", file=sys.stderr)
        return 1
    try:
        server.start()
    except KeyboardInterrupt:
        pass
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())