"""Command-line client that uploads files to and downloads files from the transfer server."""

from __future__ import annotations

import os
import socket
import sys
import time

from .fileutils import (
    calculate_md5,
    file_exists,
    format_size,
    format_speed,
    get_file_size,
    read_file_chunk,
    verify_md5,
    write_file_chunk,
)
from .protocol import (
    MAX_DATA_SIZE,
    Packet,
    PacketHeader,
    PacketType,
    ProtocolError,
    receive_packet,
    send_ack,
    send_packet,
    wait_for_ack,
)

_MIN_ELAPSED_SECONDS = 1e-3


def _report_progress(label: str, done: int, total: int, started: float) -> None:
    elapsed = max(time.monotonic() - started, _MIN_ELAPSED_SECONDS)
    sys.stdout.write(
        f"\r{label}: {done * 100 // total}% "
        f"({format_size(done)}/{format_size(total)}) "
        f"{format_speed(done, elapsed)}     "
    )
    sys.stdout.flush()


class FileClient:
    """One connection to a transfer server, used for a single upload or download."""

    def __init__(self, address: str, port: int, timeout: float | None = None) -> None:
        self.address = address
        self.port = port
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.settimeout(timeout)

    def _connect(self) -> None:
        try:
            self._sock.connect((self.address, self.port))
        except (OSError, OverflowError) as exc:
            raise ConnectionError("无法连接到服务器") from exc

    def _upload_file(self, filename: str, offset: int = 0) -> int:
        if not file_exists(filename):
            raise FileNotFoundError(f"文件不存在: {filename}")
        file_size = get_file_size(filename)
        if offset >= file_size:
            raise ValueError("无效的文件偏移量")

        request = PacketHeader(
            type=PacketType.REQ_UPLOAD,
            seq_num=0,
            data_size=0,
            offset=offset,
            total_size=file_size,
            filename=filename,
        )
        send_packet(self._sock, Packet(request))
        wait_for_ack(self._sock, 0)

        seq_num = 1
        remaining = file_size - offset
        sent = 0
        started = time.monotonic()
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
            send_packet(self._sock, Packet(header, chunk))
            wait_for_ack(self._sock, seq_num)
            offset += chunk_size
            remaining -= chunk_size
            sent += chunk_size
            seq_num += 1
            _report_progress("上传进度", offset, file_size, started)
        print()

        md5 = calculate_md5(filename).encode("ascii")
        md5_header = PacketHeader(type=PacketType.MD5_CHECK, seq_num=seq_num, data_size=len(md5))
        send_packet(self._sock, Packet(md5_header, md5))
        return sent

    def _download_file(self, filename: str, offset: int = 0) -> int:
        request = PacketHeader(
            type=PacketType.REQ_DOWNLOAD,
            seq_num=0,
            data_size=0,
            offset=offset,
            total_size=0,
            filename=filename,
        )
        send_packet(self._sock, Packet(request))

        info = receive_packet(self._sock)
        if info.header.type != PacketType.DATA:
            detail = info.data.decode("utf-8", errors="replace")
            raise ProtocolError(f"download refused: {detail}" if detail else "download refused")
        file_size = info.header.total_size
        send_ack(self._sock, 0)

        temp_file = filename + ".tmp"
        received = 0
        seq_num = 1
        started = time.monotonic()
        while received < file_size:
            packet = receive_packet(self._sock)
            if packet.header.type != PacketType.DATA or packet.header.seq_num != seq_num:
                continue
            write_file_chunk(temp_file, packet.data, offset + received)
            received += len(packet.data)
            send_ack(self._sock, seq_num)
            seq_num += 1
            _report_progress("下载进度", received, file_size, started)
        print()

        md5_packet = receive_packet(self._sock)
        if md5_packet.header.type != PacketType.MD5_CHECK:
            raise ProtocolError(f"expected MD5_CHECK, got packet type {md5_packet.header.type}")
        received_md5 = md5_packet.data.decode("ascii", errors="replace")
        if not verify_md5(temp_file, received_md5):
            raise ProtocolError("MD5校验失败")

        try:
            os.replace(temp_file, filename)
        except OSError as exc:
            raise OSError(f"无法保存文件: {filename}") from exc
        return received

    def upload(self, filename: str) -> int:
        """Upload the file under its own name; return the payload bytes sent."""
        self._connect()
        try:
            return self._upload_file(filename)
        finally:
            self.close()

    def download(self, filename: str) -> int:
        """Download the named file into the same path; return the payload bytes received."""
        self._connect()
        try:
            return self._download_file(filename)
        finally:
            self.close()

    def close(self) -> None:
        """Release the socket."""
        self._sock.close()

    def __enter__(self) -> FileClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def print_usage(program: str) -> None:
    """Print the command-line usage."""
    print(f"用法: {program} <服务器地址> <端口号> <上传/下载> <文件名>")
    print("命令:")
    print("  upload <本地文件路径> <远程保存路径>")
    print("  download <远程文件路径> <本地保存路径>")
    print("  quit")


def main(argv: list[str] | None = None) -> int:
    """Upload or download one file: <address> <port> <upload|download> <file>."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 4:
        program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "transfer_client"
        print_usage(program)
        return 1

    address, port_text, mode, filename = args
    try:
        port = int(port_text)
        client = FileClient(address, port)
    except (ValueError, OSError) as exc:
        print(f"错误: {exc}", file=sys.stderr)
        return 1

    with client:
        if mode == "upload":
            try:
                client.upload(filename)
            except (OSError, ValueError, EOFError) as exc:
                print(exc, file=sys.stderr)
                print("上传失败", file=sys.stderr)
                return 1
            print("上传成功")
        elif mode == "download":
            try:
                client.download(filename)
            except (OSError, ValueError, EOFError) as exc:
                print(exc, file=sys.stderr)
                print("下载失败", file=sys.stderr)
                return 1
            print("下载成功")
        else:
            print("无效的模式，请使用 'upload' 或 'download'", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())