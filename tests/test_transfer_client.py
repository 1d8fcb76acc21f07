import hashlib
import os
import socket
import threading
import time

import pytest

from sockdemos.protocol import (
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
from sockdemos.transfer_client import FileClient, main, print_usage
from sockdemos.transfer_server import FileServer


class FakeServer:
    """Listens on a free port and runs one handler on the first connection."""

    def __init__(self, handler):
        self.handler = handler
        self.result = {}
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(1)
        self.listener.settimeout(5)
        self.port = self.listener.getsockname()[1]
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()

    def _run(self):
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        conn.settimeout(5)
        with conn:
            try:
                self.handler(conn, self.result)
            except OSError as exc:
                self.result["error"] = exc

    def finish(self):
        self.thread.join(5)
        self.listener.close()


def upload_receiver(conn, result):
    request = receive_packet(conn)
    result["request"] = request
    send_ack(conn, 0)
    received = bytearray()
    seqs = []
    while len(received) < request.header.total_size:
        packet = receive_packet(conn)
        seqs.append(packet.header.seq_num)
        received += packet.data
        send_ack(conn, packet.header.seq_num)
    result["data"] = bytes(received)
    result["seqs"] = seqs
    result["md5"] = receive_packet(conn)


def download_sender(content, md5_text=None):
    def handler(conn, result):
        request = receive_packet(conn)
        result["request"] = request
        info = PacketHeader(
            type=PacketType.DATA, total_size=len(content), filename=request.header.filename
        )
        send_packet(conn, Packet(info))
        wait_for_ack(conn, 0)
        seq = 1
        for start in range(0, len(content), MAX_DATA_SIZE):
            chunk = content[start:start + MAX_DATA_SIZE]
            header = PacketHeader(
                type=PacketType.DATA, seq_num=seq, data_size=len(chunk), total_size=len(content)
            )
            send_packet(conn, Packet(header, chunk))
            wait_for_ack(conn, seq)
            seq += 1
        digest = (md5_text or hashlib.md5(content).hexdigest()).encode("ascii")
        send_packet(
            conn,
            Packet(PacketHeader(type=PacketType.MD5_CHECK, seq_num=seq, data_size=len(digest)), digest),
        )

    return handler


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_print_usage_lists_commands(capsys):
    print_usage("prog")
    out = capsys.readouterr().out
    assert out.startswith("用法: prog <服务器地址> <端口号> <上传/下载> <文件名>")
    assert "  upload <本地文件路径> <远程保存路径>" in out
    assert "  download <远程文件路径> <本地保存路径>" in out


def test_main_wrong_argument_count(capsys):
    assert main(["127.0.0.1", "9000"]) == 1
    assert "用法:" in capsys.readouterr().out


def test_main_bad_port(capsys):
    assert main(["127.0.0.1", "notaport", "upload", "x"]) == 1
    assert "错误:" in capsys.readouterr().err


def test_main_bad_mode(capsys):
    assert main(["127.0.0.1", "9000", "sync", "x"]) == 1
    assert "无效的模式" in capsys.readouterr().err


def test_upload_connection_refused(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    client = FileClient("127.0.0.1", free_port())
    with pytest.raises(ConnectionError):
        client.upload(str(path))


def test_upload_sends_chunks_and_md5(tmp_path):
    content = os.urandom(MAX_DATA_SIZE + 1000)
    path = tmp_path / "big.bin"
    path.write_bytes(content)
    server = FakeServer(upload_receiver)
    client = FileClient("127.0.0.1", server.port, timeout=5)
    sent = client.upload(str(path))
    server.finish()
    assert sent == len(content)
    request = server.result["request"]
    assert request.header.type == PacketType.REQ_UPLOAD
    assert request.header.total_size == len(content)
    assert request.header.filename == str(path)
    assert server.result["data"] == content
    assert server.result["seqs"] == [1, 2]
    md5_packet = server.result["md5"]
    assert md5_packet.header.type == PacketType.MD5_CHECK
    assert md5_packet.header.seq_num == 3
    assert md5_packet.data.decode("ascii") == hashlib.md5(content).hexdigest()


def test_upload_missing_file_raises(tmp_path):
    server = FakeServer(lambda conn, result: result.setdefault("got", conn.recv(1)))
    client = FileClient("127.0.0.1", server.port, timeout=5)
    with pytest.raises(FileNotFoundError):
        client.upload(str(tmp_path / "missing.bin"))
    server.finish()
    assert server.result.get("got") == b""


def test_upload_empty_file_is_invalid_offset(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    server = FakeServer(lambda conn, result: result.setdefault("got", conn.recv(1)))
    client = FileClient("127.0.0.1", server.port, timeout=5)
    with pytest.raises(ValueError, match="无效的文件偏移量"):
        client.upload(str(path))
    server.finish()


def test_download_writes_file(tmp_path, capsys):
    content = b"hello transfer\n" * 100
    target = tmp_path / "out" / "file.txt"
    server = FakeServer(download_sender(content))
    client = FileClient("127.0.0.1", server.port, timeout=5)
    received = client.download(str(target))
    server.finish()
    assert received == len(content)
    assert target.read_bytes() == content
    assert not (tmp_path / "out" / "file.txt.tmp").exists()
    assert server.result["request"].header.type == PacketType.REQ_DOWNLOAD
    assert server.result["request"].header.filename == str(target)
    assert "下载进度: 100%" in capsys.readouterr().out


def test_download_md5_mismatch_keeps_target_absent(tmp_path):
    content = b"payload bytes"
    target = tmp_path / "file.bin"
    server = FakeServer(download_sender(content, md5_text="0" * 32))
    client = FileClient("127.0.0.1", server.port, timeout=5)
    with pytest.raises(ProtocolError, match="MD5"):
        client.download(str(target))
    server.finish()
    assert not target.exists()
    assert (tmp_path / "file.bin.tmp").read_bytes() == content


def test_download_error_packet_raises(tmp_path):
    def refuse(conn, result):
        receive_packet(conn)
        message = "文件不存在".encode("utf-8")
        send_packet(
            conn, Packet(PacketHeader(type=PacketType.ERROR, data_size=len(message)), message)
        )

    server = FakeServer(refuse)
    client = FileClient("127.0.0.1", server.port, timeout=5)
    with pytest.raises(ProtocolError, match="文件不存在"):
        client.download(str(tmp_path / "nothing.bin"))
    server.finish()


def test_main_upload_against_real_server(tmp_path, capsys):
    content = os.urandom(5000)
    path = tmp_path / "data.bin"
    path.write_bytes(content)
    server = FileServer(0, "127.0.0.1")
    thread = threading.Thread(target=server.start, daemon=True)
    thread.start()
    try:
        port = server.address[1]
        assert main(["127.0.0.1", str(port), "upload", str(path)]) == 0
        temp = tmp_path / "data.bin.tmp"
        deadline = time.monotonic() + 5
        while temp.exists() and time.monotonic() < deadline:
            time.sleep(0.05)
        assert not temp.exists()
        assert path.read_bytes() == content
        assert "上传成功" in capsys.readouterr().out
    finally:
        server.close()
        thread.join(5)