"""Wire format of the file transfer protocol and the socket helpers around it."""

from __future__ import annotations

import enum
import socket
import struct
import time
from dataclasses import dataclass

PROTOCOL_VERSION = 1
FILENAME_SIZE = 256

# version, type, seq_num, data_size, offset, total_size, filename (packed, no padding)
_HEADER = struct.Struct("<BBIIQI256s")

HEADER_SIZE = _HEADER.size
MAX_PACKET_SIZE = 1024 * 1024
MAX_DATA_SIZE = MAX_PACKET_SIZE - HEADER_SIZE
DEFAULT_ACK_TIMEOUT_MS = 5000


class PacketType(enum.IntEnum):
    """Kinds of packet exchanged between client and server."""

    REQ_UPLOAD = 1
    REQ_DOWNLOAD = 2
    DATA = 3
    ACK = 4
    ERROR = 5
    MD5_CHECK = 6
    RESUME = 7


class ErrorCode(enum.IntEnum):
    """Reasons a request can fail."""

    SUCCESS = 0
    FILE_NOT_FOUND = 1
    PERMISSION_DENIED = 2
    DISK_FULL = 3
    MD5_MISMATCH = 4
    NETWORK_ERROR = 5
    INVALID_REQUEST = 6


class ProtocolError(ConnectionError):
    """The peer closed the connection or broke the exchange."""


def _packet_type(value: int) -> int:
    try:
        return PacketType(value)
    except ValueError:
        return value


@dataclass
class PacketHeader:
    """Fixed-size header that precedes every packet."""

    version: int = PROTOCOL_VERSION
    type: int = 0
    seq_num: int = 0
    data_size: int = 0
    offset: int = 0
    total_size: int = 0
    filename: str = ""

    def pack(self) -> bytes:
        """Encode the header; the file name is cut to 255 bytes."""
        name = self.filename.encode("utf-8")[: FILENAME_SIZE - 1]
        try:
            return _HEADER.pack(
                self.version,
                int(self.type),
                self.seq_num,
                self.data_size,
                self.offset,
                self.total_size,
                name,
            )
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> PacketHeader:
        """Decode a header from exactly HEADER_SIZE bytes."""
        if len(data) != HEADER_SIZE:
            raise ValueError(f"header must be {HEADER_SIZE} bytes, got {len(data)}")
        version, ptype, seq_num, data_size, offset, total_size, raw_name = _HEADER.unpack(data)
        name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        return cls(
            version=version,
            type=_packet_type(ptype),
            seq_num=seq_num,
            data_size=data_size,
            offset=offset,
            total_size=total_size,
            filename=name,
        )


@dataclass
class Packet:
    """A header together with its payload."""

    header: PacketHeader
    data: bytes = b""


def _control_packet(ptype: PacketType, seq_num: int, data: bytes = b"") -> Packet:
    return Packet(PacketHeader(type=ptype, seq_num=seq_num, data_size=len(data)), data)


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise ProtocolError("connection closed by peer")
        buf += chunk
    return bytes(buf)


def send_packet(sock: socket.socket, packet: Packet) -> None:
    """Send a packet's header and payload."""
    if packet.header.data_size != len(packet.data):
        raise ValueError(
            f"data_size {packet.header.data_size} does not match payload length {len(packet.data)}"
        )
    sock.sendall(packet.header.pack() + packet.data)


def receive_packet(sock: socket.socket) -> Packet:
    """Read one whole packet from the socket."""
    header = PacketHeader.from_bytes(_recv_exact(sock, HEADER_SIZE))
    data = _recv_exact(sock, header.data_size) if header.data_size else b""
    return Packet(header, data)


def wait_for_ack(
    sock: socket.socket, expected_seq: int, timeout_ms: int = DEFAULT_ACK_TIMEOUT_MS
) -> Packet:
    """Read packets until an ACK for expected_seq arrives; other packets are dropped.

    Raises TimeoutError when none arrives within timeout_ms.
    """
    deadline = time.monotonic() + timeout_ms / 1000.0
    previous_timeout = sock.gettimeout()
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(f"no ACK for sequence {expected_seq} within {timeout_ms} ms")
            sock.settimeout(remaining)
            try:
                packet = receive_packet(sock)
            except TimeoutError as exc:
                raise TimeoutError(
                    f"no ACK for sequence {expected_seq} within {timeout_ms} ms"
                ) from exc
            if packet.header.type == PacketType.ACK and packet.header.seq_num == expected_seq:
                return packet
    finally:
        sock.settimeout(previous_timeout)


def send_ack(sock: socket.socket, seq_num: int) -> None:
    """Acknowledge the packet with the given sequence number."""
    send_packet(sock, _control_packet(PacketType.ACK, seq_num))


def send_error(sock: socket.socket, code: ErrorCode, message: str) -> None:
    """Send an ERROR packet; only the message text travels, the code is validated."""
    ErrorCode(code)
    send_packet(sock, _control_packet(PacketType.ERROR, 0, message.encode("utf-8")))