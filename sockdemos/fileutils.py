"""File helpers used by the transfer client and server."""

from __future__ import annotations

import hashlib
import math
import os
import sys

_UNITS = ("B", "KB", "MB", "GB", "TB")
_MD5_BLOCK = 4096


def file_exists(filename: str) -> bool:
    """Whether anything exists at the path."""
    return os.path.exists(filename)


def get_file_size(filename: str) -> int:
    """Size of the file in bytes."""
    return os.path.getsize(filename)


def create_directory(path: str) -> bool:
    """Create the directory and its parents; True only if something was created."""
    if not path or os.path.isdir(path):
        return False
    os.makedirs(path, exist_ok=True)
    return True


def get_directory(path: str) -> str:
    """The parent part of a path, or '' when there is none."""
    return os.path.dirname(path)


def get_file_name(path: str) -> str:
    """The last component of a path."""
    return os.path.basename(path)


def read_file_chunk(filename: str, offset: int, size: int) -> bytes:
    """Read exactly size bytes at offset; EOFError if the file is shorter."""
    with open(filename, "rb") as f:
        f.seek(offset)
        data = f.read(size)
    if len(data) < size:
        raise EOFError(f"{filename}: wanted {size} bytes at {offset}, got {len(data)}")
    return data


def write_file_chunk(filename: str, data: bytes, offset: int) -> None:
    """Write data at offset, creating the file and its directory when needed."""
    create_directory(get_directory(filename))
    try:
        f = open(filename, "r+b")
    except FileNotFoundError:
        f = open(filename, "wb")
    with f:
        f.seek(offset)
        f.write(data)


def calculate_md5(filename: str) -> str:
    """Hex MD5 digest of the file's content."""
    digest = hashlib.md5()
    with open(filename, "rb") as f:
        for block in iter(lambda: f.read(_MD5_BLOCK), b""):
            digest.update(block)
    return digest.hexdigest()


def verify_md5(filename: str, expected_md5: str) -> bool:
    """Whether the file exists and its digest equals expected_md5."""
    try:
        return calculate_md5(filename) == expected_md5
    except OSError:
        return False


def show_progress(current: int, total: int, operation: str) -> None:
    """Print a one-line progress report, overwriting the current line."""
    if total:
        percentage = current / total * 100
    else:
        percentage = math.nan if current == 0 else math.inf
    sys.stdout.write(
        f"\r{operation}: {percentage:.2f}% ({format_size(current)}/{format_size(total)})"
    )
    sys.stdout.flush()


def format_size(size: float) -> str:
    """Human-readable size with two decimals, in binary units up to TB."""
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {_UNITS[unit]}"


def format_speed(byte_count: int, seconds: float) -> str:
    """Transfer rate as a size per second; fractions of a byte are dropped."""
    if seconds <= 0:
        raise ValueError("seconds must be positive")
    return format_size(int(byte_count / seconds)) + "/s"