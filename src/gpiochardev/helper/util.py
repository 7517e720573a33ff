from __future__ import annotations

import os

from gpiochardev.const import DEV_DIR


def bytes_to_str(buf: bytes) -> str:
    """Decode a fixed size, zero padded kernel name buffer."""
    return buf.split(b"\0", 1)[0].decode(errors="replace")


def str_to_bytes(s: str, size: int) -> bytes:
    """Encode a name leaving room for the terminating zero byte."""
    return s.encode()[: size - 1]


def name_to_path(name: str) -> str:
    """Map a chip name such as gpiochip0 to its device path."""
    if name.startswith(DEV_DIR + "/"):
        return name
    return os.path.join(DEV_DIR, name)
