"""
Memory Zeroization Utilities
============================

Explicit wiping of entropy, seed and private key buffers.

Key Concepts:
- Zeroization: Overwriting memory with zeros/patterns
- Guard: Automatic cleanup on scope exit, including on exceptions

WARNING:
- Python's memory model doesn't guarantee secure erasure
- ``bytes`` objects are immutable and cannot be wiped; keep secrets in
  ``bytearray`` buffers for as long as possible
"""

from __future__ import annotations

import ctypes
from contextlib import contextmanager
from typing import Iterator


def secure_zero(data: bytearray | memoryview) -> None:
    """
    Securely zero a byte buffer.

    Uses ctypes memset on bytearrays, with a multi-pass wipe, and falls
    back to Python-level zeroing for memoryviews.

    Args:
        data: Mutable byte buffer to zero
    """
    if len(data) == 0:
        return

    if isinstance(data, memoryview):
        for i in range(len(data)):
            data[i] = 0
        return

    addr = ctypes.addressof((ctypes.c_char * len(data)).from_buffer(data))
    ctypes.memset(addr, 0, len(data))
    ctypes.memset(addr, 0xFF, len(data))
    ctypes.memset(addr, 0, len(data))


@contextmanager
def zeroizing(data: bytes | bytearray) -> Iterator[bytearray]:
    """Copy ``data`` into a bytearray that is wiped when the block exits."""
    buffer = bytearray(data)
    try:
        yield buffer
    finally:
        secure_zero(buffer)
