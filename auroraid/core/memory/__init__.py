"""
AuroraID Memory Security Module
===============================

Best-effort wiping of secret buffers (entropy, seeds, private keys).

WARNING:
- Python's memory model doesn't guarantee secure erasure
- These are best-effort mitigations
"""

from auroraid.core.memory.zeroization import (
    secure_zero,
    zeroizing,
)

__all__ = [
    "secure_zero",
    "zeroizing",
]
