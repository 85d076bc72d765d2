"""
AuroraID Hardware Pairing Module
================================

Decodes framed, optionally shift-obfuscated mnemonics typed by a paired
hardware device.
"""

from auroraid.core.pairing.decoder import (
    PairingResult,
    WordRecovery,
    WordStatus,
    decode_pairing_frame,
    deobfuscate_word,
    encode_pairing_frame,
    obfuscate_word,
    recover_word,
    shift_word,
)

__all__ = [
    "PairingResult",
    "WordRecovery",
    "WordStatus",
    "decode_pairing_frame",
    "deobfuscate_word",
    "encode_pairing_frame",
    "obfuscate_word",
    "recover_word",
    "shift_word",
]
