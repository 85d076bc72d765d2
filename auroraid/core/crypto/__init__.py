"""
AuroraID Cryptographic Core
===========================

Mnemonic and wallet derivation.

Architecture:
    1. BIP39: 16 bytes entropy -> 12-word mnemonic (4-bit checksum)
    2. BIP39 seed: PBKDF2-HMAC-SHA512 over the phrase
    3. BIP32/BIP44: secp256k1 child key along the chain's path
    4. Chain encoding: EIP-55 (Ethereum) or SS58 (Polkadot/Kusama)

WARNING: This module handles mnemonics and private keys.
         Never log or print its outputs.
"""

from auroraid.core.crypto.mnemonic import (
    Mnemonic,
    MnemonicValidation,
    check_mnemonic,
    entropy_to_mnemonic,
    get_wordlist,
    mnemonic_to_entropy,
    validate_mnemonic,
)
from auroraid.core.crypto.wallet import (
    ChainType,
    SignatureCheck,
    Wallet,
    derive_wallet,
    sign_message,
    verify_signature,
)

__all__ = [
    "ChainType",
    "Mnemonic",
    "MnemonicValidation",
    "SignatureCheck",
    "Wallet",
    "check_mnemonic",
    "derive_wallet",
    "entropy_to_mnemonic",
    "get_wordlist",
    "mnemonic_to_entropy",
    "sign_message",
    "validate_mnemonic",
    "verify_signature",
]
