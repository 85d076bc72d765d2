"""
AuroraID - Device-Bound Cryptographic Identity
==============================================

Derives a stable identifier from device attributes and binds a BIP39
wallet to it. A hardware pairing channel can import a second wallet
from a shift-obfuscated mnemonic.

Security Notice:
- No secrets are logged
- Wallets are deterministic per device; treat the store as secret
- All paths are OS-aware
"""

__version__ = "0.1.0"

from auroraid.core.config import IdentityConfig
from auroraid.core.logging import configure_root_logger
from auroraid.core.identity.service import IdentityService

__all__ = ["IdentityConfig", "IdentityService", "configure_root_logger", "__version__"]
