"""
Core module - Contains configuration, logging, and the identity components.
"""

from auroraid.core.config import IdentityConfig
from auroraid.core.logging import configure_root_logger, SecureLogFilter

__all__ = ["IdentityConfig", "configure_root_logger", "SecureLogFilter"]
