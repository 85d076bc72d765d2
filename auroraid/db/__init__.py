"""
Database module - Key-value persistence for wallet records.

Security Considerations:
- Wallet records hold secrets; keep the store file owner-readable only
- No secrets in log output from any backend
"""

from auroraid.db.kv_store import KeyValueStore, MemoryStore, SqliteStore, open_store

__all__ = ["KeyValueStore", "MemoryStore", "SqliteStore", "open_store"]
