"""
Tests for configuration loading and secret-redacting logging.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from auroraid.core.config import IdentityConfig, LoggingConfig, PathConfig, StoreConfig
from auroraid.core.errors import UnsupportedChainTypeError
from auroraid.core.logging import (
    SecureLogFilter,
    SecureRotatingFileHandler,
    StructuredLogFormatter,
    TamperAwareFormatter,
    configure_root_logger,
    redact,
)

from conftest import ABANDON_PHRASE


PRIVATE_KEY = "0x" + "1ab42cc4" * 8


@pytest.fixture
def clean_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("AURORAID_"):
            monkeypatch.delenv(key)
    return monkeypatch


def make_record(msg, args=()):
    return logging.LogRecord("auroraid.test", logging.INFO, __file__, 1, msg, args, None)


class TestIdentityConfig:

    def test_defaults(self, clean_env):
        config = IdentityConfig.load()
        assert config.store.backend == "sqlite"
        assert config.wallet.default_chain_type == "ethereum"
        assert config.logging.level == "INFO"
        assert config.store_path.name == "identity.db"
        assert config.paths.data_dir.is_absolute()

    def test_env_overrides(self, clean_env, tmp_path):
        clean_env.setenv("AURORAID_LOGGING__LEVEL", "debug")
        clean_env.setenv("AURORAID_STORE__BACKEND", "MEMORY")
        clean_env.setenv("AURORAID_WALLET__DEFAULT_CHAIN_TYPE", "Polkadot")
        clean_env.setenv("AURORAID_PATHS__DATA_DIR", str(tmp_path))
        clean_env.setenv("AURORAID_LOGGING__ENABLE_FILE", "yes")
        config = IdentityConfig.load()
        assert config.logging.level == "DEBUG"
        assert config.store.backend == "memory"
        assert config.wallet.default_chain_type == "polkadot"
        assert config.paths.data_dir == tmp_path
        assert config.logging.enable_file is True

    def test_checksum_override(self, clean_env):
        assert IdentityConfig.load().logging.include_checksums is True
        clean_env.setenv("AURORAID_LOGGING__INCLUDE_CHECKSUMS", "false")
        assert IdentityConfig.load().logging.include_checksums is False

    def test_sensitive_keys_ignored(self, clean_env):
        clean_env.setenv("AURORAID_WALLET__MNEMONIC", "abandon")
        clean_env.setenv("AURORAID_WALLET__SEED", "00")
        overrides = IdentityConfig._parse_env_overrides("AURORAID")
        assert overrides == {}

    def test_invalid_chain(self, clean_env):
        clean_env.setenv("AURORAID_WALLET__DEFAULT_CHAIN_TYPE", "bitcoin")
        with pytest.raises(UnsupportedChainTypeError):
            IdentityConfig.load()

    def test_invalid_backend(self):
        with pytest.raises(ValueError):
            StoreConfig(backend="redis")

    def test_store_filename_must_be_bare(self):
        with pytest.raises(ValueError):
            StoreConfig(filename="../escape.db")

    def test_relative_paths_rejected(self):
        with pytest.raises(ValueError):
            PathConfig(data_dir=Path("relative"))

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="LOUD")

    def test_immutable(self):
        config = IdentityConfig()
        with pytest.raises(AttributeError):
            config._store = StoreConfig(backend="memory")

    def test_hash_tracks_content(self):
        a = IdentityConfig(store=StoreConfig(backend="memory"))
        b = IdentityConfig(store=StoreConfig(backend="memory"))
        c = IdentityConfig(store=StoreConfig(backend="sqlite"))
        assert a.config_hash == b.config_hash
        assert a.config_hash != c.config_hash

    def test_repr_is_safe(self):
        text = repr(IdentityConfig())
        assert text.startswith("IdentityConfig(hash=")
        assert "AuroraID" in text

    def test_ensure_directories(self, tmp_path):
        config = IdentityConfig(paths=PathConfig(data_dir=tmp_path / "d", log_dir=tmp_path / "l"))
        config.ensure_directories()
        assert (tmp_path / "d").is_dir()
        assert (tmp_path / "l").is_dir()


class TestRedaction:

    def test_private_key_hex(self):
        text = redact(f"derived {PRIVATE_KEY} ok")
        assert PRIVATE_KEY[2:] not in text
        assert "[REDACTED]" in text

    def test_address_kept(self):
        address = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"
        assert address in redact(f"address {address}")

    def test_device_id_kept(self):
        assert "a1b2c3d4e5" in redact("device a1b2c3d4e5 ready")

    def test_mnemonic_run(self):
        text = redact(f"recovered {ABANDON_PHRASE}")
        assert "about" not in text

    def test_mnemonic_run_inside_sentence(self):
        text = redact(f"phrase: {ABANDON_PHRASE}. done")
        assert text == "phrase: word_sequence=[REDACTED]. done"

    def test_ordinary_prose_kept(self):
        prose = (
            "user said the quick brown fox jumps over the lazy dog and then "
            "walked home slowly through the quiet park"
        )
        assert redact(prose) == prose

    def test_eleven_dictionary_words_kept(self):
        short = " ".join(ABANDON_PHRASE.split()[:11])
        assert redact(short) == short

    def test_key_value_secrets(self):
        assert "hunter2" not in redact("passphrase=hunter2")
        assert "abc123" not in redact("private_key: abc123")


class TestSecureLogFilter:

    def test_sanitizes_args(self):
        record = make_record("wallet %s with key %s", (ABANDON_PHRASE, PRIVATE_KEY))
        assert SecureLogFilter().filter(record) is True
        message = record.getMessage()
        assert "abandon" not in message
        assert PRIVATE_KEY[2:] not in message

    def test_sanitizes_message(self):
        record = make_record(f"mnemonic={ABANDON_PHRASE}")
        SecureLogFilter().filter(record)
        assert "abandon" not in record.getMessage()

    def test_additional_patterns(self):
        import re

        record = make_record("device a1b2c3d4e5")
        SecureLogFilter(additional_patterns=[re.compile(r"[a-z0-9]{10}")]).filter(record)
        assert "a1b2c3d4e5" not in record.getMessage()


class TestFormattersAndHandlers:

    def test_structured_formatter(self):
        record = make_record("hello %s", ("world",))
        data = json.loads(StructuredLogFormatter().format(record))
        assert data["message"] == "hello world"
        assert data["level"] == "INFO"

    def test_tamper_aware_checksums_differ(self):
        formatter = TamperAwareFormatter("%(message)s")
        first = formatter.format(make_record("same"))
        second = formatter.format(make_record("same"))
        assert "|CHK:" in first
        assert first != second

    def test_rotating_handler_rejects_traversal(self, tmp_path):
        with pytest.raises(ValueError):
            SecureRotatingFileHandler(tmp_path / ".." / "escape.log")

    def test_root_file_log_is_redacted_and_checksummed(self, tmp_path, restore_root_logger):
        configure_root_logger(log_dir=tmp_path, enable_console=False)
        logging.getLogger("auroraid.test.file").info("key %s", PRIVATE_KEY)
        for handler in restore_root_logger.handlers:
            handler.flush()

        content = (tmp_path / "auroraid.log").read_text()
        assert PRIVATE_KEY[2:] not in content
        assert "auroraid.test.file" in content
        assert "|CHK:" in content

    def test_root_file_log_without_checksums(self, tmp_path, restore_root_logger):
        configure_root_logger(log_dir=tmp_path, enable_console=False, include_checksums=False)
        logging.getLogger("auroraid.test.plain").warning("plain entry")
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "|CHK:" not in (tmp_path / "auroraid.log").read_text()

    def test_root_json_log(self, tmp_path, restore_root_logger):
        configure_root_logger(log_dir=tmp_path, enable_console=False, enable_json=True)
        logging.getLogger("auroraid.test.json").warning("hello %s", "json")
        for handler in restore_root_logger.handlers:
            handler.flush()
        line = (tmp_path / "auroraid.log").read_text().splitlines()[0]
        data = json.loads(line)
        assert data["logger"] == "auroraid.test.json"
        assert data["message"] == "hello json"

    def test_root_handlers_replaced(self, restore_root_logger):
        configure_root_logger(enable_file=False)
        configure_root_logger(enable_file=False)
        assert len(restore_root_logger.handlers) == 1
