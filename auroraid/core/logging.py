"""
Secure Logging Module
=====================

Provides security-aware logging with secret filtering.

Security Features:
- Automatic redaction of private keys, mnemonic phrases and key/value secrets
- Rotating log files with size limits
- Optional tamper-aware checksums and JSON output
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import sys
from datetime import datetime, timezone
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Optional, Pattern

from mnemonic import Mnemonic


# Patterns for sensitive data detection
_SENSITIVE_PATTERNS: Final[list[tuple[str, Pattern[str]]]] = [
    ("password", re.compile(r'(?i)(password|passwd|pwd|passphrase)\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    ("secret", re.compile(r'(?i)(secret|private[_-]?key|privatekey)\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    ("mnemonic", re.compile(r'(?i)(mnemonic|seed[_-]?phrase)\s*[=:]\s*["\']?[a-z ]+["\']?')),
    ("token", re.compile(r'(?i)(token|bearer)\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    # Private keys and seeds: 64+ hex chars. Addresses (40 hex) stay readable.
    ("hex_secret", re.compile(r'(?i)\b(?:0x)?[a-f0-9]{64,}\b')),
]

_REDACTED_TEXT: Final[str] = "[REDACTED]"

_WORD_RE: Final[Pattern[str]] = re.compile(r"[A-Za-z]+")
_MNEMONIC_MIN_WORDS: Final[int] = 12

_CONSOLE_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_FILE_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"


@lru_cache(maxsize=1)
def _bip39_words() -> frozenset[str]:
    return frozenset(Mnemonic("english").wordlist)


def _mnemonic_spans(text: str) -> list[tuple[int, int]]:
    """Spans of 12+ whitespace-separated BIP39 dictionary words."""
    dictionary = _bip39_words()
    spans: list[tuple[int, int]] = []
    run: list[re.Match[str]] = []

    def close_run() -> None:
        if len(run) >= _MNEMONIC_MIN_WORDS:
            spans.append((run[0].start(), run[-1].end()))

    for match in _WORD_RE.finditer(text):
        if match.group().lower() not in dictionary:
            close_run()
            run = []
            continue
        if run and not text[run[-1].end():match.start()].isspace():
            close_run()
            run = []
        run.append(match)
    close_run()
    return spans


def redact(text: str) -> str:
    """Redact secrets from a piece of text."""
    result = text
    for name, pattern in _SENSITIVE_PATTERNS:
        result = pattern.sub(f"{name}={_REDACTED_TEXT}", result)
    for start, end in reversed(_mnemonic_spans(result)):
        result = f"{result[:start]}word_sequence={_REDACTED_TEXT}{result[end:]}"
    return result


class SecureLogFilter(logging.Filter):
    """
    Log filter that removes sensitive information from log messages.

    Records are never dropped, only sanitized.
    """

    def __init__(self, name: str = "", additional_patterns: Optional[list[Pattern[str]]] = None) -> None:
        super().__init__(name)
        self._additional_patterns = additional_patterns or []

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg and isinstance(record.msg, str):
            record.msg = self._sanitize(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._sanitize(v) if isinstance(v, str) else v
                               for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._sanitize(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return True

    def _sanitize(self, text: str) -> str:
        result = redact(text)
        for pattern in self._additional_patterns:
            result = pattern.sub(_REDACTED_TEXT, result)
        return result


class TamperAwareFormatter(logging.Formatter):
    """
    Log formatter that adds integrity checksums to log entries.

    Each entry carries a checksum over its sequence number, timestamp and
    text so that edits to the log file can be detected.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        include_checksum: bool = True,
    ) -> None:
        super().__init__(fmt, datefmt)
        self._include_checksum = include_checksum
        self._sequence = 0

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if self._include_checksum:
            self._sequence += 1
            checksum_data = f"{self._sequence}:{record.created}:{message}"
            checksum = hashlib.sha256(checksum_data.encode()).hexdigest()[:12]
            message = f"{message} |CHK:{checksum}"

        return message


class StructuredLogFormatter(logging.Formatter):
    """Formatter that outputs logs in JSON format for easy parsing."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class SecureRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that creates its directory and rejects
    path traversal in the log file name.
    """

    def __init__(
        self,
        filename: str | Path,
        mode: str = "a",
        maxBytes: int = 10 * 1024 * 1024,
        backupCount: int = 5,
        encoding: str = "utf-8",
    ) -> None:
        if ".." in Path(filename).parts:
            raise ValueError("Log path cannot contain path traversal sequences")

        log_path = Path(filename).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        super().__init__(
            str(log_path),
            mode=mode,
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding=encoding,
        )


def configure_root_logger(
    log_dir: Optional[Path] = None,
    level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    enable_json: bool = False,
    include_checksums: bool = True,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure the root logger with secure defaults.

    Called once at application startup (the CLI does this) so every
    ``logging.getLogger(__name__)`` in the package inherits the filter.

    Args:
        log_dir: Directory for auroraid.log (file output is skipped without it)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Whether to output to stderr
        enable_file: Whether to output to the rotating log file
        enable_json: Whether to use JSON format for file output
        include_checksums: Whether plain-text file entries carry integrity checksums
        max_file_size: Maximum log file size before rotation
        backup_count: Number of backup files to keep
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    secure_filter = SecureLogFilter()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        console_handler.addFilter(secure_filter)
        root_logger.addHandler(console_handler)

    if enable_file and log_dir:
        file_handler = SecureRotatingFileHandler(
            filename=log_dir / "auroraid.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)

        if enable_json:
            file_formatter: logging.Formatter = StructuredLogFormatter()
        elif include_checksums:
            file_formatter = TamperAwareFormatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        else:
            file_formatter = logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

        file_handler.setFormatter(file_formatter)
        file_handler.addFilter(secure_filter)
        root_logger.addHandler(file_handler)
