"""
Device Fingerprinting
=====================

Collects locally observable environment attributes and reduces them to a
short, stable device identifier.

Derivation:
    1. Concatenate attribute values in declared order (missing ones skipped)
    2. Strip everything outside [A-Za-z0-9] and lowercase
    3. SHA-256 the result
    4. Map the first 10 digest bytes to base-36 characters (byte % 36)

WARNING:
- The attributes are non-secret and low-entropy. Anyone who can observe
  them can reproduce the DeviceId and therefore the derived wallet.
- Attributes change with OS upgrades or locale changes; the DeviceId is
  persisted after first derivation so such changes do not rotate it.
"""

from __future__ import annotations

import hashlib
import locale
import logging
import os
import platform
import re
import time
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Final, Mapping, Optional

from auroraid.core.errors import InternalConsistencyError


logger = logging.getLogger(__name__)

DEVICE_ID_LENGTH: Final[int] = 10
DEVICE_ID_ALPHABET: Final[str] = "0123456789abcdefghijklmnopqrstuvwxyz"

_DEVICE_ID_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9]{10}$")
_NON_ALNUM_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9]")

_LOCALTIME_PATH: Final[Path] = Path("/etc/localtime")
_TIMEZONE_FILE: Final[Path] = Path("/etc/timezone")
_ZONEINFO_MARKER: Final[str] = "zoneinfo/"


@dataclass(frozen=True, slots=True)
class DeviceFingerprint:
    """
    Ordered set of environment attributes.

    Field order is the hashing order. ``None`` marks an attribute that
    could not be observed on this host.
    """
    user_agent: Optional[str] = None
    screen_resolution: Optional[str] = None
    timezone: Optional[str] = None
    language: Optional[str] = None
    platform: Optional[str] = None
    hardware_concurrency: Optional[int] = None
    device_memory: Optional[int] = None

    def values(self) -> list[str]:
        """Present attribute values, in declared order, as strings."""
        result = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                result.append(str(value))
        return result

    def canonical(self) -> str:
        """Concatenated, alphanumeric-only, lowercase form fed to the hash."""
        return _NON_ALNUM_RE.sub("", "".join(self.values())).lower()

    def __repr__(self) -> str:
        present = sum(1 for f in fields(self) if getattr(self, f.name) is not None)
        return f"DeviceFingerprint(attributes={present})"


def is_valid_device_id(value: object) -> bool:
    """Check that ``value`` is exactly 10 characters of [a-z0-9]."""
    return isinstance(value, str) and _DEVICE_ID_RE.fullmatch(value) is not None


def digest_to_device_id(digest: bytes) -> str:
    """Map the first 10 bytes of a digest to base-36 characters."""
    if len(digest) < DEVICE_ID_LENGTH:
        raise ValueError(f"Digest must be at least {DEVICE_ID_LENGTH} bytes")
    return "".join(DEVICE_ID_ALPHABET[b % 36] for b in digest[:DEVICE_ID_LENGTH])


def derive_device_id(fingerprint: DeviceFingerprint) -> str:
    """
    Derive the DeviceId for a fingerprint.

    Deterministic and total: any fingerprint, including an empty one,
    yields a valid identifier.

    Raises:
        InternalConsistencyError: If the generated value fails its own
            format check. This indicates a bug, never bad input.
    """
    digest = hashlib.sha256(fingerprint.canonical().encode("utf-8")).digest()
    device_id = digest_to_device_id(digest)

    if not is_valid_device_id(device_id):
        raise InternalConsistencyError("Generated device ID does not match required format")

    return device_id


def _zone_from_path(value: str) -> str:
    """Strip a zoneinfo directory prefix: .../zoneinfo/Europe/Berlin -> Europe/Berlin."""
    _, marker, zone = value.rpartition(_ZONEINFO_MARKER)
    return zone if marker else value


class FingerprintCollector:
    """
    Collects the Python-side analogues of browser fingerprint attributes.

    Usage:
        collector = FingerprintCollector()
        device_id = derive_device_id(collector.collect())

    Each source is read independently; a source that cannot be read is
    left as ``None`` so the fingerprint degrades instead of failing.
    """

    __slots__ = ("_screen_resolution",)

    def __init__(self, screen_resolution: Optional[str] = None) -> None:
        """
        Args:
            screen_resolution: Display geometry such as "1920x1080", when
                the embedding application knows it
        """
        self._screen_resolution = screen_resolution

    def collect(self) -> DeviceFingerprint:
        return DeviceFingerprint(
            user_agent=self._user_agent(),
            screen_resolution=self._screen_resolution,
            timezone=self._timezone(),
            language=self._language(),
            platform=self._platform(),
            hardware_concurrency=os.cpu_count(),
            device_memory=self._device_memory(),
        )

    @staticmethod
    def _user_agent() -> str:
        return (
            f"{platform.python_implementation()}/{platform.python_version()} "
            f"({platform.system()} {platform.release()}; {platform.machine()})"
        )

    @staticmethod
    def _timezone(
        environ: Optional[Mapping[str, str]] = None,
        localtime_path: Path = _LOCALTIME_PATH,
        timezone_file: Path = _TIMEZONE_FILE,
    ) -> str:
        """
        IANA zone name such as "Europe/Berlin".

        Sources in order: the TZ variable, the /etc/localtime link, then
        /etc/timezone. Hosts without any of them report their standard
        (non-DST) UTC offset, so the value never flips with the season.
        """
        env = os.environ if environ is None else environ
        tz = env.get("TZ", "").strip().lstrip(":")
        if tz:
            return _zone_from_path(tz)

        try:
            target = os.path.realpath(localtime_path)
        except OSError as exc:
            logger.debug("Cannot resolve %s: %s", localtime_path, exc)
        else:
            if _ZONEINFO_MARKER in target:
                return _zone_from_path(target)

        try:
            name = timezone_file.read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.debug("Cannot read %s: %s", timezone_file, exc)
        else:
            if name:
                return name

        offset = -time.timezone
        sign = "+" if offset >= 0 else "-"
        hours, minutes = divmod(abs(offset) // 60, 60)
        return f"UTC{sign}{hours:02d}:{minutes:02d}"

    @staticmethod
    def _language() -> Optional[str]:
        try:
            language, _ = locale.getlocale()
        except ValueError as exc:
            logger.debug("Locale unavailable for fingerprint: %s", exc)
            language = None
        if language:
            return language.replace("_", "-")
        env_lang = os.environ.get("LANG", "").split(".")[0]
        return env_lang.replace("_", "-") or None

    @staticmethod
    def _platform() -> Optional[str]:
        system = platform.system()
        if not system:
            return None
        machine = platform.machine()
        return f"{system} {machine}".strip()

    @staticmethod
    def _device_memory() -> Optional[int]:
        """Physical memory in GiB, where the OS exposes it."""
        try:
            pages = os.sysconf("SC_PHYS_PAGES")
            page_size = os.sysconf("SC_PAGE_SIZE")
        except (AttributeError, ValueError, OSError) as exc:
            logger.debug("Physical memory unavailable for fingerprint: %s", exc)
            return None
        if pages <= 0 or page_size <= 0:
            return None
        return max(1, (pages * page_size) // (1024 ** 3))


def get_device_fingerprint(screen_resolution: Optional[str] = None) -> DeviceFingerprint:
    """Collect the current host's fingerprint."""
    return FingerprintCollector(screen_resolution=screen_resolution).collect()
