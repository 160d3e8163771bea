# src/promptpack/core/sniffer.py
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from promptpack.models import RunReport, WarningKind

logger = logging.getLogger(__name__)

SNIFF_BYTES = 8192
CONTROL_RATIO = 0.3

# (offset, signature, description)
MAGIC_SIGNATURES = [
    (0, b"\x89PNG\r\n\x1a\n", "PNG image"),
    (0, b"\xff\xd8\xff", "JPEG image"),
    (0, b"GIF87a", "GIF image"),
    (0, b"GIF89a", "GIF image"),
    (0, b"%PDF-", "PDF document"),
    (0, b"PK\x03\x04", "ZIP archive"),
    (0, b"PK\x05\x06", "ZIP archive"),
    (0, b"\x1f\x8b", "gzip archive"),
    (0, b"\xfd7zXZ\x00", "xz archive"),
    (0, b"7z\xbc\xaf\x27\x1c", "7z archive"),
    (0, b"Rar!\x1a\x07", "RAR archive"),
    (0, b"\x7fELF", "ELF binary"),
    (0, b"\xfe\xed\xfa\xce", "Mach-O binary"),
    (0, b"\xfe\xed\xfa\xcf", "Mach-O binary"),
    (0, b"\xcf\xfa\xed\xfe", "Mach-O binary"),
    (0, b"\xce\xfa\xed\xfe", "Mach-O binary"),
    (0, b"\xca\xfe\xba\xbe", "Java class / fat binary"),
    (0, b"SQLite format 3\x00", "SQLite database"),
    (0, b"\x00asm", "WebAssembly module"),
]

# Printable prefixes that ordinary text can start with; only trusted when the
# sample also carries raw control bytes
WEAK_SIGNATURES = [
    (0, b"BZh", "bzip2 archive"),
    (0, b"MZ", "PE executable"),
    (0, b"OggS", "OGG media"),
    (0, b"RIFF", "RIFF media"),
    (0, b"ID3", "MP3 audio"),
    (4, b"ftyp", "MP4 media"),
]


class Classification(Enum):
    TEXT = "text"
    BINARY = "binary"


def _matches(sample: bytes, signatures) -> Optional[str]:
    for offset, signature, description in signatures:
        if sample[offset:offset + len(signature)] == signature:
            return description
    return None


def count_control_bytes(sample: bytes) -> int:
    """Bytes below 0x20 other than tab, newline, form feed and carriage return."""
    return sum(1 for byte in sample if byte < 32 and byte not in (9, 10, 12, 13))


def detect_signature(sample: bytes) -> Optional[str]:
    description = _matches(sample, MAGIC_SIGNATURES)
    if description is None:
        weak = _matches(sample, WEAK_SIGNATURES)
        if weak and count_control_bytes(sample):
            description = weak
    return description


def looks_binary(sample: bytes) -> Optional[str]:
    """Returns a short reason if the sample looks binary, None if it looks like text."""
    if not sample:
        return None
    description = detect_signature(sample)
    if description:
        return description
    if b"\x00" in sample:
        return "contains NUL bytes"
    if count_control_bytes(sample) > len(sample) * CONTROL_RATIO:
        return "mostly control characters"
    return None


class BinarySniffer:
    """Classifies files as text or binary from a bounded prefix of their bytes."""

    def __init__(self, report: Optional[RunReport] = None, sample_size: int = SNIFF_BYTES):
        self.report = report
        self.sample_size = sample_size

    def _warn(self, rel_path: str, kind: WarningKind, message: str) -> None:
        logger.debug("Skipping %s: %s", rel_path, message)
        if self.report is not None:
            self.report.warn(rel_path, kind, message)

    def classify(self, path: Path, rel_path: Optional[str] = None) -> Classification:
        rel_path = rel_path or path.name
        try:
            with path.open("rb") as f:
                sample = f.read(self.sample_size)
        except OSError as e:
            # Unreadable files are left out like binaries
            self._warn(rel_path, WarningKind.ENTRY_UNREADABLE, f"cannot read ({e.strerror or e})")
            return Classification.BINARY

        reason = looks_binary(sample)
        if reason:
            self._warn(rel_path, WarningKind.BINARY, f"binary content skipped ({reason})")
            return Classification.BINARY
        return Classification.TEXT
