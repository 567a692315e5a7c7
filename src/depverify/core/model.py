from __future__ import annotations

import enum
import posixpath
from dataclasses import dataclass, field
from pathlib import PurePosixPath, PureWindowsPath
from typing import Iterator


class UnitStatus(enum.Enum):
    PRESENT = "present"
    MISSING = "missing"
    EMPTY = "empty"
    REF_MISMATCH = "ref_mismatch"
    REMEDIATED = "remediated"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self in (UnitStatus.PRESENT, UnitStatus.REMEDIATED)

    @property
    def needs_remediation(self) -> bool:
        return self in (UnitStatus.MISSING, UnitStatus.EMPTY, UnitStatus.REF_MISMATCH)


class ErrorKind(enum.Enum):
    TRANSPORT_UNREACHABLE = "TransportUnreachable"
    REF_NOT_FOUND = "RefNotFound"
    FILESYSTEM_ERROR = "FilesystemError"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class ContentUnit:
    name: str
    local_path: str  # relative to the project root
    canonical_source: str
    expected_ref: str | None = None
    required_files: tuple[str, ...] = ()
    variants: tuple[str, ...] = ()  # empty: needed by every variant

    def wanted_by(self, variant: str | None) -> bool:
        return variant is None or not self.variants or variant in self.variants


@dataclass(frozen=True)
class UnitResult:
    unit: ContentUnit
    status: UnitStatus
    message: str = ""
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.status.ok


@dataclass
class VerificationReport:
    """Per-unit results in input order."""

    results: list[UnitResult] = field(default_factory=list)

    @property
    def overall_ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def failed(self) -> list[UnitResult]:
        return [r for r in self.results if not r.ok]

    def __iter__(self) -> Iterator[UnitResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)


def escapes_root(path: str) -> bool:
    """True if a unit path is absolute, the root itself, or reaches above it."""
    if PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute():
        return True
    normalized = posixpath.normpath(path.replace("\\", "/"))
    return normalized == "." or normalized == ".." or normalized.startswith("../")
