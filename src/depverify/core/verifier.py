"""Presence/reference verification with one bounded remediation per unit."""

from __future__ import annotations

import posixpath
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

import structlog

from ..errors import ConfigError, FilesystemError, RefNotFound, TransportError, TransportUnreachable
from .model import ContentUnit, ErrorKind, UnitResult, UnitStatus, VerificationReport, escapes_root
from .ports import CancelToken, Transport, Workspace

logger = structlog.get_logger()

REMEDIATED_MESSAGE = "re-acquired from source"
CANCELLED_MESSAGE = "Cancelled"


@dataclass(frozen=True)
class VerifyOptions:
    allow_remediation: bool = True
    shallow: bool = True
    timeout: float = 120.0
    workers: int = 1
    require_units: bool = False


class Verifier:
    """
    Runs check -> remediate -> re-check for each unit independently.

    Remediation removes the unit's local path before re-acquiring it. Do not
    enable it on checkouts holding local modifications that must survive.
    """

    def __init__(
        self,
        workspace: Workspace,
        transport: Transport,
        options: VerifyOptions | None = None,
    ):
        self.workspace = workspace
        self.transport = transport
        self.options = options or VerifyOptions()

    def check(self, unit: ContentUnit) -> tuple[UnitStatus, str]:
        """Classify a unit's local state without touching it."""
        path = unit.local_path
        if not self.workspace.exists(path):
            return UnitStatus.MISSING, f"{path} does not exist"
        if self.workspace.is_empty(path):
            return UnitStatus.EMPTY, f"{path} is empty"
        for rel in unit.required_files:
            if not self.workspace.exists(posixpath.join(path, rel)):
                return UnitStatus.EMPTY, f"{path} is incomplete: {rel} not found"
        if unit.expected_ref:
            if not self.transport.resolve_ref(path, unit.expected_ref, self.options.timeout):
                return (
                    UnitStatus.REF_MISMATCH,
                    f"ref {unit.expected_ref} is not reachable in {path} "
                    f"(source: {unit.canonical_source})",
                )
        return UnitStatus.PRESENT, ""

    def remediate(self, unit: ContentUnit, detected: UnitStatus) -> UnitResult:
        """Single destructive re-acquisition followed by a re-check."""
        log = logger.bind(unit=unit.name, path=unit.local_path)
        log.info("remediation_started", detected=detected.value, source=unit.canonical_source)
        try:
            self.workspace.remove(unit.local_path)
            self.transport.acquire(
                unit.canonical_source,
                unit.local_path,
                unit.expected_ref,
                self.options.shallow,
                self.options.timeout,
            )
            status, message = self.check(unit)
        except TransportUnreachable as e:
            return self._failed(log, unit, ErrorKind.TRANSPORT_UNREACHABLE, str(e))
        except RefNotFound as e:
            return self._failed(log, unit, ErrorKind.REF_NOT_FOUND, str(e))
        except FilesystemError as e:
            return self._failed(log, unit, ErrorKind.FILESYSTEM_ERROR, str(e))

        if status is UnitStatus.PRESENT:
            log.info("unit_remediated")
            return UnitResult(unit, UnitStatus.REMEDIATED, REMEDIATED_MESSAGE)

        log.error("remediation_incomplete", status=status.value, reason=message)
        return UnitResult(
            unit,
            UnitStatus.FAILED,
            f"still {status.value} after re-acquisition: {message}",
        )

    def verify_unit(self, unit: ContentUnit) -> UnitResult:
        try:
            status, message = self.check(unit)
        except (TransportError, FilesystemError) as e:
            if isinstance(e, FilesystemError):
                kind = ErrorKind.FILESYSTEM_ERROR
            elif isinstance(e, RefNotFound):
                kind = ErrorKind.REF_NOT_FOUND
            else:
                kind = ErrorKind.TRANSPORT_UNREACHABLE
            return self._failed(logger.bind(unit=unit.name), unit, kind, str(e), event="check_failed")

        if status is UnitStatus.PRESENT:
            logger.debug("unit_present", unit=unit.name)
            return UnitResult(unit, status, message)

        logger.warning("unit_not_present", unit=unit.name, status=status.value, reason=message)
        if not self.options.allow_remediation:
            return UnitResult(unit, status, message)
        return self.remediate(unit, status)

    def verify(
        self,
        units: Sequence[ContentUnit],
        cancel: CancelToken | None = None,
    ) -> VerificationReport:
        """
        Verify every unit and return a report in input order.

        Raises ConfigError only for an invalid unit list; per-unit failures
        are always captured in the report.
        """
        _validate_units(units, self.options.require_units)
        cancel = cancel or CancelToken()

        def run(unit: ContentUnit) -> UnitResult:
            if cancel.cancelled:
                logger.info("unit_cancelled", unit=unit.name)
                return UnitResult(unit, UnitStatus.FAILED, CANCELLED_MESSAGE, ErrorKind.CANCELLED)
            try:
                return self.verify_unit(unit)
            except Exception as e:
                logger.exception("unit_crashed", unit=unit.name)
                return UnitResult(unit, UnitStatus.FAILED, f"{type(e).__name__}: {e}")

        if self.options.workers > 1 and len(units) > 1:
            with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
                results = list(pool.map(run, units))
        else:
            results = [run(u) for u in units]

        report = VerificationReport(results=results)
        logger.info(
            "verification_finished",
            units=len(report),
            failed=len(report.failed),
            ok=report.overall_ok,
        )
        return report

    def _failed(
        self, log, unit: ContentUnit, kind: ErrorKind, detail: str, event: str = "remediation_failed"
    ) -> UnitResult:
        log.error(event, error=kind.value, detail=detail)
        return UnitResult(unit, UnitStatus.FAILED, f"{kind.value}: {detail}", kind)


def verify(
    units: Sequence[ContentUnit],
    options: VerifyOptions,
    workspace: Workspace,
    transport: Transport,
    cancel: CancelToken | None = None,
) -> VerificationReport:
    """Functional entry point around Verifier."""
    return Verifier(workspace, transport, options).verify(units, cancel=cancel)


def _validate_units(units: Sequence[ContentUnit], require_units: bool) -> None:
    if require_units and not units:
        raise ConfigError("no content units configured")
    seen: set[str] = set()
    for unit in units:
        if unit.name in seen:
            raise ConfigError(f"duplicate unit name: {unit.name}")
        seen.add(unit.name)
        if escapes_root(unit.local_path):
            raise ConfigError(f"unit {unit.name}: path {unit.local_path!r} is not below the project root")
