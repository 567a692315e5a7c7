"""Rendering of verification reports."""

import json
import shlex

from .core.model import ErrorKind, UnitResult, VerificationReport


def manual_command(result: UnitResult) -> str | None:
    """
    Shell command an operator can run to fix a failing unit by hand.

    Returns None for units that passed.
    """
    if result.ok:
        return None
    unit = result.unit
    if result.error is ErrorKind.CANCELLED:
        return f"depverify verify {shlex.quote(unit.name)}"

    path = shlex.quote(unit.local_path)
    source = shlex.quote(unit.canonical_source)
    if not unit.expected_ref:
        return f"rm -rf {path} && git clone --depth 1 {source} {path}"

    ref = shlex.quote(unit.expected_ref)
    return (
        f"rm -rf {path} && git clone --no-checkout --depth 1 {source} {path}"
        f" && git -C {path} fetch --depth 1 origin {ref}"
        f" && git -C {path} checkout --detach FETCH_HEAD"
    )


def format_line(result: UnitResult) -> str:
    mark = "✓" if result.ok else "✗"
    line = f"{mark} {result.unit.name}: {result.status.value}"
    if result.message:
        line += f" - {result.message}"
    command = manual_command(result)
    if command:
        line += f"  [run: {command}]"
    return line


def report_to_dict(report: VerificationReport) -> dict:
    return {
        "overall_ok": report.overall_ok,
        "units": [
            {
                "name": r.unit.name,
                "path": r.unit.local_path,
                "source": r.unit.canonical_source,
                "expected_ref": r.unit.expected_ref,
                "status": r.status.value,
                "message": r.message,
                "error": r.error.value if r.error else None,
                "command": manual_command(r),
            }
            for r in report
        ],
    }


def format_report(report: VerificationReport, fmt: str = "text") -> str:
    """Format a verification report for display.

    Args:
        report: The verification report
        fmt: "text", "json" or "yaml"

    Returns:
        Formatted report string
    """
    if fmt == "json":
        return json.dumps(report_to_dict(report), indent=2)
    if fmt == "yaml":
        import yaml
        return yaml.safe_dump(report_to_dict(report), sort_keys=False, allow_unicode=True).rstrip("\n")

    lines = [format_line(r) for r in report]
    failed = len(report.failed)
    if lines:
        lines.append("")
    if report.overall_ok:
        lines.append(f"All {len(report)} unit(s) OK")
    else:
        lines.append(f"{failed} of {len(report)} unit(s) failing")
    return "\n".join(lines)
