"""CLI for depverify - verify external content units before a build."""

import argparse
import json
import platform
import shutil
import signal
import subprocess
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .core.ports import CancelToken
from .core.verifier import Verifier, VerifyOptions
from .log import setup_logging
from .report import format_report
from .runtime import build_runtime


def cmd_verify(args: argparse.Namespace, rt: Any) -> int:
    """Verify units and remediate the broken ones."""
    cfg = rt.config.verify
    units = rt.select_units(args.units, variant=args.variant)

    options = VerifyOptions(
        allow_remediation=cfg.remediate and not args.check_only,
        shallow=cfg.shallow and not args.full_history,
        timeout=args.timeout if args.timeout is not None else cfg.timeout,
        workers=args.workers if args.workers is not None else cfg.workers,
        require_units=cfg.require_units,
    )
    strict = cfg.strict if args.strict is None else args.strict
    fmt = args.format or ("json" if args.json else "text")

    if not args.quiet and fmt == "text":
        mode = "check-only" if not options.allow_remediation else "remediate"
        print(f"Verifying {len(units)} unit(s) in {rt.root} ({mode})")

    cancel = CancelToken()
    previous = signal.getsignal(signal.SIGINT)

    def on_interrupt(signum, frame):
        print("Interrupted: finishing current unit, cancelling the rest", file=sys.stderr)
        cancel.cancel()

    signal.signal(signal.SIGINT, on_interrupt)
    try:
        report = Verifier(rt.workspace, rt.transport, options).verify(units, cancel=cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    if not (args.quiet and report.overall_ok):
        print(format_report(report, fmt=fmt))

    if report.overall_ok or not strict:
        return 0
    return 1


def cmd_list(args: argparse.Namespace, rt: Any) -> int:
    """List configured and discovered units."""
    units = rt.select_units(variant=args.variant) if args.variant else rt.all_units()

    if args.json:
        print(json.dumps([
            {
                "name": u.name,
                "path": u.local_path,
                "source": u.canonical_source,
                "expected_ref": u.expected_ref,
                "required": list(u.required_files),
                "variants": list(u.variants),
            }
            for u in units
        ], indent=2))
        return 0

    if not units:
        print("No units configured")
        return 0

    for u in units:
        line = f"{u.name}\t{u.local_path}\t{u.canonical_source}"
        if u.expected_ref:
            line += f"\t@{u.expected_ref}"
        if u.variants:
            line += f"\t[{', '.join(u.variants)}]"
        print(line)
    return 0


def cmd_doctor(args: argparse.Namespace, rt: Any) -> int:
    """Check that the tools and project layout needed for remediation exist."""
    issues = []

    git = shutil.which(rt.git)
    if git is None:
        print(f"✗ git not found on PATH ({rt.git})")
        issues.append("git_missing")
    else:
        result = subprocess.run([git, "--version"], capture_output=True, text=True, timeout=10)
        print(f"✓ {result.stdout.strip() or git}")

    root = rt.root
    if not root.is_dir():
        print(f"✗ Project root does not exist: {root}")
        issues.append("root_missing")
    else:
        print(f"✓ Project root: {root}")
        if (root / ".git").exists():
            print("✓ Project root is a git repository")
        else:
            print("⚠ Project root is not a git repository; submodule pins unavailable")

    if rt.config.source:
        print(f"✓ Config: {rt.config.source}")
    else:
        print("⚠ No depverify.toml found, using defaults")

    if not issues:
        units = rt.all_units()
        if units:
            print(f"✓ {len(units)} unit(s) configured")
        else:
            print("✗ No units configured")
            issues.append("no_units")

    if issues:
        print("\nRecommendations:")
        if "git_missing" in issues:
            print("  Install git: https://git-scm.com/downloads")
        if "no_units" in issues:
            print("  Add [[unit]] tables to depverify.toml or a .gitmodules file")
        return 1

    print("\n✓ All checks passed")
    return 0


def version_string() -> str:
    return (
        f"depverify {__version__} "
        f"(python {platform.python_version()}, platform {sys.platform})"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depverify", description="Verify and repair external content units before a build"
    )
    parser.add_argument("--version", action="version", version=version_string())
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/depverify.toml, root/depverify.toml)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Project root that unit paths are relative to (overrides config)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )
    parser.add_argument(
        "--log-format", choices=["console", "json"], default="console", help="Log line format"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # verify command
    parser_verify = subparsers.add_parser("verify", help="Verify units, remediating failures")
    parser_verify.add_argument(
        "units", nargs="*", help="Unit names or paths (default: all configured units)"
    )
    parser_verify.add_argument(
        "--check-only", action="store_true", help="Report only; never modify local checkouts"
    )
    parser_verify.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Exit 1 when any unit fails (default: from config, on)",
    )
    parser_verify.add_argument("--variant", default=None, help="Build variant to verify for")
    parser_verify.add_argument(
        "--timeout", type=float, default=None, help="Seconds allowed per transport call"
    )
    parser_verify.add_argument(
        "--workers", type=int, default=None, help="Units verified in parallel"
    )
    parser_verify.add_argument(
        "--full-history", action="store_true", help="Acquire full history instead of shallow"
    )
    parser_verify.add_argument(
        "--format", choices=["text", "json", "yaml"], default=None, help="Report format"
    )

    # list command
    parser_list = subparsers.add_parser("list", help="List configured units")
    parser_list.add_argument("--variant", default=None, help="Only units needed by this variant")

    # doctor command
    subparsers.add_parser("doctor", help="Check tools and project layout")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else "INFO")
    setup_logging(level=level, fmt=args.log_format)

    handlers = {
        "verify": cmd_verify,
        "list": cmd_list,
        "doctor": cmd_doctor,
    }
    handler = handlers.get(args.cmd)
    if handler is None:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)

    try:
        rt = build_runtime(root=args.root, config_path=args.config)
        exit_code = handler(args, rt)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
