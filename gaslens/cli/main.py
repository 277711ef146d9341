"""gaslens CLI — gas hotspots and storage history from compiler artifacts.

Usage:
    gaslens analyze <artifact> --source <file>   Rank gas hotspots in a contract
    gaslens state <artifact> [--trace <file>...] Reconstruct storage state
    gaslens config                               Show current configuration

Examples:
    gaslens analyze out/Token.sol/Token.json --source src/Token.sol
    gaslens analyze build.json --contract Token --source Token.sol --trace tx.json -f json
    gaslens state out/Token.sol/Token.json --trace mint.json --trace transfer.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from gaslens import __version__
from gaslens.analyzer.hotspots import HotspotReport
from gaslens.core.config import get_settings
from gaslens.core.errors import ErrorCode, GasLensError
from gaslens.core.logging import SessionLogFilter, setup_logging
from gaslens.core.types import GasHotspot, Severity, StateEntry, StateSnapshot
from gaslens.ingestion.artifacts import load_artifact
from gaslens.pipeline.session import AnalysisSession

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CRITICAL = 2


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"

_SEV_COLOR = {
    "critical": _RED,
    "high": "\033[38;5;208m",  # orange
    "warning": _YELLOW,
    "optimal": _GREEN,
}


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── Banner ───────────────────────────────────────────────────────────────────

BANNER = rf"""
{_BOLD}{_CYAN}  __ _  __ _ ___| | ___ _ __  ___
 / _` |/ _` / __| |/ _ \ '_ \/ __|
| (_| | (_| \__ \ |  __/ | | \__ \
 \__, |\__,_|___/_|\___|_| |_|___/
 |___/{_RESET}
  {_DIM}EVM gas attribution — v{__version__}{_RESET}
"""


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gaslens",
        description="gaslens — EVM gas hotspots and storage state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--no-banner", action="store_true", help="Suppress the startup banner")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")

    sub = parser.add_subparsers(dest="command")

    # ── analyze ──────────────────────────────────────────────────────────────
    analyze_p = sub.add_parser("analyze", help="Rank gas hotspots for a compiled contract")
    analyze_p.add_argument("artifact", help="solc standard JSON, Hardhat or Foundry artifact")
    analyze_p.add_argument("--source", "-s", required=True, help="Solidity source file")
    analyze_p.add_argument("--contract", "-c", help="Contract name (Name or path:Name)")
    analyze_p.add_argument("--trace", "-t", help="debug_traceTransaction JSON to refine costs")
    analyze_p.add_argument(
        "--creation", action="store_true", help="Analyze creation code instead of runtime code",
    )
    analyze_p.add_argument(
        "--format", "-f", default="table", choices=["table", "json"],
        help="Output format (default: table)",
    )
    analyze_p.add_argument(
        "--min-severity",
        choices=[s.value for s in Severity],
        help="Minimum severity to report",
    )
    analyze_p.add_argument("--output", "-o", help="Write output to file instead of stdout")

    # ── state ────────────────────────────────────────────────────────────────
    state_p = sub.add_parser("state", help="Reconstruct storage state from traces")
    state_p.add_argument("artifact", help="Artifact with a storage layout")
    state_p.add_argument("--contract", "-c", help="Contract name (Name or path:Name)")
    state_p.add_argument(
        "--trace", "-t", action="append", default=[],
        help="Trace JSON to apply (repeatable, applied in order)",
    )
    state_p.add_argument("--snapshot", type=int, help="Show state as of this snapshot id")
    state_p.add_argument(
        "--format", "-f", default="table", choices=["table", "json"],
        help="Output format (default: table)",
    )

    # ── config ───────────────────────────────────────────────────────────────
    sub.add_parser("config", help="Show current configuration")

    return parser


def _read_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise GasLensError(ErrorCode.INVALID_INPUT, f"Cannot read {path}: {e}") from e


def _emit(text: str, output: str | None) -> None:
    if output:
        try:
            Path(output).write_text(text, encoding="utf-8")
        except OSError as e:
            raise GasLensError(ErrorCode.INVALID_INPUT, f"Cannot write {output}: {e}") from e
    else:
        print(text)


# ── Analyze command ──────────────────────────────────────────────────────────


def _filter_hotspots(hotspots: list[GasHotspot], min_severity: str | None) -> list[GasHotspot]:
    if not min_severity:
        return list(hotspots)
    cutoff = Severity(min_severity).rank
    return [h for h in hotspots if h.severity.rank <= cutoff]


def _format_hotspots(
    name: str,
    report: HotspotReport,
    hotspots: list[GasHotspot],
    quiet: bool = False,
    color: bool = True,
) -> str:
    """Hotspots as a coloured table."""
    paint = _c if color else (lambda text, _code: text)
    lines: list[str] = []
    diag = report.diagnostics

    if not quiet:
        lines.append(f"\n{paint('Gas analysis', _BOLD)} — {name}")
        lines.append(
            f"  Instructions: {diag.instruction_count}"
            f"  |  Attributed gas: {report.total_gas}"
            f"  |  Duration: {report.analysis_time_sec:.2f}s\n"
        )
        if diag.degraded:
            lines.append(paint(
                f"  ! degraded input: {diag.unknown_opcodes} unknown opcodes, "
                f"{diag.unmapped_instructions} unmapped instructions, "
                f"{diag.skipped_trace_entries} skipped trace entries\n",
                _YELLOW,
            ))

    if diag.nothing_to_analyze:
        lines.append(paint("  No bytecode (abstract contract or library); nothing to analyze.", _DIM))
        return "\n".join(lines)
    if not hotspots:
        lines.append(paint("  ✓ No hotspots at the requested severity level.", _GREEN))
        return "\n".join(lines)

    counts = {sev: sum(1 for h in hotspots if h.severity == sev) for sev in Severity}
    lines.append("  " + " · ".join(
        paint(f"{n} {sev.value.upper()}", _SEV_COLOR[sev.value])
        for sev, n in sorted(counts.items(), key=lambda kv: kv[0].rank) if n
    ) + "\n")

    for i, h in enumerate(hotspots, 1):
        badge = paint(f" {h.severity.value.upper()} ", _SEV_COLOR[h.severity.value] + _BOLD)
        loc = paint(f"  L{h.start.line + 1}:{h.start.column + 1}", _DIM)
        pattern = f"  [{h.pattern.value}]" if h.pattern.value != "none" else ""
        refined = paint(" (runtime)", _DIM) if h.runtime_refined else ""
        lines.append(
            f"  {paint(f'{i:>3}.', _DIM)} {badge} {paint(f'{h.gas_used} gas', _BOLD)}"
            f"{refined}{loc}{pattern}"
        )
        if not quiet:
            lines.append(f"       {paint(h.recommendation, _DIM)}")
            ops = " ".join(h.opcodes_involved[:12])
            if len(h.opcodes_involved) > 12:
                ops += " …"
            lines.append(f"       {paint('Opcodes: ' + ops, _DIM)}")
        lines.append("")
    return "\n".join(lines)


def _run_analyze(args: argparse.Namespace, session: AnalysisSession) -> int:
    contract = load_artifact(args.artifact, args.contract)
    try:
        source_code = Path(args.source).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise GasLensError(ErrorCode.INVALID_INPUT, f"Cannot read {args.source}: {e}") from e
    trace = _read_json(args.trace) if args.trace else None

    if not args.quiet:
        print(f"  Analyzing {_c(contract.qualified_name, _CYAN)}…", file=sys.stderr)

    report = session.analyze_gas(contract, source_code, trace=trace, creation=args.creation)
    hotspots = _filter_hotspots(report.hotspots, args.min_severity)

    if args.format == "json":
        payload = report.to_dict()
        payload["contract"] = contract.qualified_name
        payload["hotspots"] = [h.model_dump(mode="json") for h in hotspots]
        if trace is not None:
            usage = session.record_gas_usage(trace)
            if usage is not None:
                payload["gas_usage"] = {
                    "function_name": usage.function_name,
                    "gas_used": usage.gas_used,
                    "recommendations": usage.recommendations,
                }
        _emit(json.dumps(payload, indent=2), args.output)
    else:
        _emit(
            _format_hotspots(
                contract.qualified_name, report, hotspots,
                quiet=args.quiet, color=not args.output,
            ),
            args.output,
        )

    if any(h.severity == Severity.CRITICAL for h in report.hotspots):
        return EXIT_CRITICAL
    return EXIT_OK


# ── State command ────────────────────────────────────────────────────────────


def _format_state(
    snapshots: list[StateSnapshot],
    state: dict[str, StateEntry],
    quiet: bool = False,
) -> str:
    lines: list[str] = []
    if not quiet:
        lines.append(f"\n{_BOLD}Snapshots{_RESET}")
        for snap in snapshots:
            kind = snap.context_info.get("type", "?")
            tx = f"  {_DIM}{snap.transaction_hash}{_RESET}" if snap.transaction_hash else ""
            lines.append(f"  {_DIM}#{snap.id:<3}{_RESET} {kind:<14} {len(snap.changes)} changes{tx}")
        lines.append("")

    lines.append(f"{_BOLD}Current state{_RESET}")
    if not state:
        lines.append(_c("  (no storage values recorded)", _DIM))
    width = max((len(k) for k in state), default=0)
    for key, entry in state.items():
        lines.append(
            f"  {_c(key.ljust(width), _CYAN)}  {entry.display_value}"
            f"  {_DIM}{entry.type} @ {entry.slot}, #{entry.last_changed} {entry.operation}{_RESET}"
        )
    return "\n".join(lines)


def _run_state(args: argparse.Namespace, session: AnalysisSession) -> int:
    contract = load_artifact(args.artifact, args.contract)
    session.load_state(contract)
    for path in args.trace:
        snapshot = session.apply_trace(_read_json(path))
        if not args.quiet:
            print(
                f"  Applied {_c(path, _CYAN)}: {len(snapshot.changes)} storage changes",
                file=sys.stderr,
            )

    if args.snapshot is not None and session.state.get_snapshot(args.snapshot) is None:
        raise GasLensError(
            ErrorCode.INVALID_INPUT,
            f"No snapshot {args.snapshot}; {len(session.state.snapshots())} recorded",
        )
    state = session.state.current_state(args.snapshot)
    snapshots = session.state.snapshots()

    if args.format == "json":
        print(json.dumps({
            "contract": contract.qualified_name,
            "snapshots": [s.model_dump(mode="json") for s in snapshots],
            "current_state": {k: v.model_dump(mode="json") for k, v in state.items()},
        }, indent=2))
    else:
        print(_format_state(snapshots, state, quiet=args.quiet))
    return EXIT_OK


# ── Config command ───────────────────────────────────────────────────────────


def _run_config() -> int:
    """Print current settings."""
    s = get_settings()
    print(f"\n{_BOLD}gaslens Configuration{_RESET}\n")
    for field_name in sorted(type(s).model_fields.keys()):
        print(f"  {_DIM}{field_name}:{_RESET}  {getattr(s, field_name, '')}")
    print()
    return EXIT_OK


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"gaslens {__version__}")
        return EXIT_OK

    settings = get_settings()
    setup_logging(settings.app_env, "WARNING" if args.quiet else settings.log_level)

    if not args.no_banner and not args.quiet:
        print(BANNER, file=sys.stderr)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    if args.command == "config":
        return _run_config()

    session = AnalysisSession(settings)
    session_filter = SessionLogFilter(session.session_id)
    for handler in logging.getLogger().handlers:
        handler.addFilter(session_filter)

    try:
        if args.command == "analyze":
            return _run_analyze(args, session)
        if args.command == "state":
            return _run_state(args, session)
    except GasLensError as e:
        print(_c(f"Error: {e.message}", _RED), file=sys.stderr)
        return EXIT_ERROR
    finally:
        session.close()

    parser.print_help()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
