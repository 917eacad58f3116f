"""CLI entrypoints for symdedupe commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .logging import configure_logging
from .models import Classification
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the package root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="symdedupe",
        description="Run npm dedupe across symlinked modules and restore the links afterwards.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log output to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Stage linked modules, run the deduper, then restore the links.",
    )
    _add_verbose_option(run_parser, suppress_default=True)
    _add_path_argument(run_parser)
    run_parser.add_argument(
        "--deduper",
        default=None,
        help="Command to run instead of npm (arguments come from the config).",
    )

    scan_parser = subparsers.add_parser(
        "scan",
        help="List linked modules and the links that would be restored.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_path_argument(scan_parser)

    status_parser = subparsers.add_parser(
        "status",
        help="Report an unfinished run left behind by a failure.",
    )
    _add_verbose_option(status_parser, suppress_default=True)
    _add_path_argument(status_parser)
    status_parser.add_argument(
        "--clear",
        action="store_true",
        help="Discard the recorded run after repairing the links manually.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for symdedupe commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator(deduper_command=getattr(args, "deduper", None))

    if args.command == "run":
        try:
            outcome = orchestrator.run_dedupe(args.path)
        except FileNotFoundError as exc:
            parser.exit(1, f"{exc}\n")
        except RuntimeError as exc:
            parser.exit(1, f"symdedupe run failed: {exc}\nRun with --verbose for more details.\n")
        print(
            f"Deduped {_relativize(outcome.package_dir)} "
            f"({len(outcome.classification.modules)} linked modules)"
        )
    elif args.command == "scan":
        try:
            classification = orchestrator.run_scan(args.path)
        except FileNotFoundError as exc:
            parser.exit(1, f"{exc}\n")
        except RuntimeError as exc:
            parser.exit(1, f"symdedupe scan failed: {exc}\n")
        print(_format_classification(classification))
    elif args.command == "status":
        state = orchestrator.run_status(args.path, clear=bool(args.clear))
        if state is None:
            print("No unfinished run recorded")
            return
        print(f"Unfinished run: {state.status}")
        if state.phase:
            print(f"  phase: {state.phase}")
        if state.completed_phases:
            print(f"  completed: {', '.join(state.completed_phases)}")
        if state.error:
            print(f"  error: {state.error}")
        for link in state.symlinks:
            print(f"  link {link.path} -> {link.target}")
        if args.clear:
            print("Journal cleared")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _format_classification(classification: Classification) -> str:
    if not classification.modules:
        return "No linked modules found"
    lines = ["Linked modules:"]
    for module in sorted(classification.modules, key=lambda item: item.name):
        via = " (via scope link)" if module.has_symlinked_scope else ""
        lines.append(f"  {module.name} -> {module.target}{via}")
    lines.append("Links to restore:")
    for link in sorted(classification.symlinks, key=lambda item: item.path):
        lines.append(f"  {_relativize(Path(link.path))} -> {link.target}")
    return "\n".join(lines)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
