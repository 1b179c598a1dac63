"""CLI entrypoints for apiscan commands."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Set

from .config import ConfigError, ScanConfig, load_config, parse_method_exclusion
from .errors import ScanError
from .logging import configure_logging
from .scanner import Scanner


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Log annotation sets and every exclusion decision.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_quiet_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Only report warnings and errors on the console.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apiscan",
        description="Write a canonical summary of the public API of compiled JVM artifacts.",
    )
    _add_verbose_option(parser)
    _add_quiet_option(parser)
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan jar archives or class directories and write one API file per artifact.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_quiet_option(scan_parser, suppress_default=True)
    scan_parser.add_argument(
        "sources",
        nargs="*",
        type=Path,
        help="Artifacts to scan (defaults to the 'sources' listed in the config file).",
    )
    scan_parser.add_argument(
        "--config",
        type=Path,
        default=Path("."),
        help="Path to apiscan.yml or its directory (defaults to the current directory).",
    )
    scan_parser.add_argument(
        "--classpath",
        action="append",
        default=[],
        metavar="ENTRY",
        help=f"Dependency jar or directory; repeatable or '{os.pathsep}'-separated.",
    )
    scan_parser.add_argument(
        "--exclude-package",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Skip classes in packages matching this pattern (and sub-packages).",
    )
    scan_parser.add_argument(
        "--exclude-class",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Skip classes whose fully qualified name matches this pattern.",
    )
    scan_parser.add_argument(
        "--exclude-method",
        action="append",
        default=[],
        metavar="CLASS#NAMEDESC",
        help="Skip one method overload, e.g. com.example.Foo#bar(I)V.",
    )
    scan_parser.add_argument("--output-dir", type=Path, help="Directory for the API files.")
    scan_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        help="Number of artifacts scanned concurrently.",
    )
    return parser


def _apply_overrides(config: ScanConfig, args: argparse.Namespace) -> ScanConfig:
    classpath: List[Path] = list(config.classpath)
    for value in args.classpath:
        classpath.extend(Path(entry) for entry in value.split(os.pathsep) if entry)

    exclude_methods: Dict[str, Set[str]] = {
        name: set(signatures) for name, signatures in config.exclude_methods.items()
    }
    for entry in args.exclude_method:
        class_name, signature = parse_method_exclusion(entry)
        exclude_methods.setdefault(class_name, set()).add(signature)

    if args.jobs is not None and args.jobs < 1:
        raise ConfigError("--jobs must be a positive integer")

    return replace(
        config,
        sources=list(args.sources) or config.sources,
        classpath=classpath,
        output_dir=args.output_dir or config.output_dir,
        exclude_packages=[*config.exclude_packages, *args.exclude_package],
        exclude_classes=[*config.exclude_classes, *args.exclude_class],
        exclude_methods=exclude_methods,
        verbose=bool(args.verbose) or config.verbose,
        jobs=args.jobs or config.jobs,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for apiscan commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command != "scan":  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")

    try:
        config = _apply_overrides(load_config(args.config), args)
    except ConfigError as exc:
        parser.exit(1, f"apiscan: invalid configuration: {exc}\n")

    configure_logging(verbose=config.verbose, quiet=bool(args.quiet), log_file=args.log_file)

    if not config.sources:
        parser.exit(1, "apiscan: no artifacts to scan\n")

    try:
        written = Scanner(config).scan_all()
    except ScanError as exc:
        parser.exit(1, f"apiscan scan failed: {exc}\nRun with --verbose for more details.\n")

    for path in written:
        print(f"API written to {_relativize(path)}")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
