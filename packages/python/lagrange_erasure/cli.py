"""
Lagrange Erasure CLI
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from . import __version__
from .config import get_settings
from .errors import ErasureError
from .logger import setup_logging
from .reconstruct import analyze_recoverability, encode_file, parse_pattern, rebuild_file


def cmd_create(args) -> int:
    try:
        data_count, erasure_count = parse_pattern(args.pattern)
        report = encode_file(
            args.input, data_count, erasure_count, args.data_dir, workers=args.workers
        )
        print(
            f"✅ Created {data_count}+{erasure_count} fragments of {report.source} "
            f"({report.source_size} bytes) in {report.workdir}"
        )
        return 0
    except (ErasureError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


def cmd_rebuild(args) -> int:
    out_path = Path(args.out)
    if out_path.exists() and not args.force:
        print(f"❌ File '{out_path}' exists, use --force to overwrite", file=sys.stderr)
        return 1
    try:
        report = rebuild_file(args.data_dir, out_path, force=args.force, workers=args.workers)
        rebuilt = ", ".join(str(i) for i in report.rebuilt_indices) or "none"
        print(
            f"✅ Reconstructed file written to {out_path} ({report.output_size} bytes, "
            f"rebuilt parts: {rebuilt})"
        )
        return 0
    except (ErasureError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


def cmd_verify(args) -> int:
    try:
        analysis = analyze_recoverability(args.data_dir)
    except (ErasureError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print(
        f"Fragments: {analysis['available_fragments']}/{analysis['total_fragments']} present "
        f"({analysis['required_fragments']} required)"
    )
    if analysis["missing_fragments"]:
        print(f"Missing: {', '.join(str(i) for i in analysis['missing_fragments'])}")
    if analysis["stray_files"]:
        print(f"Not in manifest: {', '.join(analysis['stray_files'])}")
    if analysis["feasible"]:
        print(f"✅ {analysis['message']}")
        return 0
    print(f"❌ {analysis['message']}", file=sys.stderr)
    return 1


def main(argv: Optional[list] = None) -> int:
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 1

    parser = argparse.ArgumentParser(description="Lagrange erasure-code CLI")
    parser.add_argument("--version", action="version", version=f"lagrange-erasure {__version__}")
    parser.add_argument(
        "--log-level", type=str.upper, default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging level",
    )
    parser.add_argument(
        "--log-json", action="store_true", default=settings.log_json,
        help="Emit JSON log lines",
    )
    parser.add_argument(
        "--workers", type=int, default=settings.workers,
        help="Worker threads for splitting and interpolation",
    )

    sub = parser.add_subparsers(dest="command")

    create_p = sub.add_parser("create", help="Split a file and derive erasure fragments")
    create_p.add_argument("-i", dest="input", required=True, metavar="INPUT-FILE",
                          help="File to protect")
    create_p.add_argument("-d", dest="data_dir", required=True, help="Working directory")
    create_p.add_argument("-p", dest="pattern", default="3+2",
                          help="Data and erasure fragment counts as '<K>+<R>'")
    create_p.set_defaults(func=cmd_create)

    rebuild_p = sub.add_parser("rebuild", help="Rebuild the source file from remaining fragments")
    rebuild_p.add_argument("-d", dest="data_dir", required=True, help="Working directory")
    rebuild_p.add_argument("-o", dest="out", required=True, help="Output file path")
    rebuild_p.add_argument("--force", action="store_true", help="Overwrite an existing output file")
    rebuild_p.set_defaults(func=cmd_rebuild)

    verify_p = sub.add_parser("verify", help="Check whether a working directory can be rebuilt")
    verify_p.add_argument("-d", dest="data_dir", required=True, help="Working directory")
    verify_p.set_defaults(func=cmd_verify)

    args = parser.parse_args(argv)
    if args.workers < 1:
        parser.error("--workers must be >= 1")
    setup_logging(args.log_level, json_format=args.log_json)

    if not args.command:
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
