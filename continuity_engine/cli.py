"""continuity-engine CLI entry point."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(
        prog="continuity-engine",
        description="Continuity Engine — continuity linting for generative-video scripts",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    analyze_parser = sub.add_parser("analyze", help="Analyze a script document and report issues")
    analyze_parser.add_argument(
        "--script", required=True, metavar="script.json",
        help="Path to a script document JSON file",
    )
    analyze_parser.add_argument(
        "--output", metavar="report.json",
        help="Destination path for the analysis report JSON (stdout if omitted)",
    )

    autofix_parser = sub.add_parser("autofix", help="Apply every available fix for fixable issues")
    autofix_parser.add_argument(
        "--script", required=True, metavar="script.json",
        help="Path to a script document JSON file",
    )
    autofix_parser.add_argument(
        "--output", required=True, metavar="fixed.json",
        help="Destination path for the fixed script document",
    )

    stabilize_parser = sub.add_parser(
        "stabilize",
        help="Consolidate characters and fill continuity defaults on every shot",
    )
    stabilize_parser.add_argument(
        "--script", required=True, metavar="script.json",
        help="Path to a script document JSON file",
    )
    stabilize_parser.add_argument(
        "--output", required=True, metavar="stabilized.json",
        help="Destination path for the stabilized script document",
    )

    export_parser = sub.add_parser("export", help="Print the export record of one shot")
    export_parser.add_argument(
        "--script", required=True, metavar="script.json",
        help="Path to a script document JSON file",
    )
    export_parser.add_argument("--shot", required=True, metavar="SHOT_ID", help="Shot id to export")

    patch_parser = sub.add_parser("apply-patch", help="Apply a JSON patch to one shot")
    patch_parser.add_argument(
        "--script", required=True, metavar="script.json",
        help="Path to a script document JSON file",
    )
    patch_parser.add_argument("--shot", required=True, metavar="SHOT_ID", help="Shot id to patch")
    patch_parser.add_argument(
        "--patch", required=True, metavar="patch.json",
        help="Path to a JSON file holding the patch object",
    )
    patch_parser.add_argument(
        "--output", required=True, metavar="patched.json",
        help="Destination path for the patched script document",
    )
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    from pydantic import ValidationError
    from remedy.document_io import load_document_file

    try:
        document = load_document_file(args.script)
    except (ValueError, ValidationError) as exc:
        print(f"ERROR: invalid script document — {exc}")
        sys.exit(1)

    if args.command == "analyze":
        run_analyze(document, Path(args.output) if args.output else None)
    elif args.command == "autofix":
        run_autofix(document, args.output)
    elif args.command == "stabilize":
        run_stabilize(document, args.output)
    elif args.command == "export":
        run_export(document, args.shot)
    elif args.command == "apply-patch":
        run_apply_patch(document, args.shot, Path(args.patch), args.output)


def run_analyze(document, output_path: Path | None) -> None:
    """Write the canonical report; exit 1 when any Critical issue exists.

    When the report goes to stdout the status line goes to stderr.
    """
    from continuity_engine.analysis import analyze
    from continuity_engine.schemas.report_v1 import dump_result

    result = analyze(document)
    report = dump_result(result)
    if output_path is None:
        print(report)
    else:
        output_path.write_text(report + "\n", encoding="utf-8")

    status = sys.stdout if output_path is not None else sys.stderr
    stats = result.stats
    if stats.critical_issues:
        print(
            f"ERROR: {stats.critical_issues} critical issues, {stats.warnings} warnings; "
            f"{stats.veo3_ready}/{stats.total_shots} shots ready",
            file=status,
        )
        sys.exit(1)
    print(f"OK: {stats.warnings} warnings; {stats.veo3_ready}/{stats.total_shots} shots ready", file=status)
    sys.exit(0)


def run_autofix(document, output_path: str) -> None:
    from continuity_engine.analysis import analyze
    from remedy.autofix import auto_fix
    from remedy.document_io import save_document

    fixed, count = auto_fix(document, analyze(document).fixable_issues())
    save_document(output_path, fixed)
    print(f"OK: {count} fixes applied")
    sys.exit(0)


def run_stabilize(document, output_path: str) -> None:
    from remedy.document_io import save_document
    from remedy.stabilize import stabilize_document

    stabilized, shots, definitions = stabilize_document(document)
    save_document(output_path, stabilized)
    print(f"OK: {shots} shots stabilized, {definitions} character definitions consolidated")
    sys.exit(0)


def run_export(document, shot_id: str) -> None:
    from continuity_engine.export import render_export_record

    shot = document.find_shot(shot_id)
    if shot is None:
        print(f"ERROR: SHOT_NOT_FOUND: {shot_id}")
        sys.exit(1)
    print(render_export_record(shot))
    sys.exit(0)


def run_apply_patch(document, shot_id: str, patch_path: Path, output_path: str) -> None:
    from remedy.contract import apply_json_patch
    from remedy.document_io import save_document

    try:
        patch_text = patch_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"ERROR: patch file not found: {patch_path}")
        sys.exit(1)

    patched, errors = apply_json_patch(document, shot_id, patch_text)
    if errors:
        for error in errors:
            print(f"ERROR: {error}")
        sys.exit(1)
    save_document(output_path, patched)
    print(f"OK: patch applied to {shot_id}")
    sys.exit(0)


if __name__ == "__main__":
    main()
