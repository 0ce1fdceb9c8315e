"""
Fitchbox CLI — Check Natural Deduction Proofs from the Terminal.

Commands:
    fitchbox check FILE       — Verify a JSON proof document
    fitchbox parse SENTENCE   — Show how a sentence is read
    fitchbox rules            — List the rules a configuration enables
    fitchbox demo             — Verify a built-in sample proof

`check` exits with 0 when every line is valid and 1 otherwise.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from .pipeline import (
    SAMPLE_DOCUMENT,
    ProofDocument,
    document_from_dict,
    load_document,
    override_config,
    run_check,
)
from ..config import VerifierConfig
from ..diagnostics import LineDiagnostic, LineStatus
from ..engine.verifier import VerificationReport
from ..modal.worlds import ModalSystem
from ..parsing.sentence_parser import ParseError, parse_sentence
from ..proof import DocumentError, Line
from ..rules.catalog import RuleSetName, rules_in


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_status_badge(status: LineStatus) -> str:
    """Format a line status as a fixed-width badge."""
    badges = {
        LineStatus.VALID: "[  OK  ]",
        LineStatus.INVALID: "[ FAIL ]",
        LineStatus.UNCHECKED: "[  ..  ]",
    }
    return badges.get(status, "[  ??  ]")


def format_line_row(line: Line, diagnostic: LineDiagnostic) -> str:
    """Format one proof line with its verdict."""
    badge = format_status_badge(diagnostic.status)
    bars = "│ " * line.depth
    sentence = f"{bars}{line.sentence_text}"
    row = f"{badge} {diagnostic.number:>3} {sentence:<32} {line.justification_text}"
    if diagnostic.is_invalid:
        row += f"\n{'':>13}✗ {diagnostic.reason.value}: {diagnostic.message}"
    return row


def format_report(document: ProofDocument, report: VerificationReport) -> str:
    lines = [f"Checking under {report.config.name}", "=" * 60]
    for line, diagnostic in zip(document.proof.lines, report.diagnostics):
        lines.append(format_line_row(line, diagnostic))

    lines.append("")
    counts = report.counts()
    lines.append(
        f"{counts['valid']} valid, {counts['invalid']} invalid "
        f"of {len(report.diagnostics)} line(s)"
    )
    if report.placeholders:
        numbers = ", ".join(str(n) for n in report.placeholders)
        lines.append(f"Placeholder line(s): {numbers}")
    if report.goal is not None:
        if report.proves_goal:
            verdict = "established"
        elif report.reaches_goal:
            verdict = "reached, but the proof still contains placeholder citations"
        else:
            verdict = "NOT established"
        lines.append(f"Goal {report.goal}: {verdict}")
    return "\n".join(lines)


def _config_from_args(args: argparse.Namespace) -> VerifierConfig:
    base = VerifierConfig()
    return override_config(base, getattr(args, "system", None), getattr(args, "no_derived", False))


# =============================================================================
# CLI COMMANDS
# =============================================================================

def cmd_check(args: argparse.Namespace) -> int:
    """Verify a proof document."""
    try:
        document = load_document(args.file)
        config = override_config(document.config, args.system, args.no_derived)
    except (OSError, json.JSONDecodeError, DocumentError, ParseError, ValueError) as e:
        print(f"ERROR: Cannot load {args.file}")
        print(f"Reason: {e}")
        return 1

    report = run_check(document, config)

    if args.json:
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(format_report(document, report))

    return 0 if report.is_valid else 1


def cmd_parse(args: argparse.Namespace) -> int:
    """Parse one sentence and show its canonical form."""
    try:
        sentence = parse_sentence(args.sentence)
    except ParseError as e:
        start, end = e.span
        print(f"ERROR: {e.message}")
        print(f"  {args.sentence}")
        print(f"  {' ' * start}{'^' * max(1, end - start)}")
        return 1

    print(f"Sentence: {sentence}")
    print(f"Kind:     {type(sentence).__name__}")
    atoms = ", ".join(sorted(sentence.atoms())) or "(none)"
    print(f"Atoms:    {atoms}")
    print(f"Modal:    {'yes' if sentence.is_modal() else 'no'}")
    return 0


def cmd_rules(args: argparse.Namespace) -> int:
    """List the rules enabled under a configuration."""
    try:
        config = _config_from_args(args)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Rules for {config.name}")
    print("=" * 60)

    current: Optional[RuleSetName] = None
    for definition in rules_in(config.rulesets):
        if definition.ruleset != current:
            current = definition.ruleset
            print()
            print(f"{current.value.upper()}:")
        print(f"  {definition.label:<5} {definition.description}")
        for schema in definition.schemas:
            print(f"        {schema.render()}")
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    """Verify the built-in sample proof."""
    document = document_from_dict(SAMPLE_DOCUMENT, source="demo")
    report = run_check(document)
    print(format_report(document, report))
    return 0 if report.is_valid else 1


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def _add_system_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--system",
        choices=[s.value for s in ModalSystem],
        help="Modal system to check under",
    )
    parser.add_argument(
        "--no-derived",
        action="store_true",
        help="Disable the derived TFL rules",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="fitchbox",
        description="Fitchbox — Natural Deduction Proof Checker",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log each line's verdict",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # Check command
    check_parser = subparsers.add_parser(
        "check",
        help="Verify a JSON proof document",
    )
    check_parser.add_argument(
        "file",
        help="Path to the proof document",
    )
    _add_system_options(check_parser)
    check_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    check_parser.set_defaults(func=cmd_check)

    # Parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse a sentence",
    )
    parse_parser.add_argument(
        "sentence",
        help="Sentence text, e.g. '[](P -> Q)'",
    )
    parse_parser.set_defaults(func=cmd_parse)

    # Rules command
    rules_parser = subparsers.add_parser(
        "rules",
        help="List available rules",
    )
    _add_system_options(rules_parser)
    rules_parser.set_defaults(func=cmd_rules)

    # Demo command
    demo_parser = subparsers.add_parser(
        "demo",
        help="Verify a built-in sample proof",
    )
    demo_parser.set_defaults(func=cmd_demo)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
