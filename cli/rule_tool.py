"""
CLI: inspect rule JSON files.

Usage:
    rule-tool canonicalize rule.json            # stripped, canonical JSON
    rule-tool hydrate rule.json --new           # add editor ids and flags
    rule-tool validate rule.json --catalog catalog.json
    rule-tool validate rule.json --fetch-catalog --remote

Exit status is 0 when the rule is valid, 1 when validation found problems,
2 when an input file is not JSON or not a rule or catalog, and 3 when a
service call failed.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from rulebuilder.catalog import load_catalog
from rulebuilder.compiler import (
    hydrate,
    parse_rule,
    strip,
    to_canonical_json_pretty,
    validate_rule,
)
from rulebuilder.core.config import settings
from rulebuilder.core.errors import (
    USER_FACING_ERRORS,
    InvalidJSON,
    RuleBuilderError,
    error_payload,
)
from rulebuilder.core.observability import configure_structured_logging
from rulebuilder.services import CatalogClient, RuleServiceClient


def _read_json(path: str):
    text = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidJSON(
            f"{path}: invalid JSON: {e.msg}",
            details={"line": e.lineno, "column": e.colno, "position": e.pos},
        ) from e


def cmd_canonicalize(args: argparse.Namespace) -> int:
    print(to_canonical_json_pretty(strip(_read_json(args.rule))))
    return 0


def cmd_hydrate(args: argparse.Namespace) -> int:
    print(json.dumps(hydrate(strip(_read_json(args.rule)), new=args.new), indent=2))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    data = strip(_read_json(args.rule))
    # Schema first: a rule that does not parse has no meaningful catalog check
    parse_rule(data)

    if args.catalog:
        catalog = load_catalog(_read_json(args.catalog))
    else:
        with CatalogClient(base_url=args.base_url) as client:
            catalog = client.load()

    problems = validate_rule(catalog, data)
    if args.remote:
        with RuleServiceClient(base_url=args.base_url) as client:
            problems += client.validate(data).as_problems()

    if not problems:
        print("OK")
        return 0
    for problem in problems:
        print(f"{problem['path']}: {problem['message']}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Canonicalize, hydrate and validate rule JSON files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--base-url",
        default=settings.rule_service_base_url,
        help="Rule service base URL (default: RULE_SERVICE_BASE_URL)",
    )
    parser.add_argument("--log-level", default=settings.app_log_level)
    sub = parser.add_subparsers(dest="command", required=True)

    canonicalize = sub.add_parser("canonicalize", help="Strip editor state and sort keys")
    canonicalize.add_argument("rule", help="Rule JSON file, or - for stdin")
    canonicalize.set_defaults(func=cmd_canonicalize)

    hydrate_cmd = sub.add_parser("hydrate", help="Add editor ids and expansion flags")
    hydrate_cmd.add_argument("rule", help="Rule JSON file, or - for stdin")
    hydrate_cmd.add_argument(
        "--new", action="store_true", help="Expand every node, as for a newly authored rule"
    )
    hydrate_cmd.set_defaults(func=cmd_hydrate)

    validate = sub.add_parser("validate", help="Validate a rule against the catalog")
    validate.add_argument("rule", help="Rule JSON file, or - for stdin")
    source = validate.add_mutually_exclusive_group(required=True)
    source.add_argument("--catalog", help="Catalog configuration JSON file")
    source.add_argument(
        "--fetch-catalog", action="store_true", help="Fetch the catalog from the rule service"
    )
    validate.add_argument(
        "--remote", action="store_true", help="Also run the service-side validation"
    )
    validate.set_defaults(func=cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_structured_logging(args.log_level, structured=settings.observability_structured_logs)

    try:
        return args.func(args)
    except USER_FACING_ERRORS as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        for problem in getattr(e, "errors", []):
            print(f"{problem['path']}: {problem['message']}", file=sys.stderr)
        return 2
    except RuleBuilderError as e:
        print(json.dumps(error_payload(e), indent=2), file=sys.stderr)
        return 3


if __name__ == "__main__":
    sys.exit(main())
