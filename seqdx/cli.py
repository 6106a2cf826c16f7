"""CLI entry point: argparse and main()."""

from __future__ import annotations

import argparse
import json
import signal
import sys
import time

from seqdx.errors import ValidationError
from seqdx.executor import CANCELED, COMPLETED, FAILED, StreamDriver
from seqdx.renderer import TranscriptRenderer
from seqdx.state import config, diagnose_url, init_config, save_user_config
from seqdx.transport import HttpTransport
from seqdx.ui import C, dbg, dim, error, success


CASE_FIELDS = ("initial_info", "full_case", "ground_truth")

EXIT_CODES = {COMPLETED: 0, FAILED: 1, CANCELED: 130}
EXIT_USAGE = 2

HELP_EPILOG = """\
Case input:
  Pass fields as flags, as a JSON file with the keys initial_info,
  full_case and ground_truth, or leave them out to be prompted.
  Flags override values from --case.

While streaming:
  Ctrl+C         Stop the diagnosis (the transcript so far is kept)

Examples:
  seqdx --initial-info "58F, 3 days of sore throat" --full-case "$(cat case.txt)"
  seqdx --case case.json --url http://diag.internal:8000
  seqdx --url http://diag.internal:8000 --save-url
"""


def load_case_file(path: str) -> dict[str, str]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("case file must contain a JSON object")
    return {key: str(data.get(key) or "") for key in CASE_FIELDS}


def _prompt(label: str) -> str:
    try:
        return input(f"  {C.DIM}{label}: {C.RESET}").strip()
    except (EOFError, KeyboardInterrupt):
        print()
        return ""


def run_case(driver: StreamDriver, case: dict[str, str]) -> str:
    """Run the driver with Ctrl+C mapped to a cooperative cancel."""
    previous = signal.signal(signal.SIGINT, lambda signum, frame: driver.cancel())
    try:
        return driver.start(case["initial_info"], case["full_case"], case["ground_truth"])
    finally:
        signal.signal(signal.SIGINT, previous)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="seqdx",
        description="seqdx: live transcript client for the sequential diagnosis agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )
    parser.add_argument("--initial-info", default="", help="Initial presentation (required)")
    parser.add_argument("--full-case", default="", help="Full case details (required)")
    parser.add_argument("--ground-truth", default="", help="Hidden answer for validation")
    parser.add_argument("--case", metavar="FILE", help="JSON file with the case fields")
    parser.add_argument("--url", default="", help=f"Backend base URL (default: {config.backend_url})")
    parser.add_argument("--timeout", type=float, default=0, help="Read timeout in seconds")
    parser.add_argument("--save-url", action="store_true", help="Remember --url for later runs")
    parser.add_argument("--debug", action="store_true", help="Debug mode")

    args = parser.parse_args(argv)

    init_config()
    if args.url:
        config.backend_url = args.url
    if args.timeout > 0:
        config.timeout = args.timeout
    config.debug = args.debug

    if args.save_url and not args.url:
        error("--save-url needs --url")
        return EXIT_USAGE
    if args.save_url:
        save_user_config({"backend_url": config.backend_url})
        success(f"Saved backend URL: {config.backend_url}")

    case = {key: "" for key in CASE_FIELDS}
    if args.case:
        try:
            case.update(load_case_file(args.case))
        except (OSError, ValueError) as e:
            error(f"Cannot read case file {args.case}: {e}")
            return EXIT_USAGE
    for key in CASE_FIELDS:
        value = getattr(args, key)
        if value:
            case[key] = value

    if sys.stdin.isatty():
        if not case["initial_info"]:
            case["initial_info"] = _prompt("Initial Information")
        if not case["full_case"]:
            case["full_case"] = _prompt("Full Case Details")

    driver = StreamDriver(HttpTransport())
    driver.subscribe(TranscriptRenderer())

    dbg(f"backend: {diagnose_url()}")
    try:
        state = run_case(driver, case)
    except ValidationError as e:
        error(str(e))
        return EXIT_USAGE

    if state == FAILED:
        error(driver.session.error or "Diagnosis failed")
    else:
        elapsed = time.time() - driver.session.session_start_time
        dim(f"{state} in {elapsed:.1f}s, {len(driver.session.turns.turns)} turns")
    return EXIT_CODES[state]


if __name__ == "__main__":
    sys.exit(main())
