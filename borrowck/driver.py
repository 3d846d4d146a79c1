# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
borrowck command line driver.

Reads IR files (textual `.bir` or `.json`), checks every unit and reports:

  exit 0  every unit accepted
  exit 1  at least one unit produced diagnostics or a fatal error
  exit 2  an input or config file could not be read or parsed

With --json, prints one JSON object on stdout; otherwise prints
human-readable messages to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

from borrowck import ir
from borrowck.checker import UnitResult, analyze_program
from borrowck.config import CheckerConfig, load_config
from borrowck.core.diagnostics import Diagnostic
from borrowck.core.errors import BorrowckError
from borrowck.ir_text import load_program

logger = logging.getLogger(__name__)

EXIT_ACCEPTED = 0
EXIT_REJECTED = 1
EXIT_BAD_INPUT = 2


def _diag_to_json(diag: Diagnostic, unit: str, source: Path) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	out = diag.to_dict()
	out["unit"] = unit
	if out["file"] is None:
		out["file"] = str(source)
	return out


def _error_to_json(err: BorrowckError, source: Path) -> dict:
	out = err.to_dict()
	out["severity"] = "error"
	if out["file"] is None:
		out["file"] = str(source)
	return out


def _result_to_json(result: UnitResult, source: Path) -> dict:
	return {
		"unit": result.unit,
		"file": str(source),
		"accepted": result.accepted,
		"error": _error_to_json(result.error, source) if result.error is not None else None,
		"diagnostics": [_diag_to_json(d, result.unit, source) for d in result.diagnostics],
	}


def _print_human(result: UnitResult, source: Path) -> None:
	if result.error is not None:
		err = result.error
		loc = str(err.span) if err.span is not None and err.span.is_known() else f"{source}:?:?"
		print(f"{loc}: error[{err.reason_code}] in unit '{result.unit}': {err.message}", file=sys.stderr)
		return
	for d in result.diagnostics:
		loc = str(d.span) if d.span.is_known() else f"{source}:?:?"
		print(f"{loc}: {d.severity}[{d.code}] in unit '{result.unit}' at point {d.point}: {d.message}", file=sys.stderr)
		for note in d.notes:
			print(f"  note: {note}", file=sys.stderr)


def _build_config(args: argparse.Namespace) -> CheckerConfig:
	config = load_config(args.config) if args.config is not None else CheckerConfig()
	return config.with_overrides(
		precise_borrow_extents=True if args.precise else None,
		max_statements=args.max_statements,
		jobs=args.jobs,
	)


def _load_inputs(paths: List[Path]) -> Tuple[List[Tuple[Path, ir.Program]], List[Tuple[Path, str]]]:
	loaded: List[Tuple[Path, ir.Program]] = []
	failures: List[Tuple[Path, str]] = []
	for path in paths:
		try:
			loaded.append((path, load_program(path)))
		except OSError as exc:
			failures.append((path, f"cannot read input: {exc.strerror or exc}"))
		except BorrowckError as exc:
			failures.append((path, f"[{exc.reason_code}] {exc.message}"))
	return loaded, failures


def main(argv: Optional[List[str]] = None) -> int:
	"""
	Check the given IR files. Returns the process exit code.

	With --json, prints `{"exit_code": ..., "units": [...], "diagnostics": [...]}`
	where `diagnostics` flattens the diagnostics of every unit.
	"""
	parser = argparse.ArgumentParser(prog="borrowck", description="Ownership and borrow checker for the ownership IR")
	parser.add_argument("source", type=Path, nargs="+", help="IR file(s): textual IR, or JSON with a .json suffix")
	parser.add_argument("--json", action="store_true", help="Emit diagnostics as JSON on stdout")
	parser.add_argument(
		"--precise",
		action="store_true",
		help="Retire borrows after the holder's last use instead of at its scope exit",
	)
	parser.add_argument("--max-statements", type=int, default=None, help="Reject units with more statements than this")
	parser.add_argument("--jobs", type=int, default=None, help="Worker threads used to check units (default: CPU count)")
	parser.add_argument("--config", type=Path, default=None, help="JSON configuration file")
	parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
	args = parser.parse_args(argv)

	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.WARNING,
		format="%(levelname)s %(name)s: %(message)s",
	)

	try:
		config = _build_config(args)
	except BorrowckError as exc:
		if args.json:
			print(json.dumps({"exit_code": EXIT_BAD_INPUT, "units": [], "diagnostics": [exc.to_dict()]}))
		else:
			print(f"error[{exc.reason_code}]: {exc.message}", file=sys.stderr)
		return EXIT_BAD_INPUT

	loaded, failures = _load_inputs(args.source)
	if failures:
		if args.json:
			payload: dict[str, Any] = {
				"exit_code": EXIT_BAD_INPUT,
				"units": [],
				"diagnostics": [
					{"phase": "input", "message": msg, "severity": "error", "file": str(path), "line": None, "column": None}
					for path, msg in failures
				],
			}
			print(json.dumps(payload))
		else:
			for path, msg in failures:
				print(f"{path}:?:?: error: {msg}", file=sys.stderr)
		return EXIT_BAD_INPUT

	units_json: List[dict] = []
	flat: List[dict] = []
	exit_code = EXIT_ACCEPTED
	for path, program in loaded:
		logger.debug("checking %s (%d unit(s))", path, len(program.units))
		for result in analyze_program(program, config):
			if not result.accepted:
				exit_code = EXIT_REJECTED
			if args.json:
				entry = _result_to_json(result, path)
				units_json.append(entry)
				flat.extend(entry["diagnostics"])
				if entry["error"] is not None:
					flat.append(entry["error"])
			else:
				_print_human(result, path)

	if args.json:
		print(json.dumps({"exit_code": exit_code, "units": units_json, "diagnostics": flat}))
	return exit_code


if __name__ == "__main__":
	sys.exit(main())
