# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Command-line driver: load source files, verify every exception contract,
print diagnostics.

  python -m throwcheck [-j N] [--json] [-v] FILE...

Exit codes: 0 when every contract holds, 1 on any diagnostic (malformed
input included), 2 when a source file cannot be read.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from throwcheck.core.diagnostics import Diagnostic, MalformedInputError, diag_to_json
from throwcheck.parser import load_files
from throwcheck.verifier import VerifyOptions, verify_program

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_UNREADABLE = 2


def _emit(diagnostics: List[Diagnostic], exit_code: int, *, as_json: bool, source: Path) -> int:
	if as_json:
		payload = {
			"exit_code": exit_code,
			"diagnostics": [diag_to_json(d, str(source)) for d in diagnostics],
		}
		print(json.dumps(payload))
	else:
		for d in diagnostics:
			print(d.format(), file=sys.stderr)
	return exit_code


def main(argv: list[str] | None = None) -> int:
	"""
	Parse and lower every file as one program, then run the two verification
	phases over it.

	With --json, prints a single object `{"exit_code", "diagnostics"}` to
	stdout; otherwise prints human-readable diagnostics to stderr.
	"""
	parser = argparse.ArgumentParser(
		prog="throwcheck",
		description="Verify declared exception contracts (throws/noexcept)",
	)
	parser.add_argument("source", type=Path, nargs="+", help="Path(s) to source file(s); each is one translation unit")
	parser.add_argument(
		"-j",
		"--workers",
		type=int,
		default=1,
		help="Number of threads verifying function bodies (default: 1)",
	)
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit diagnostics as JSON (phase/kind/message/severity/function/escaping/file/line/column)",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Log phase boundaries and per-function results")
	args = parser.parse_args(argv)

	if args.verbose:
		logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
	if args.workers < 1:
		parser.error(f"--workers must be >= 1, got {args.workers}")

	source_paths: List[Path] = list(args.source)
	first = source_paths[0]
	try:
		units, load_diags = load_files(source_paths)
	except OSError as err:
		path = Path(err.filename) if err.filename else first
		msg = f"cannot read source: {err.strerror or err}"
		if args.json:
			print(
				json.dumps(
					{
						"exit_code": EXIT_UNREADABLE,
						"diagnostics": [
							{
								"phase": "driver",
								"message": msg,
								"severity": "error",
								"file": str(path),
								"line": None,
								"column": None,
							}
						],
					}
				)
			)
		else:
			print(f"{path}:?:?: error: {msg}", file=sys.stderr)
		return EXIT_UNREADABLE

	if load_diags:
		logger.debug("front-end reported %d diagnostic(s)", len(load_diags))
		return _emit(load_diags, EXIT_DIAGNOSTICS, as_json=args.json, source=first)

	try:
		result = verify_program(units, options=VerifyOptions(workers=args.workers))
	except MalformedInputError as err:
		return _emit([err.diagnostic], EXIT_DIAGNOSTICS, as_json=args.json, source=first)

	diagnostics = result.diagnostics
	exit_code = EXIT_OK if result.ok else EXIT_DIAGNOSTICS
	logger.debug("verified %d function(s); %d diagnostic(s)", len(result.reports), len(diagnostics))
	if args.json or diagnostics:
		return _emit(diagnostics, exit_code, as_json=args.json, source=first)
	return exit_code


__all__ = ["main"]
