# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reference front-end: parses throwcheck surface syntax with lark and lowers it
to HIR units the verifier consumes.

Every loaded file is one translation unit; declarations are visible across
all units loaded together. Syntax errors and unresolvable types become
MalformedInput diagnostics; nothing here raises for bad user input.
"""

from __future__ import annotations

import errno
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from lark.exceptions import UnexpectedInput

from throwcheck import hir as H
from throwcheck.core.diagnostics import Diagnostic, DiagnosticKind
from throwcheck.core.span import Span

from . import ast as parser_ast
from .lower import lower_program
from .parser import parse_program


def parse_source(source: str, file: str, diagnostics: List[Diagnostic]) -> Optional[parser_ast.Program]:
	"""Parse one unit; a syntax error or runaway nesting is appended to `diagnostics` and yields None."""
	try:
		return parse_program(source)
	except UnexpectedInput as err:
		span = Span(
			file=file,
			line=getattr(err, "line", None),
			column=getattr(err, "column", None),
		)
		diagnostics.append(
			Diagnostic(
				message=str(err).strip().splitlines()[0],
				kind=DiagnosticKind.MALFORMED_INPUT,
				phase="parser",
				span=span,
			)
		)
		return None
	except RecursionError:
		diagnostics.append(
			Diagnostic(
				message="expression nesting is too deep to parse",
				kind=DiagnosticKind.MALFORMED_INPUT,
				phase="parser",
				span=Span(file=file),
			)
		)
		return None


def load_sources(sources: Sequence[Tuple[str, str]]) -> Tuple[List[H.HUnit], List[Diagnostic]]:
	"""
	Parse and lower `(file name, source text)` pairs as one program.

	Returns no units when any file failed to parse or lower.
	"""
	diagnostics: List[Diagnostic] = []
	programs: List[Tuple[str, parser_ast.Program]] = []
	for file, text in sources:
		prog = parse_source(text, file, diagnostics)
		if prog is not None:
			programs.append((file, prog))
	if diagnostics:
		return [], diagnostics
	try:
		units = lower_program(programs, diagnostics)
	except RecursionError:
		diagnostics.append(
			Diagnostic(
				message="expression nesting is too deep to lower",
				kind=DiagnosticKind.MALFORMED_INPUT,
				phase="frontend",
			)
		)
	if diagnostics:
		return [], diagnostics
	return units, diagnostics


def load_files(paths: Sequence[Path]) -> Tuple[List[H.HUnit], List[Diagnostic]]:
	"""
	Read and load source files. Unreadable files raise OSError; a file that
	is not valid UTF-8 is reported the same way, with its path as `filename`.
	"""
	sources: List[Tuple[str, str]] = []
	for p in paths:
		try:
			text = Path(p).read_text(encoding="utf-8")
		except UnicodeDecodeError as err:
			raise OSError(errno.EILSEQ, f"not valid UTF-8 (byte {err.start})", str(p)) from err
		sources.append((str(p), text))
	return load_sources(sources)


__all__ = ["parse_program", "parse_source", "load_sources", "load_files", "lower_program"]
