# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostics produced by the signature table, the inference engine and the
verifier.

Every diagnostic is an error; nothing is downgraded to a warning. Passes take
an optional `diagnostics` sink: when one is supplied, diagnostics are appended
and the pass keeps going; when it is None, the first diagnostic is raised as a
`ContractError`. `MalformedInput` is the exception to that rule: it is always
raised (`MalformedInputError`) and aborts the enclosing unit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .exc_set import ExceptionSet
from .function_key import FunctionKey, function_symbol
from .span import Span


class DiagnosticKind(Enum):
	CONFLICTING_CONTRACT = "ConflictingContract"
	NOEXCEPT_THROWS_CONFLICT = "NoexceptThrowsConflict"
	DECLARATION_DEFINITION_MISMATCH = "DeclarationDefinitionMismatch"
	UNDECLARED_ESCAPE = "UndeclaredEscape"
	INVALID_CATCH_BY_REFERENCE = "InvalidCatchByReference"
	INVALID_THROW_TYPE = "InvalidThrowType"
	MALFORMED_INPUT = "MalformedInput"
	CONTRACT_NOT_COVARIANT = "ContractNotCovariant"


@dataclass
class Diagnostic:
	"""
	A single verification error.

	function: identity of the function the diagnostic belongs to (when known)
	escaping: for UndeclaredEscape/ContractNotCovariant, the offending set
	phase: "signatures" (phase 1), "verify" (phase 2) or "frontend"
	"""

	message: str
	kind: DiagnosticKind
	function: Optional[FunctionKey] = None
	escaping: Optional[ExceptionSet] = None
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	@property
	def code(self) -> str:
		return self.kind.value

	def format(self) -> str:
		"""Render as `file:line:col: error[Kind]: message` plus indented notes."""
		lines = [f"{self.span.format()}: {self.severity}[{self.code}]: {self.message}"]
		lines.extend(f"  note: {note}" for note in self.notes)
		return "\n".join(lines)


class ContractError(RuntimeError):
	"""Raised for a recoverable diagnostic when no diagnostics sink was supplied."""

	def __init__(self, diagnostic: Diagnostic) -> None:
		super().__init__(diagnostic.message)
		self.diagnostic = diagnostic


class MalformedInputError(RuntimeError):
	"""Fatal internal-consistency failure (e.g. a call without a resolved target)."""

	def __init__(self, diagnostic: Diagnostic) -> None:
		super().__init__(diagnostic.message)
		self.diagnostic = diagnostic


def report(diagnostic: Diagnostic, diagnostics: Optional[List[Diagnostic]]) -> None:
	"""Append to the sink if one is provided, otherwise raise ContractError."""
	if diagnostics is not None:
		diagnostics.append(diagnostic)
	else:
		raise ContractError(diagnostic)


def malformed(
	message: str,
	*,
	span: Span | None = None,
	function: FunctionKey | None = None,
	phase: str | None = None,
) -> MalformedInputError:
	"""Build (not raise) a MalformedInputError so call sites read `raise malformed(...)`."""
	return MalformedInputError(
		Diagnostic(
			message=message,
			kind=DiagnosticKind.MALFORMED_INPUT,
			function=function,
			phase=phase,
			span=span or Span(),
		)
	)


def diag_to_json(diag: Diagnostic, source: Optional[str] = None) -> Dict[str, Any]:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	escaping: Any = None
	if diag.escaping is not None:
		escaping = "..." if diag.escaping.universal else [t.name for t in diag.escaping.sorted_types()]
	return {
		"phase": diag.phase,
		"kind": diag.code,
		"message": diag.message,
		"severity": diag.severity,
		"function": function_symbol(diag.function) if diag.function is not None else None,
		"escaping": escaping,
		"file": diag.span.file or source,
		"line": diag.span.line,
		"column": diag.span.column,
		"notes": list(diag.notes),
	}


__all__ = [
	"Diagnostic",
	"DiagnosticKind",
	"ContractError",
	"MalformedInputError",
	"report",
	"malformed",
	"diag_to_json",
]
