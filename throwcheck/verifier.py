# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Contract verifier: two-phase driver over HIR translation units.

  phase 1 (barrier)  register every declaration in a SignatureTable, then
                     freeze it; any diagnostic here aborts phase 2
  phase 2            per definition, independently:
                       1. declaration/definition contract consistency
                       2. escape check: effect(body) ⊆ declared contract

Phase-2 work items only read the frozen table and their own body, so they
can run on a thread pool. Diagnostics are accumulated per function; only
MalformedInputError aborts the pass.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from throwcheck import hir as H
from throwcheck.core.contracts import normalize_annotation
from throwcheck.core.diagnostics import Diagnostic, DiagnosticKind, malformed
from throwcheck.core.exc_set import is_subset_of, subtract
from throwcheck.core.function_key import FunctionKey, function_symbol
from throwcheck.infer import EffectInference
from throwcheck.signatures import (
	ChainedSignatures,
	FrozenSignatureTable,
	SignatureProvider,
	SignatureTable,
	check_annotation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifyOptions:
	"""
	Knobs for a verification run.

	workers: size of the phase-2 thread pool (1 = verify sequentially)
	"""

	workers: int = 1

	def __post_init__(self) -> None:
		if self.workers < 1:
			raise ValueError(f"workers must be >= 1, got {self.workers}")


@dataclass
class FunctionReport:
	"""Outcome of verifying one definition."""

	function: FunctionKey
	diagnostics: List[Diagnostic] = field(default_factory=list)

	@property
	def ok(self) -> bool:
		return not self.diagnostics


@dataclass
class VerificationResult:
	"""
	Outcome of verifying a unit.

	`signatures` is None when phase 1 failed; `reports` is then empty.
	"""

	unit: str
	signatures: Optional[FrozenSignatureTable]
	reports: List[FunctionReport] = field(default_factory=list)
	signature_diagnostics: List[Diagnostic] = field(default_factory=list)

	@property
	def diagnostics(self) -> List[Diagnostic]:
		out = list(self.signature_diagnostics)
		for rep in self.reports:
			out.extend(rep.diagnostics)
		return out

	@property
	def ok(self) -> bool:
		return not self.signature_diagnostics and all(rep.ok for rep in self.reports)


def build_signature_table(
	functions: Iterable[H.HFunction],
	diagnostics: Optional[List[Diagnostic]] = None,
) -> SignatureTable:
	"""
	Phase 1: register every bodyless declaration, then every definition whose
	identity no declaration introduced. A definition of a declared identity is
	not registered; its repeated contract is compared in phase 2 instead, so a
	disagreement surfaces as DeclarationDefinitionMismatch rather than
	ConflictingContract.
	"""
	functions = list(functions)
	table = SignatureTable()
	declared_keys = set()
	for fn in functions:
		if fn.is_definition:
			continue
		table.register(fn.key, fn.annotation, span=fn.span, diagnostics=diagnostics)
		declared_keys.add(fn.key)
	for fn in functions:
		if not fn.is_definition:
			continue
		if fn.key in declared_keys:
			check_annotation(fn.key, fn.annotation, span=fn.span, diagnostics=diagnostics)
			continue
		table.register(fn.key, fn.annotation, span=fn.span, diagnostics=diagnostics)
	return table


def verify_function(fn: H.HFunction, signatures: SignatureProvider) -> FunctionReport:
	"""
	Phase 2 for one definition. Raises MalformedInputError for unresolved
	input; every other problem becomes a diagnostic in the report.
	"""
	sym = function_symbol(fn.key)
	rep = FunctionReport(function=fn.key)
	registered = signatures.lookup(fn.key)

	if fn.annotation.is_written and not fn.annotation.is_conflicting:
		own = normalize_annotation(fn.annotation)
		if own.effective != registered.effective:
			rep.diagnostics.append(
				Diagnostic(
					message=(
						f"definition of {sym} is {own.render()} but it was declared "
						f"{registered.render()}"
					),
					kind=DiagnosticKind.DECLARATION_DEFINITION_MISMATCH,
					function=fn.key,
					phase="verify",
					span=fn.span,
				)
			)

	if fn.body is None:
		return rep

	inference = EffectInference(signatures, function=fn.key, diagnostics=rep.diagnostics)
	try:
		body = inference.effect_of(fn.body)
	except RecursionError:
		raise malformed(
			f"body of {sym} nests too deeply to analyse",
			span=fn.span,
			function=fn.key,
			phase="verify",
		) from None
	declared = registered.effective
	if not is_subset_of(body, declared):
		escaping = subtract(body, declared)
		if escaping.universal:
			message = (
				f"function {sym} is declared {registered.render()} but may propagate any exception"
			)
			notes = [f"unbounded: {site.describe()}" for site in inference.unbounded_sites]
		else:
			names = ", ".join(t.name for t in escaping.sorted_types())
			message = f"function {sym} is declared {registered.render()} but may propagate {names}"
			notes = []
		rep.diagnostics.append(
			Diagnostic(
				message=message,
				kind=DiagnosticKind.UNDECLARED_ESCAPE,
				function=fn.key,
				escaping=escaping,
				phase="verify",
				span=fn.span,
				notes=notes,
			)
		)
	logger.debug("verified %s: effect %s, %d diagnostic(s)", sym, body.render(), len(rep.diagnostics))
	return rep


def _verify_definitions(
	definitions: Sequence[H.HFunction],
	signatures: SignatureProvider,
	workers: int,
) -> List[FunctionReport]:
	if workers <= 1 or len(definitions) < 2:
		return [verify_function(fn, signatures) for fn in definitions]
	with ThreadPoolExecutor(max_workers=workers) as executor:
		# map() keeps source order and re-raises a worker's MalformedInputError here.
		return list(executor.map(lambda fn: verify_function(fn, signatures), definitions))


def verify_unit(
	unit: H.HUnit,
	*,
	external: Sequence[SignatureProvider] = (),
	options: VerifyOptions | None = None,
) -> VerificationResult:
	"""
	Verify one translation unit. `external` providers answer for functions
	declared in other units; the unit's own table always takes precedence.
	"""
	options = options or VerifyOptions()
	signature_diags: List[Diagnostic] = []
	table = build_signature_table(unit.functions, signature_diags)
	if signature_diags:
		logger.debug("unit %s: %d signature diagnostic(s); skipping body verification", unit.name, len(signature_diags))
		return VerificationResult(unit=unit.name, signatures=None, signature_diagnostics=signature_diags)

	frozen = table.freeze()
	logger.debug("unit %s: signature table frozen with %d function(s)", unit.name, len(frozen))
	provider: SignatureProvider = ChainedSignatures(frozen, *external) if external else frozen
	definitions = list(unit.definitions())
	reports = _verify_definitions(definitions, provider, options.workers)
	return VerificationResult(unit=unit.name, signatures=frozen, reports=reports)


def verify_program(
	units: Sequence[H.HUnit],
	*,
	options: VerifyOptions | None = None,
) -> VerificationResult:
	"""
	Verify several units as one program: a single phase-1 table over every
	unit's declarations (the program-wide barrier), then phase 2 unit by unit.
	Reports follow unit order, then source order within each unit.
	"""
	options = options or VerifyOptions()
	name = ", ".join(u.name for u in units) or "<program>"
	signature_diags: List[Diagnostic] = []
	table = build_signature_table((fn for u in units for fn in u.functions), signature_diags)
	if signature_diags:
		logger.debug("program %s: %d signature diagnostic(s); skipping body verification", name, len(signature_diags))
		return VerificationResult(unit=name, signatures=None, signature_diagnostics=signature_diags)

	frozen = table.freeze()
	logger.debug("program %s: signature table frozen with %d function(s)", name, len(frozen))
	reports: List[FunctionReport] = []
	for unit in units:
		reports.extend(_verify_definitions(list(unit.definitions()), frozen, options.workers))
		logger.debug("unit %s verified", unit.name)
	return VerificationResult(unit=name, signatures=frozen, reports=reports)


__all__ = [
	"VerifyOptions",
	"FunctionReport",
	"VerificationResult",
	"build_signature_table",
	"verify_function",
	"verify_unit",
	"verify_program",
]
