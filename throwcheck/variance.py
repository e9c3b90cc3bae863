# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Contract variance: may a function with contract A stand in where a function
with contract B is expected (virtual override, conversion to a functional
wrapper, assignment to a function-typed variable)?

  B = Universal                          -> yes
  A ≠ Universal and A ⊆ B                -> yes (A = ∅ and A = B included)
  otherwise                              -> no

Pure; consulted by the host's override and conversion checks.
"""

from __future__ import annotations

from typing import Optional, Union

from throwcheck.core.contracts import FunctionContract
from throwcheck.core.diagnostics import Diagnostic, DiagnosticKind
from throwcheck.core.exc_set import ExceptionSet, is_subset_of, subtract
from throwcheck.core.span import Span

ContractLike = Union[FunctionContract, ExceptionSet]


def _effective(contract: ContractLike) -> ExceptionSet:
	if isinstance(contract, FunctionContract):
		return contract.effective
	return contract


def is_covariant(a: ExceptionSet, b: ExceptionSet) -> bool:
	"""True when a contract-`a` function may be substituted for a contract-`b` one."""
	if b.universal:
		return True
	return not a.universal and is_subset_of(a, b)


def check_substitution(
	source: ContractLike,
	target: ContractLike,
	*,
	source_name: str = "source",
	target_name: str = "target",
	span: Span | None = None,
) -> Optional[Diagnostic]:
	"""
	Return a ContractNotCovariant diagnostic when `source` cannot stand in for
	`target`, None otherwise. Undeclared contracts count as Universal.
	"""
	a = _effective(source)
	b = _effective(target)
	if is_covariant(a, b):
		return None
	extra = subtract(a, b)
	if extra.universal:
		detail = "it may propagate any exception"
	else:
		detail = "it may additionally propagate " + ", ".join(t.name for t in extra.sorted_types())
	return Diagnostic(
		message=(
			f"{source_name} ({source.render()}) cannot be used as {target_name} "
			f"({target.render()}): {detail}"
		),
		kind=DiagnosticKind.CONTRACT_NOT_COVARIANT,
		escaping=extra,
		phase="verify",
		span=span or Span(),
	)


__all__ = ["is_covariant", "check_substitution"]
