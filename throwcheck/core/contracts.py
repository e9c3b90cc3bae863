# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Function exception contracts.

`ContractAnnotation` is what a declaration literally wrote; `FunctionContract`
is its normalised meaning:

  nothing written          -> Undeclared (interpreted as Universal)
  noexcept                 -> Declared(Finite(∅))
  throws()                 -> Declared(Finite(∅))
  throws(A, B, A)          -> Declared(Finite({A, B}))
  throws(A, ...)           -> Declared(Universal)
  throws(...) noexcept     -> rejected (see `is_conflicting`)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from .exc_set import UNIVERSAL, ExceptionSet, ExceptionTypeId, TypeLike
from .span import Span


@dataclass(frozen=True)
class ContractAnnotation:
	"""
	Literal `throws(...)`/`noexcept` annotation of one declaration.

	throws: listed type ids in source order (None = no `throws` clause)
	wildcard: the `...` marker appeared in the throws list
	noexcept: a `noexcept` specifier appeared
	"""

	throws: Optional[Tuple[ExceptionTypeId, ...]] = None
	wildcard: bool = False
	noexcept: bool = False
	span: Span = field(default_factory=Span, compare=False)

	@classmethod
	def throwing(cls, *types: TypeLike, wildcard: bool = False) -> "ContractAnnotation":
		ids = tuple(t if isinstance(t, ExceptionTypeId) else ExceptionTypeId(t) for t in types)
		return cls(throws=ids, wildcard=wildcard)

	@classmethod
	def nothrow(cls) -> "ContractAnnotation":
		return cls(noexcept=True)

	@property
	def has_throws(self) -> bool:
		return self.throws is not None or self.wildcard

	@property
	def is_written(self) -> bool:
		return self.has_throws or self.noexcept

	@property
	def is_conflicting(self) -> bool:
		"""`noexcept` and `throws(...)` on the same declaration."""
		return self.noexcept and self.has_throws

	def render(self) -> str:
		parts = []
		if self.has_throws:
			items = [t.name for t in self.throws or ()]
			if self.wildcard:
				items.append("...")
			parts.append("throws(" + ", ".join(items) + ")")
		if self.noexcept:
			parts.append("noexcept")
		return " ".join(parts)


UNANNOTATED = ContractAnnotation()


@dataclass(frozen=True)
class FunctionContract:
	"""
	Declared(ExceptionSet) when `declared` is set, Undeclared otherwise.

	Undeclared behaves as Universal for inference (`effective`) but stays
	distinguishable so diagnostics can say "no contract was written".
	"""

	declared: Optional[ExceptionSet] = None

	@property
	def is_declared(self) -> bool:
		return self.declared is not None

	@property
	def effective(self) -> ExceptionSet:
		return self.declared if self.declared is not None else UNIVERSAL

	def render(self) -> str:
		if self.declared is None:
			return "without an exception contract"
		if self.declared.is_empty:
			return "noexcept"
		return self.declared.render()

	def __str__(self) -> str:
		return self.render()


UNDECLARED = FunctionContract()


def declared(types: Iterable[TypeLike] | ExceptionSet = ()) -> FunctionContract:
	"""Shorthand for `FunctionContract(ExceptionSet.finite(types))` (or an existing set)."""
	if isinstance(types, ExceptionSet):
		return FunctionContract(types)
	return FunctionContract(ExceptionSet.finite(types))


def normalize_annotation(annotation: ContractAnnotation) -> FunctionContract:
	"""
	Normalise a literal annotation into its contract.

	Raises ValueError for a conflicting annotation; callers that need a
	diagnostic check `is_conflicting` first.
	"""
	if annotation.is_conflicting:
		raise ValueError(f"annotation `{annotation.render()}` specifies both noexcept and throws")
	if annotation.wildcard:
		return FunctionContract(UNIVERSAL)
	if annotation.throws is not None:
		return FunctionContract(ExceptionSet.finite(annotation.throws))
	if annotation.noexcept:
		return FunctionContract(ExceptionSet())
	return UNDECLARED


__all__ = [
	"ContractAnnotation",
	"FunctionContract",
	"UNANNOTATED",
	"UNDECLARED",
	"declared",
	"normalize_annotation",
]
