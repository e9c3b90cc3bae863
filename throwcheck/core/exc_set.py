# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Exception-set algebra.

An `ExceptionSet` is either a finite set of exception type ids or the
universal element ("any exception whatsoever"). Every rule of the effect
system reduces to the four operations here:

  union(A, B)         Universal absorbs; otherwise set union
  subtract(A, B)      catch removal (see table in `subtract`)
  is_subset_of(A, B)  contract containment; Universal contains everything
  equals(A, B)        structural, order-independent

`Finite(∅)` is the `noexcept` contract and is strictly weaker than
`Universal`. Values are immutable and hashable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Tuple, Union


@dataclass(frozen=True, order=True)
class ExceptionTypeId:
	"""Identity of a throwable value type (canonical resolved name, never an alias spelling)."""

	name: str

	def __str__(self) -> str:
		return self.name


TypeLike = Union[ExceptionTypeId, str]


def _as_type_id(ty: TypeLike) -> ExceptionTypeId:
	if isinstance(ty, ExceptionTypeId):
		return ty
	return ExceptionTypeId(ty)


@dataclass(frozen=True)
class ExceptionSet:
	"""
	Finite set of exception type ids, or the universal element.

	Construct through `ExceptionSet.finite(...)`, `EMPTY` and `UNIVERSAL`
	rather than the raw fields; a universal set never carries members.
	"""

	types: FrozenSet[ExceptionTypeId] = frozenset()
	universal: bool = False

	def __post_init__(self) -> None:
		if self.universal and self.types:
			object.__setattr__(self, "types", frozenset())

	@classmethod
	def finite(cls, types: Iterable[TypeLike] = ()) -> "ExceptionSet":
		return cls(types=frozenset(_as_type_id(t) for t in types))

	@classmethod
	def of(cls, *types: TypeLike) -> "ExceptionSet":
		return cls.finite(types)

	@property
	def is_empty(self) -> bool:
		"""True for `Finite(∅)` (the no-throw contract); never for Universal."""
		return not self.universal and not self.types

	def sorted_types(self) -> Tuple[ExceptionTypeId, ...]:
		return tuple(sorted(self.types))

	def union(self, other: "ExceptionSet") -> "ExceptionSet":
		return union(self, other)

	def subtract(self, other: "ExceptionSet") -> "ExceptionSet":
		return subtract(self, other)

	def is_subset_of(self, other: "ExceptionSet") -> bool:
		return is_subset_of(self, other)

	def __or__(self, other: "ExceptionSet") -> "ExceptionSet":
		return union(self, other)

	def __sub__(self, other: "ExceptionSet") -> "ExceptionSet":
		return subtract(self, other)

	def render(self) -> str:
		"""Render in annotation syntax: `throws()`, `throws(A, B)` or `throws(...)`."""
		if self.universal:
			return "throws(...)"
		return "throws(" + ", ".join(t.name for t in self.sorted_types()) + ")"

	def __str__(self) -> str:
		return self.render()


EMPTY = ExceptionSet()
UNIVERSAL = ExceptionSet(universal=True)


def union(a: ExceptionSet, b: ExceptionSet) -> ExceptionSet:
	if a.universal or b.universal:
		return UNIVERSAL
	if not b.types:
		return a
	if not a.types:
		return b
	return ExceptionSet(types=a.types | b.types)


def union_all(sets: Iterable[ExceptionSet]) -> ExceptionSet:
	out = EMPTY
	for s in sets:
		out = union(out, s)
		if out.universal:
			break
	return out


def subtract(a: ExceptionSet, b: ExceptionSet) -> ExceptionSet:
	"""
	`a` minus `b`:

	  Universal - Universal = Finite(∅)
	  Universal - Finite(S) = Universal
	  Finite(S) - Universal = Finite(∅)
	  Finite(S) - Finite(T) = Finite(S \\ T)
	"""
	if b.universal:
		return EMPTY
	if a.universal:
		return UNIVERSAL
	return ExceptionSet(types=a.types - b.types)


def is_subset_of(a: ExceptionSet, b: ExceptionSet) -> bool:
	if b.universal:
		return True
	if a.universal:
		return False
	return a.types <= b.types


def equals(a: ExceptionSet, b: ExceptionSet) -> bool:
	return a == b


__all__ = [
	"ExceptionTypeId",
	"ExceptionSet",
	"EMPTY",
	"UNIVERSAL",
	"union",
	"union_all",
	"subtract",
	"is_subset_of",
	"equals",
]
