# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Signature table: function identity -> declared exception contract.

The table is built in a single pass over every visible declaration before
any body is analysed (bodies may call functions declared later, or in other
units). `freeze()` publishes the finished table as an immutable
`FrozenSignatureTable`; that frozen view is the only thing body verification
reads, so it can be shared across worker threads without locking.

Contracts of functions declared in other units are supplied by injected
providers (`ChainedSignatures`), never by global state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Protocol, Tuple, Union

from throwcheck.core.contracts import (
	UNDECLARED,
	ContractAnnotation,
	FunctionContract,
	normalize_annotation,
)
from throwcheck.core.diagnostics import Diagnostic, DiagnosticKind, report
from throwcheck.core.function_key import FunctionKey, function_symbol
from throwcheck.core.span import Span


class SignatureProvider(Protocol):
	"""Read-only source of function contracts."""

	def lookup(self, key: FunctionKey) -> FunctionContract:
		...

	def __contains__(self, key: object) -> bool:
		...


def check_annotation(
	key: FunctionKey,
	annotation: ContractAnnotation,
	*,
	span: Span | None = None,
	diagnostics: Optional[List[Diagnostic]] = None,
) -> bool:
	"""Report NoexceptThrowsConflict for `throws(...) noexcept`; True when the annotation is usable."""
	if not annotation.is_conflicting:
		return True
	report(
		Diagnostic(
			message=f"function {function_symbol(key)} specifies both noexcept and throws: `{annotation.render()}`",
			kind=DiagnosticKind.NOEXCEPT_THROWS_CONFLICT,
			function=key,
			phase="signatures",
			span=span or annotation.span,
		),
		diagnostics,
	)
	return False


@dataclass(frozen=True)
class SignatureEntry:
	"""Registered contract plus where it was first declared."""

	contract: FunctionContract
	span: Span = field(default_factory=Span)


class SignatureTable:
	"""
	Mutable table used during phase 1.

	`register` enforces that a function identity has exactly one contract:
	the contract is part of the function's type, so it cannot be overloaded.
	"""

	def __init__(self) -> None:
		self._entries: Dict[FunctionKey, SignatureEntry] = {}
		self._frozen: Optional[FrozenSignatureTable] = None

	def register(
		self,
		key: FunctionKey,
		contract: Union[ContractAnnotation, FunctionContract],
		*,
		span: Span | None = None,
		diagnostics: Optional[List[Diagnostic]] = None,
	) -> bool:
		"""
		Record the contract of one declaration of `key`.

		Returns True when the declaration was accepted. Rejections
		(`NoexceptThrowsConflict`, `ConflictingContract`) are reported to
		`diagnostics`, or raised as ContractError without a sink.
		"""
		if self._frozen is not None:
			raise RuntimeError("signature table is frozen; register all declarations before verification")
		if isinstance(contract, ContractAnnotation):
			span = span or contract.span
			if not check_annotation(key, contract, span=span, diagnostics=diagnostics):
				return False
			contract = normalize_annotation(contract)
		span = span or Span()

		existing = self._entries.get(key)
		if existing is None:
			self._entries[key] = SignatureEntry(contract=contract, span=span)
			return True
		if existing.contract.effective != contract.effective:
			notes = [f"previous declaration is here: {existing.span.format()}"] if existing.span.is_known else []
			report(
				Diagnostic(
					message=(
						f"conflicting exception contracts for {function_symbol(key)}: previously declared "
						f"{existing.contract.render()}, now {contract.render()}"
					),
					kind=DiagnosticKind.CONFLICTING_CONTRACT,
					function=key,
					phase="signatures",
					span=span,
					notes=notes,
				),
				diagnostics,
			)
			return False
		if contract.is_declared and not existing.contract.is_declared:
			# `f();` followed by `f() throws(...);` keeps the written form.
			self._entries[key] = SignatureEntry(contract=contract, span=existing.span)
		return True

	def lookup(self, key: FunctionKey) -> FunctionContract:
		entry = self._entries.get(key)
		return entry.contract if entry is not None else UNDECLARED

	def __contains__(self, key: object) -> bool:
		return key in self._entries

	def __len__(self) -> int:
		return len(self._entries)

	def freeze(self) -> "FrozenSignatureTable":
		"""Publish the table; later `register` calls fail."""
		if self._frozen is None:
			self._frozen = FrozenSignatureTable(self._entries)
		return self._frozen


class FrozenSignatureTable:
	"""Immutable view of a completed SignatureTable."""

	def __init__(self, entries: Mapping[FunctionKey, SignatureEntry]) -> None:
		self._entries: Mapping[FunctionKey, SignatureEntry] = MappingProxyType(dict(entries))

	def lookup(self, key: FunctionKey) -> FunctionContract:
		entry = self._entries.get(key)
		return entry.contract if entry is not None else UNDECLARED

	def __contains__(self, key: object) -> bool:
		return key in self._entries

	def __len__(self) -> int:
		return len(self._entries)

	def __iter__(self) -> Iterator[FunctionKey]:
		return iter(self._entries)

	def items(self) -> Iterator[Tuple[FunctionKey, FunctionContract]]:
		return ((key, entry.contract) for key, entry in self._entries.items())


class ChainedSignatures:
	"""
	Compose providers: the first one that knows a key answers.

	Used to put a unit's own table in front of read-only providers for
	functions declared in other units.
	"""

	def __init__(self, *providers: SignatureProvider) -> None:
		self._providers: Tuple[SignatureProvider, ...] = providers

	def lookup(self, key: FunctionKey) -> FunctionContract:
		for provider in self._providers:
			if key in provider:
				return provider.lookup(key)
		return UNDECLARED

	def __contains__(self, key: object) -> bool:
		return any(key in provider for provider in self._providers)


__all__ = [
	"SignatureProvider",
	"check_annotation",
	"SignatureEntry",
	"SignatureTable",
	"FrozenSignatureTable",
	"ChainedSignatures",
]
