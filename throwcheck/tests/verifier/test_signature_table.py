# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Tests for phase-1 signature registration.

These cover the rules that make the contract part of a function's type:
one identity, one contract, regardless of how many times it is declared.
"""

import pytest

from throwcheck.core.contracts import UNANNOTATED, ContractAnnotation, declared
from throwcheck.core.diagnostics import ContractError, DiagnosticKind
from throwcheck.core.exc_set import UNIVERSAL, ExceptionSet
from throwcheck.core.function_key import FunctionKey
from throwcheck.core.span import Span
from throwcheck.signatures import ChainedSignatures, SignatureTable

F = FunctionKey("f")


def test_conflicting_redeclaration_reports_conflicting_contract():
	"""`f() throws(E1, E1)` then `f() throws(E2)` is rejected."""
	table = SignatureTable()
	diags = []
	assert table.register(F, ContractAnnotation.throwing("E1", "E1"), span=Span("a.tc", 1, 1), diagnostics=diags)
	assert not table.register(F, ContractAnnotation.throwing("E2"), span=Span("a.tc", 2, 1), diagnostics=diags)
	assert [d.kind for d in diags] == [DiagnosticKind.CONFLICTING_CONTRACT]
	assert diags[0].function == F
	assert diags[0].notes == ["previous declaration is here: a.tc:1:1"]
	# The first contract stays registered.
	assert table.lookup(F).effective == ExceptionSet.of("E1")


def test_identical_redeclaration_is_accepted():
	"""Repeating the same contract (in any order, with duplicates) is fine."""
	table = SignatureTable()
	diags = []
	table.register(F, ContractAnnotation.throwing("E1", "E2"), diagnostics=diags)
	table.register(F, ContractAnnotation.throwing("E2", "E1", "E2"), diagnostics=diags)
	assert diags == []
	assert len(table) == 1


def test_noexcept_and_empty_throws_agree():
	"""`noexcept` and `throws()` are the same contract."""
	table = SignatureTable()
	diags = []
	table.register(F, ContractAnnotation.nothrow(), diagnostics=diags)
	table.register(F, ContractAnnotation.throwing(), diagnostics=diags)
	assert diags == []


def test_noexcept_with_throws_reports_conflict():
	"""`f() throws(E1) noexcept` is rejected and not registered."""
	table = SignatureTable()
	diags = []
	ann = ContractAnnotation(throws=ContractAnnotation.throwing("E1").throws, noexcept=True)
	assert not table.register(F, ann, diagnostics=diags)
	assert [d.kind for d in diags] == [DiagnosticKind.NOEXCEPT_THROWS_CONFLICT]
	assert F not in table


def test_register_without_sink_raises():
	"""No diagnostics sink: the first rejection is raised."""
	table = SignatureTable()
	table.register(F, declared(["E1"]))
	with pytest.raises(ContractError) as excinfo:
		table.register(F, declared(["E2"]))
	assert excinfo.value.diagnostic.kind is DiagnosticKind.CONFLICTING_CONTRACT


def test_unannotated_then_wildcard_keeps_declared_form():
	"""Undeclared and `throws(...)` are both Universal; the written form wins."""
	table = SignatureTable()
	diags = []
	table.register(F, UNANNOTATED, diagnostics=diags)
	table.register(F, ContractAnnotation.throwing(wildcard=True), diagnostics=diags)
	assert diags == []
	assert table.lookup(F).is_declared
	assert table.lookup(F).effective == UNIVERSAL


def test_unannotated_then_finite_conflicts():
	"""Undeclared (Universal) disagrees with a finite contract."""
	table = SignatureTable()
	diags = []
	table.register(F, UNANNOTATED, diagnostics=diags)
	table.register(F, ContractAnnotation.throwing("E1"), diagnostics=diags)
	assert [d.kind for d in diags] == [DiagnosticKind.CONFLICTING_CONTRACT]


def test_unknown_key_is_undeclared():
	"""Lookups of unregistered identities yield Undeclared."""
	table = SignatureTable()
	frozen = table.freeze()
	contract = frozen.lookup(FunctionKey("nobody"))
	assert not contract.is_declared
	assert contract.effective == UNIVERSAL


def test_freeze_publishes_immutable_view():
	"""After freeze() the mutable table refuses new registrations."""
	table = SignatureTable()
	table.register(F, declared(["E1"]), span=Span("a.tc", 3, 1))
	frozen = table.freeze()
	assert table.freeze() is frozen
	assert F in frozen
	assert dict(frozen.items()) == {F: declared(["E1"])}
	with pytest.raises(RuntimeError):
		table.register(FunctionKey("g"), declared())


def test_chained_signatures_prefers_first_provider():
	"""A unit's own table shadows injected providers."""
	local = SignatureTable()
	local.register(F, declared(["E1"]))
	other = SignatureTable()
	other.register(F, declared(["E2"]))
	other.register(FunctionKey("g"), declared(["E3"]))
	chain = ChainedSignatures(local.freeze(), other.freeze())
	assert chain.lookup(F).effective == ExceptionSet.of("E1")
	assert chain.lookup(FunctionKey("g")).effective == ExceptionSet.of("E3")
	assert FunctionKey("h") not in chain
	assert not chain.lookup(FunctionKey("h")).is_declared
