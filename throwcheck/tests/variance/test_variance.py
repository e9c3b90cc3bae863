# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Tests for contract variance (substitutability of one contract for another).
"""

import pytest

from throwcheck.core.contracts import UNDECLARED, declared
from throwcheck.core.diagnostics import DiagnosticKind
from throwcheck.core.exc_set import EMPTY, UNIVERSAL, ExceptionSet
from throwcheck.core.span import Span
from throwcheck.variance import check_substitution, is_covariant

E1 = ExceptionSet.of("E1")
E12 = ExceptionSet.of("E1", "E2")


@pytest.mark.parametrize("target", [EMPTY, E1, E12, UNIVERSAL])
def test_noexcept_substitutes_for_anything(target):
	"""A no-throw function fits every slot."""
	assert is_covariant(EMPTY, target)


@pytest.mark.parametrize("source", [EMPTY, E1, E12, UNIVERSAL])
def test_anything_substitutes_for_universal(source):
	"""A `throws(...)` slot accepts every contract."""
	assert is_covariant(source, UNIVERSAL)


@pytest.mark.parametrize("target", [EMPTY, E1, E12])
def test_universal_does_not_substitute_for_finite(target):
	"""An unbounded function cannot fill a bounded slot."""
	assert not is_covariant(UNIVERSAL, target)


def test_subset_rule():
	"""Narrower contracts substitute for wider ones, not the reverse."""
	assert is_covariant(E1, E12)
	assert is_covariant(E12, E12)
	assert not is_covariant(E12, E1)


def test_check_substitution_reports_extra_types():
	"""The diagnostic payload is what the source adds over the target."""
	diag = check_substitution(
		declared(["E1", "E2"]),
		declared(["E1"]),
		source_name="override B::f",
		target_name="A::f",
		span=Span(file="a.tc", line=3, column=1),
	)
	assert diag is not None
	assert diag.kind is DiagnosticKind.CONTRACT_NOT_COVARIANT
	assert diag.escaping == ExceptionSet.of("E2")
	assert diag.message == (
		"override B::f (throws(E1, E2)) cannot be used as A::f (throws(E1)): "
		"it may additionally propagate E2"
	)
	assert diag.span.line == 3


def test_check_substitution_treats_undeclared_as_universal():
	"""An unannotated source cannot be converted to a noexcept function value."""
	diag = check_substitution(UNDECLARED, declared())
	assert diag is not None
	assert diag.escaping == UNIVERSAL
	assert diag.message.endswith("it may propagate any exception")
	assert check_substitution(declared(["E1"]), UNDECLARED) is None


def test_check_substitution_accepts_raw_sets():
	"""Plain ExceptionSets are accepted as well as contracts."""
	assert check_substitution(E1, E12) is None
	assert check_substitution(E12, E1) is not None
