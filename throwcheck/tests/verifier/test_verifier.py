# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Tests for the two-phase contract verifier.

Phase 1 failures must stop phase 2; phase 2 diagnostics are scoped to the
function they belong to and come back in source order whatever the worker
count.
"""

import pytest

from throwcheck import hir as H
from throwcheck.core.contracts import UNANNOTATED, ContractAnnotation, declared
from throwcheck.core.diagnostics import DiagnosticKind, MalformedInputError
from throwcheck.core.exc_set import UNIVERSAL, ExceptionSet, is_subset_of
from throwcheck.core.function_key import FunctionKey
from throwcheck.core.span import Span
from throwcheck.core.types import TypeRef
from throwcheck.infer import effect_of
from throwcheck.signatures import SignatureTable
from throwcheck.verifier import VerifyOptions, build_signature_table, verify_program, verify_unit


def _decl(name: str, annotation: ContractAnnotation = UNANNOTATED) -> H.HFunction:
	return H.HFunction(key=FunctionKey(name), annotation=annotation)


def _defn(name: str, annotation: ContractAnnotation, *stmts: H.HStmt) -> H.HFunction:
	return H.HFunction(key=FunctionKey(name), annotation=annotation, body=H.HBlock(statements=list(stmts)))


def _call(name: str) -> H.HExprStmt:
	return H.HExprStmt(expr=H.HCall(callee=FunctionKey(name), callee_name=name))


def _throw(name: str) -> H.HThrow:
	return H.HThrow(value=H.HExceptionInit(type=TypeRef(name)), type=TypeRef(name))


THROWS = ContractAnnotation.throwing
NOEXCEPT = ContractAnnotation.nothrow()


def _library():
	return [
		_decl("foo", THROWS("E1")),
		_decl("bar", THROWS("E2")),
		_decl("ext"),
	]


def test_conflicting_declarations_abort_phase_two():
	"""`f() throws(E1, E1)` then `f() throws(E2)`: ConflictingContract and no body checks."""
	unit = H.HUnit(
		name="a.tc",
		functions=[
			_decl("f", THROWS("E1", "E1")),
			_decl("f", THROWS("E2")),
			_defn("g", NOEXCEPT, _throw("E1")),
		],
	)
	result = verify_unit(unit)
	assert not result.ok
	assert result.signatures is None
	assert result.reports == []
	assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CONFLICTING_CONTRACT]


def test_noexcept_with_throws_is_rejected():
	"""`f() throws(E1) noexcept` fails phase 1."""
	ann = ContractAnnotation(throws=THROWS("E1").throws, noexcept=True)
	result = verify_unit(H.HUnit(name="a.tc", functions=[_decl("f", ann)]))
	assert [d.kind for d in result.signature_diagnostics] == [DiagnosticKind.NOEXCEPT_THROWS_CONFLICT]
	assert result.diagnostics[0].phase == "signatures"


def test_call_to_unannotated_function_escapes_any_contract():
	"""A body calling an unannotated function infers Universal and escapes `throws(E1)`."""
	unit = H.HUnit(
		name="a.tc",
		functions=[*_library(), _defn("h", THROWS("E1"), _call("ext"))],
	)
	result = verify_unit(unit)
	(rep,) = result.reports
	(diag,) = rep.diagnostics
	assert diag.kind is DiagnosticKind.UNDECLARED_ESCAPE
	assert diag.function == FunctionKey("h")
	assert diag.escaping == UNIVERSAL
	assert diag.message == "function void h() is declared throws(E1) but may propagate any exception"
	assert diag.notes == ["unbounded: call to unannotated function void ext()"]


def test_finite_escape_names_the_escaping_types():
	"""The payload is body minus declared."""
	unit = H.HUnit(
		name="a.tc",
		functions=[*_library(), _defn("f", THROWS("E1"), _call("foo"), _call("bar"), _throw("E3"))],
	)
	(diag,) = verify_unit(unit).diagnostics
	assert diag.escaping == ExceptionSet.of("E2", "E3")
	assert diag.message == "function void f() is declared throws(E1) but may propagate E2, E3"
	assert diag.notes == []


def test_noexcept_function_that_throws():
	"""noexcept is Finite(∅): any thrown type escapes."""
	unit = H.HUnit(name="a.tc", functions=[_defn("f", NOEXCEPT, _throw("E1"))])
	(diag,) = verify_unit(unit).diagnostics
	assert diag.message == "function void f() is declared noexcept but may propagate E1"


def test_catch_all_makes_unannotated_call_noexcept_safe():
	"""Wrapping an unbounded call in `catch (...)` satisfies noexcept."""
	body = H.HTry(
		body=H.HBlock(statements=[_call("ext")]),
		catches=[H.HCatch(type=None, block=H.HBlock())],
	)
	unit = H.HUnit(name="a.tc", functions=[*_library(), _defn("f", NOEXCEPT, body)])
	assert verify_unit(unit).ok


def test_unannotated_definition_never_escapes():
	"""A definition without any contract is Universal and admits everything."""
	unit = H.HUnit(name="a.tc", functions=[*_library(), _defn("f", UNANNOTATED, _call("ext"), _throw("E9"))])
	result = verify_unit(unit)
	assert result.ok
	assert not result.signatures.lookup(FunctionKey("f")).is_declared


def test_definition_mismatching_declaration():
	"""A definition repeating a different contract than its declaration is reported."""
	unit = H.HUnit(
		name="a.tc",
		functions=[_decl("f", THROWS("E1")), _defn("f", THROWS("E2"))],
	)
	result = verify_unit(unit)
	assert result.signature_diagnostics == []
	(diag,) = result.diagnostics
	assert diag.kind is DiagnosticKind.DECLARATION_DEFINITION_MISMATCH
	assert diag.message == "definition of void f() is throws(E2) but it was declared throws(E1)"


def test_definition_without_annotation_inherits_declaration():
	"""Omitting the contract on the definition reuses the declared one."""
	unit = H.HUnit(
		name="a.tc",
		functions=[*_library(), _decl("f", THROWS("E1")), _defn("f", UNANNOTATED, _call("foo"))],
	)
	assert verify_unit(unit).ok
	unit.functions.append(_defn("g", UNANNOTATED))
	unit.functions.insert(0, _decl("g", NOEXCEPT))
	unit.functions[-1].body.statements.append(_call("bar"))
	(diag,) = verify_unit(unit).diagnostics
	assert diag.function == FunctionKey("g")
	assert diag.escaping == ExceptionSet.of("E2")


def test_definition_with_conflicting_annotation_fails_phase_one():
	"""A declared identity's definition still may not write `throws(...) noexcept`."""
	ann = ContractAnnotation(throws=THROWS("E1").throws, noexcept=True)
	unit = H.HUnit(name="a.tc", functions=[_decl("f", THROWS("E1")), _defn("f", ann)])
	result = verify_unit(unit)
	assert result.signatures is None
	assert [d.kind for d in result.diagnostics] == [DiagnosticKind.NOEXCEPT_THROWS_CONFLICT]


def test_site_errors_do_not_stop_other_functions():
	"""Recoverable site errors are scoped to their function."""
	bad_catch = H.HTry(
		body=H.HBlock(statements=[_call("foo")]),
		catches=[H.HCatch(type=TypeRef("E1", is_ref=True), block=H.HBlock())],
	)
	unit = H.HUnit(
		name="a.tc",
		functions=[*_library(), _defn("f", NOEXCEPT, bad_catch), _defn("g", THROWS("E1"), _call("foo"))],
	)
	result = verify_unit(unit)
	f_rep, g_rep = result.reports
	assert [d.kind for d in f_rep.diagnostics] == [DiagnosticKind.INVALID_CATCH_BY_REFERENCE]
	assert g_rep.ok


def test_unresolved_call_aborts_the_unit():
	"""MalformedInputError propagates out of verify_unit."""
	bad = H.HExprStmt(expr=H.HCall(callee=None, callee_name="nowhere"))
	unit = H.HUnit(name="a.tc", functions=[_defn("f", NOEXCEPT, bad)])
	with pytest.raises(MalformedInputError):
		verify_unit(unit)
	with pytest.raises(MalformedInputError):
		verify_unit(unit, options=VerifyOptions(workers=2))


def test_deeply_nested_body_is_malformed_input():
	"""An expression chain too deep to walk aborts with MalformedInput, not RecursionError."""
	expr: H.HExpr = H.HLiteral(1)
	for _ in range(5000):
		expr = H.HBinary(op="+", left=expr, right=H.HLiteral(1))
	unit = H.HUnit(name="a.tc", functions=[_defn("f", NOEXCEPT, H.HReturn(value=expr))])
	with pytest.raises(MalformedInputError) as info:
		verify_unit(unit)
	diag = info.value.diagnostic
	assert diag.kind is DiagnosticKind.MALFORMED_INPUT
	assert diag.function == FunctionKey("f")
	assert "nests too deeply" in diag.message


def test_parallel_verification_keeps_source_order():
	"""Reports come back in definition order for any worker count."""
	functions = list(_library())
	for i in range(12):
		ann = NOEXCEPT if i % 3 == 0 else THROWS("E1")
		functions.append(_defn(f"f{i}", ann, _call("foo")))
	unit = H.HUnit(name="a.tc", functions=functions)
	sequential = verify_unit(unit)
	parallel = verify_unit(unit, options=VerifyOptions(workers=4))
	assert [r.function for r in parallel.reports] == [FunctionKey(f"f{i}") for i in range(12)]
	assert [r.function for r in parallel.reports] == [r.function for r in sequential.reports]
	assert [len(r.diagnostics) for r in parallel.reports] == [len(r.diagnostics) for r in sequential.reports]
	assert sum(1 for r in parallel.reports if not r.ok) == 4


def test_workers_must_be_positive():
	"""VerifyOptions validates the pool size."""
	with pytest.raises(ValueError):
		VerifyOptions(workers=0)


def test_external_providers_answer_for_other_units():
	"""Contracts from other units are injected, not global."""
	other = SignatureTable()
	other.register(FunctionKey("remote"), declared(["E5"]))
	unit = H.HUnit(name="a.tc", functions=[_defn("f", THROWS("E5"), _call("remote"))])
	assert verify_unit(unit, external=[other.freeze()]).ok
	# Without the provider the callee is unknown, hence Universal.
	assert not verify_unit(unit).ok


def test_program_shares_one_signature_table():
	"""verify_program lets a unit call functions declared in another unit."""
	lib = H.HUnit(name="lib.tc", functions=[_decl("foo", THROWS("E1")), _decl("g", NOEXCEPT)])
	app = H.HUnit(
		name="app.tc",
		functions=[
			_defn("main", THROWS("E1"), _call("foo")),
			_defn("g", UNANNOTATED, _call("foo")),
		],
	)
	result = verify_program([lib, app])
	assert result.unit == "lib.tc, app.tc"
	assert FunctionKey("foo") in result.signatures
	main_rep, g_rep = result.reports
	assert main_rep.ok
	assert [d.kind for d in g_rep.diagnostics] == [DiagnosticKind.UNDECLARED_ESCAPE]


def test_program_phase_one_spans_every_unit():
	"""Conflicts between units are caught by the program-wide barrier."""
	a = H.HUnit(name="a.tc", functions=[_decl("f", THROWS("E1"))])
	b = H.HUnit(name="b.tc", functions=[_decl("f", NOEXCEPT)])
	result = verify_program([a, b])
	assert result.signatures is None
	assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CONFLICTING_CONTRACT]


def test_build_signature_table_registers_undeclared_definitions():
	"""Definitions without a bodyless declaration register their own contract."""
	diags = []
	table = build_signature_table(
		[_decl("f", THROWS("E1")), _defn("f", THROWS("E2")), _defn("g", THROWS("E3"))],
		diags,
	)
	assert diags == []
	assert table.lookup(FunctionKey("f")).effective == ExceptionSet.of("E1")
	assert table.lookup(FunctionKey("g")).effective == ExceptionSet.of("E3")


def test_diagnostics_carry_definition_span():
	"""Escape diagnostics point at the function definition."""
	fn = _defn("f", NOEXCEPT, _throw("E1"))
	fn.span = Span(file="a.tc", line=7, column=6)
	(diag,) = verify_unit(H.HUnit(name="a.tc", functions=[fn])).diagnostics
	assert diag.format().startswith("a.tc:7:6: error[UndeclaredEscape]: ")


BODIES = [
	[],
	[_call("foo")],
	[_call("foo"), _call("bar")],
	[_call("ext")],
	[_throw("E2")],
	[H.HTry(body=H.HBlock(statements=[_call("bar")]), catches=[H.HCatch(type=TypeRef("E2"), block=H.HBlock())])],
]
CONTRACTS = [NOEXCEPT, THROWS("E1"), THROWS("E1", "E2"), THROWS(wildcard=True)]


@pytest.mark.parametrize("stmts", BODIES)
@pytest.mark.parametrize("annotation", CONTRACTS)
def test_escape_check_is_exactly_the_subset_test(stmts, annotation):
	"""No UndeclaredEscape iff effect(body) ⊆ declared."""
	fn = _defn("f", annotation, *stmts)
	unit = H.HUnit(name="a.tc", functions=[*_library(), fn])
	result = verify_unit(unit)
	body = effect_of(fn.body, result.signatures)
	expected_ok = is_subset_of(body, result.signatures.lookup(fn.key).effective)
	escapes = [d for d in result.diagnostics if d.kind is DiagnosticKind.UNDECLARED_ESCAPE]
	assert (not escapes) is expected_ok
