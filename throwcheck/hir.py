# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Resolved intermediate tree consumed by the effect inference engine.

Pipeline placement:
  source (parser/) → parser AST → lowering (parser/lower.py) → HIR (this file)
  → signature table + effect inference + verifier

Unlike the parser AST, HIR is *resolved*: every call carries the identity of
its target (or None when the front-end could not resolve it), every throw and
catch carries the static type of its operand, and loops are a single `HLoop`
shape. Host compilers that bring their own front-end build these nodes
directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from throwcheck.core.contracts import UNANNOTATED, ContractAnnotation, FunctionContract
from throwcheck.core.function_key import FunctionKey
from throwcheck.core.span import Span
from throwcheck.core.types import TypeRef


class HNode:
	"""Base class for all HIR nodes."""
	pass


class HExpr(HNode):
	"""Base class for all HIR expressions."""
	pass


class HStmt(HNode):
	"""Base class for all HIR statements."""
	pass


# Expressions

@dataclass
class HLiteral(HExpr):
	value: object
	span: Span = field(default_factory=Span)


@dataclass
class HVar(HExpr):
	name: str
	span: Span = field(default_factory=Span)


@dataclass
class HCall(HExpr):
	"""
	Direct call. `callee` is None when the front-end could not resolve the
	target; the engine rejects such calls as malformed input. `callee_name`
	is kept only for that diagnostic.
	"""

	callee: Optional[FunctionKey]
	args: List[HExpr] = field(default_factory=list)
	callee_name: Optional[str] = None
	span: Span = field(default_factory=Span)


@dataclass
class HIndirectCall(HExpr):
	"""Call through a function value whose static function type carries `contract`."""

	callee: HExpr
	contract: FunctionContract
	args: List[HExpr] = field(default_factory=list)
	span: Span = field(default_factory=Span)


@dataclass
class HExceptionInit(HExpr):
	"""Construction of an exception value (`E1(args)`); constructing never throws."""

	type: TypeRef
	args: List[HExpr] = field(default_factory=list)
	span: Span = field(default_factory=Span)


@dataclass
class HUnary(HExpr):
	op: str
	expr: HExpr
	span: Span = field(default_factory=Span)


@dataclass
class HBinary(HExpr):
	"""Binary/compound expression; assignment is `op == "="`."""

	op: str
	left: HExpr
	right: HExpr
	span: Span = field(default_factory=Span)


# Statements

@dataclass
class HBlock(HStmt):
	statements: List[HStmt] = field(default_factory=list)
	span: Span = field(default_factory=Span)


@dataclass
class HExprStmt(HStmt):
	expr: HExpr
	span: Span = field(default_factory=Span)


@dataclass
class HLet(HStmt):
	"""Local declaration with an optional initializer."""

	name: str
	value: Optional[HExpr] = None
	span: Span = field(default_factory=Span)


@dataclass
class HReturn(HStmt):
	value: Optional[HExpr] = None
	span: Span = field(default_factory=Span)


@dataclass
class HThrow(HStmt):
	"""
	`throw value;` where `type` is the static type of `value`.

	A None type means the front-end could not determine it (malformed input).
	"""

	value: HExpr
	type: Optional[TypeRef]
	span: Span = field(default_factory=Span)


@dataclass
class HRethrow(HStmt):
	"""Bare `throw;`; rethrows the value caught by the innermost enclosing handler."""

	span: Span = field(default_factory=Span)


@dataclass
class HIf(HStmt):
	cond: HExpr
	then_block: HBlock
	else_block: Optional[HBlock] = None
	span: Span = field(default_factory=Span)


@dataclass
class HLoop(HStmt):
	"""
	Any loop (`while`, `do/while`, `for`). Every part may be absent; the
	analysis is effect-may, so the evaluation order of the parts is irrelevant.
	"""

	body: HBlock
	cond: Optional[HExpr] = None
	init: Optional[HStmt] = None
	step: Optional[HExpr] = None
	span: Span = field(default_factory=Span)


@dataclass
class HBreak(HStmt):
	span: Span = field(default_factory=Span)


@dataclass
class HContinue(HStmt):
	span: Span = field(default_factory=Span)


@dataclass
class HCatch(HNode):
	"""
	Single catch clause of an HTry.

	type: caught type as written, qualifiers included (None = `catch(...)`)
	binder: local name bound to the caught value (None = unnamed)
	"""

	type: Optional[TypeRef]
	block: HBlock
	binder: Optional[str] = None
	span: Span = field(default_factory=Span)

	@property
	def is_catch_all(self) -> bool:
		return self.type is None


@dataclass
class HTry(HStmt):
	"""
	try { body } catch (T1) { ... } ... catch (...) { ... }

	Clauses are matched in source order by exact type identity.
	"""

	body: HBlock
	catches: List[HCatch]
	span: Span = field(default_factory=Span)


# Top level

@dataclass
class HFunction(HNode):
	"""A declaration (`body is None`) or a definition of one function."""

	key: FunctionKey
	annotation: ContractAnnotation = UNANNOTATED
	body: Optional[HBlock] = None
	span: Span = field(default_factory=Span)

	@property
	def is_definition(self) -> bool:
		return self.body is not None


@dataclass
class HUnit(HNode):
	"""A translation unit: declarations and definitions in source order."""

	name: str
	functions: List[HFunction] = field(default_factory=list)

	def definitions(self) -> Iterator[HFunction]:
		return (fn for fn in self.functions if fn.is_definition)


__all__ = [
	"HNode",
	"HExpr",
	"HStmt",
	"HLiteral",
	"HVar",
	"HCall",
	"HIndirectCall",
	"HExceptionInit",
	"HUnary",
	"HBinary",
	"HBlock",
	"HExprStmt",
	"HLet",
	"HReturn",
	"HThrow",
	"HRethrow",
	"HIf",
	"HLoop",
	"HBreak",
	"HContinue",
	"HCatch",
	"HTry",
	"HFunction",
	"HUnit",
]
