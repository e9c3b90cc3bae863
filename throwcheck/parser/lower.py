# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parser AST → HIR lowering with the minimal resolution the verifier needs.

This is the reference front-end's stand-in for a host compiler's name
resolution and type checking. It resolves:

  - type spellings (aliases included) to canonical names,
  - call targets by name and argument count across every loaded unit,
  - the static type of each `throw` operand and `catch` parameter.

What it cannot resolve it leaves unresolved in HIR (a call without a target,
a throw without a type) so the verifier rejects it as malformed input. Unknown
type names are reported here as MalformedInput diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from throwcheck import hir as H
from throwcheck.core.contracts import (
	UNDECLARED,
	ContractAnnotation,
	FunctionContract,
	normalize_annotation,
)
from throwcheck.core.diagnostics import Diagnostic, DiagnosticKind
from throwcheck.core.exc_set import ExceptionTypeId
from throwcheck.core.function_key import FunctionKey
from throwcheck.core.span import Span
from throwcheck.core.types import TypeRef

from . import ast as A

BUILTIN_TYPES = frozenset({"void", "bool", "char", "int", "long", "float", "double", "string"})

_COMPARISON_OPS = frozenset({"==", "!=", "<", "<=", ">", ">=", "&&", "||"})


@dataclass(frozen=True)
class FnType:
	"""Resolved function type of a local or parameter; calls through it are indirect."""

	params: Tuple[str, ...]
	contract: FunctionContract

	def render(self) -> str:
		text = f"fn({', '.join(self.params)})"
		if self.contract.is_declared:
			text += " " + ("noexcept" if self.contract.effective.is_empty else self.contract.effective.render())
		return text


ResolvedType = Union[TypeRef, FnType]


@dataclass(frozen=True)
class _Signature:
	key: FunctionKey
	return_type: ResolvedType
	arity: int


class ProgramLowering:
	"""
	Lower a set of parsed units that see each other's declarations.

	Usage: `ProgramLowering(diagnostics).lower([(file, program), ...])`.
	"""

	def __init__(self, diagnostics: List[Diagnostic]) -> None:
		self._diagnostics = diagnostics
		self._exceptions: Set[str] = set()
		self._aliases: Dict[str, Tuple[A.TypeLike, str]] = {}
		self._resolving: Set[str] = set()
		self._functions: Dict[str, List[_Signature]] = {}

	def lower(self, sources: Sequence[Tuple[str, A.Program]]) -> List[H.HUnit]:
		for _file, program in sources:
			for exc in program.exceptions:
				self._exceptions.add(exc.name)
		for file, program in sources:
			for alias in program.aliases:
				if alias.name in self._aliases or alias.name in self._exceptions or alias.name in BUILTIN_TYPES:
					self.error(f"type `{alias.name}` is already defined", Span.from_loc(alias.loc, file))
					continue
				self._aliases[alias.name] = (alias.target, file)

		headers: List[Tuple[str, A.FunctionDef, FunctionKey, ResolvedType, ContractAnnotation]] = []
		for file, program in sources:
			for fn in program.functions:
				key, ret = self._function_key(fn, file)
				annotation = self._annotation(fn.contract, file)
				headers.append((file, fn, key, ret, annotation))
				sigs = self._functions.setdefault(fn.name, [])
				if all(s.key != key for s in sigs):
					sigs.append(_Signature(key=key, return_type=ret, arity=len(fn.params)))

		units: Dict[str, H.HUnit] = {file: H.HUnit(name=file) for file, _program in sources}
		for file, fn, key, _ret, annotation in headers:
			body = None
			if fn.body is not None:
				body = _BodyLowering(self, file, fn).lower()
			units[file].functions.append(
				H.HFunction(key=key, annotation=annotation, body=body, span=Span.from_loc(fn.loc, file))
			)
		return list(units.values())

	# resolution helpers used by _BodyLowering

	def resolve_type(self, expr: A.TypeLike, file: str) -> ResolvedType:
		if isinstance(expr, A.FnTypeExpr):
			params = tuple(self.render(self.resolve_type(p, file)) for p in expr.params)
			annotation = self._annotation(expr.contract, file)
			if annotation.is_conflicting:
				self._diagnostics.append(
					Diagnostic(
						message=f"function type specifies both noexcept and throws: `{annotation.render()}`",
						kind=DiagnosticKind.NOEXCEPT_THROWS_CONFLICT,
						phase="frontend",
						span=Span.from_loc(expr.loc, file),
					)
				)
				return FnType(params=params, contract=UNDECLARED)
			return FnType(params=params, contract=normalize_annotation(annotation))

		base = self._resolve_name(expr.name, expr.loc, file)
		if isinstance(base, FnType):
			if expr.const or expr.volatile or expr.ref:
				self.error(f"qualifiers are not supported on function type alias `{expr.name}`", Span.from_loc(expr.loc, file))
			return base
		return TypeRef(
			name=base.name,
			is_const=base.is_const or expr.const,
			is_volatile=base.is_volatile or expr.volatile,
			is_ref=base.is_ref or expr.ref,
		)

	def exception_type(self, name: str) -> Optional[TypeRef]:
		"""TypeRef for `name` when it names an exception type (directly or via alias)."""
		if name in self._exceptions:
			return TypeRef(name)
		entry = self._aliases.get(name)
		if entry is None:
			return None
		resolved = self.resolve_type(entry[0], entry[1])
		if isinstance(resolved, TypeRef) and resolved.name in self._exceptions:
			return resolved
		return None

	def resolve_call(self, name: str, arity: int) -> Optional[_Signature]:
		"""Exactly one function named `name` taking `arity` arguments, else None."""
		candidates = [s for s in self._functions.get(name, ()) if s.arity == arity]
		if len(candidates) == 1:
			return candidates[0]
		return None

	@staticmethod
	def render(ty: ResolvedType) -> str:
		return ty.render()

	def _resolve_name(self, name: str, loc: Optional[A.Located], file: str) -> ResolvedType:
		if name in self._exceptions or name in BUILTIN_TYPES:
			return TypeRef(name)
		entry = self._aliases.get(name)
		if entry is None:
			self.error(f"unknown type `{name}`", Span.from_loc(loc, file))
			return TypeRef(name)
		if name in self._resolving:
			self.error(f"type alias `{name}` refers to itself", Span.from_loc(loc, file))
			return TypeRef(name)
		self._resolving.add(name)
		try:
			return self.resolve_type(entry[0], entry[1])
		finally:
			self._resolving.discard(name)

	def _exception_id(self, name: str, loc: Optional[A.Located], file: str) -> ExceptionTypeId:
		resolved = self._resolve_name(name, loc, file)
		if isinstance(resolved, FnType):
			self.error(f"function type `{name}` cannot appear in a throws list", Span.from_loc(loc, file))
			return ExceptionTypeId(name)
		return resolved.exception_id()

	def _annotation(self, spec: A.ContractSpec, file: str) -> ContractAnnotation:
		throws = None
		if spec.throws is not None:
			throws = tuple(self._exception_id(name, spec.loc, file) for name in spec.throws)
		return ContractAnnotation(
			throws=throws,
			wildcard=spec.wildcard,
			noexcept=spec.noexcept,
			span=Span.from_loc(spec.loc, file),
		)

	def _function_key(self, fn: A.FunctionDef, file: str) -> Tuple[FunctionKey, ResolvedType]:
		ret = self.resolve_type(fn.return_type, file)
		params = tuple(self.render(self.resolve_type(p.type_expr, file)) for p in fn.params)
		return FunctionKey(name=fn.name, param_types=params, return_type=self.render(ret)), ret

	def error(self, message: str, span: Span) -> None:
		self._diagnostics.append(
			Diagnostic(message=message, kind=DiagnosticKind.MALFORMED_INPUT, phase="frontend", span=span)
		)


class _BodyLowering:
	"""Lower one function body; tracks lexical scopes for local types."""

	def __init__(self, program: ProgramLowering, file: str, fn: A.FunctionDef) -> None:
		self._program = program
		self._file = file
		params: Dict[str, ResolvedType] = {}
		for p in fn.params:
			if p.name is not None:
				params[p.name] = program.resolve_type(p.type_expr, file)
		self._scopes: List[Dict[str, ResolvedType]] = [params]
		self._fn = fn

	def lower(self) -> H.HBlock:
		assert self._fn.body is not None
		return self._block(self._fn.body)

	def _span(self, loc: Optional[A.Located]) -> Span:
		return Span.from_loc(loc, self._file)

	def _lookup(self, name: str) -> Optional[ResolvedType]:
		for scope in reversed(self._scopes):
			if name in scope:
				return scope[name]
		return None

	def _block(self, block: A.Block, bindings: Optional[Dict[str, ResolvedType]] = None) -> H.HBlock:
		self._scopes.append(dict(bindings or {}))
		try:
			stmts = [self._stmt(s) for s in block.statements]
		finally:
			self._scopes.pop()
		return H.HBlock(statements=[s for s in stmts if s is not None], span=self._span(block.loc))

	def _stmt(self, stmt: A.Stmt) -> Optional[H.HStmt]:
		span = self._span(stmt.loc)
		if isinstance(stmt, A.ExprStmt):
			return H.HExprStmt(expr=self._expr(stmt.value), span=span)
		if isinstance(stmt, A.LocalDecl):
			value = self._expr(stmt.value) if stmt.value is not None else None
			self._scopes[-1][stmt.name] = self._program.resolve_type(stmt.type_expr, self._file)
			return H.HLet(name=stmt.name, value=value, span=span)
		if isinstance(stmt, A.BlockStmt):
			return self._block(stmt.block)
		if isinstance(stmt, A.ReturnStmt):
			return H.HReturn(value=self._expr(stmt.value) if stmt.value is not None else None, span=span)
		if isinstance(stmt, A.ThrowStmt):
			ty = self._static_type(stmt.value)
			return H.HThrow(
				value=self._expr(stmt.value),
				type=ty if isinstance(ty, TypeRef) else None,
				span=span,
			)
		if isinstance(stmt, A.RethrowStmt):
			return H.HRethrow(span=span)
		if isinstance(stmt, A.TryStmt):
			return H.HTry(body=self._block(stmt.body), catches=[self._catch(c) for c in stmt.catches], span=span)
		if isinstance(stmt, A.IfStmt):
			return H.HIf(
				cond=self._expr(stmt.condition),
				then_block=self._block(stmt.then_block),
				else_block=self._block(stmt.else_block) if stmt.else_block is not None else None,
				span=span,
			)
		if isinstance(stmt, A.WhileStmt):
			return H.HLoop(body=self._block(stmt.body), cond=self._expr(stmt.condition), span=span)
		if isinstance(stmt, A.DoWhileStmt):
			return H.HLoop(body=self._block(stmt.body), cond=self._expr(stmt.condition), span=span)
		if isinstance(stmt, A.ForStmt):
			self._scopes.append({})
			try:
				init = self._stmt(stmt.init) if stmt.init is not None else None
				cond = self._expr(stmt.condition) if stmt.condition is not None else None
				step = self._expr(stmt.step) if stmt.step is not None else None
				body = self._block(stmt.body)
			finally:
				self._scopes.pop()
			return H.HLoop(body=body, cond=cond, init=init, step=step, span=span)
		if isinstance(stmt, A.BreakStmt):
			return H.HBreak(span=span)
		if isinstance(stmt, A.ContinueStmt):
			return H.HContinue(span=span)
		if isinstance(stmt, A.EmptyStmt):
			return None
		raise NotImplementedError(f"unsupported statement in lowering: {stmt!r}")

	def _catch(self, clause: A.CatchClause) -> H.HCatch:
		span = self._span(clause.loc)
		if clause.type_expr is None:
			return H.HCatch(type=None, block=self._block(clause.block), span=span)
		ty = self._program.resolve_type(clause.type_expr, self._file)
		if isinstance(ty, FnType):
			self._program.error("cannot catch a function type", span)
			ty_ref = TypeRef(ty.render())
		else:
			ty_ref = ty
		bindings = {clause.binder: ty_ref} if clause.binder else None
		return H.HCatch(type=ty_ref, block=self._block(clause.block, bindings), binder=clause.binder, span=span)

	def _expr(self, expr: A.Expr) -> H.HExpr:
		span = self._span(expr.loc)
		if isinstance(expr, A.Literal):
			return H.HLiteral(value=expr.value, span=span)
		if isinstance(expr, A.Name):
			return H.HVar(name=expr.ident, span=span)
		if isinstance(expr, A.Call):
			return self._call(expr)
		if isinstance(expr, A.Unary):
			return H.HUnary(op=expr.op, expr=self._expr(expr.operand), span=span)
		if isinstance(expr, A.Binary):
			return H.HBinary(op=expr.op, left=self._expr(expr.left), right=self._expr(expr.right), span=span)
		if isinstance(expr, A.Assign):
			return H.HBinary(op="=", left=self._expr(expr.target), right=self._expr(expr.value), span=span)
		raise NotImplementedError(f"unsupported expression in lowering: {expr!r}")

	def _call(self, expr: A.Call) -> H.HExpr:
		span = self._span(expr.loc)
		args = [self._expr(a) for a in expr.args]
		func = expr.func
		if isinstance(func, A.Name):
			local = self._lookup(func.ident)
			if isinstance(local, FnType):
				return H.HIndirectCall(
					callee=H.HVar(name=func.ident, span=span),
					contract=local.contract,
					args=args,
					span=span,
				)
			if local is None:
				exc = self._program.exception_type(func.ident)
				if exc is not None:
					return H.HExceptionInit(type=exc, args=args, span=span)
				sig = self._program.resolve_call(func.ident, len(args))
				if sig is not None:
					return H.HCall(callee=sig.key, args=args, callee_name=func.ident, span=span)
			return H.HCall(callee=None, args=args, callee_name=func.ident, span=span)
		callee_ty = self._static_type(func)
		callee = self._expr(func)
		if isinstance(callee_ty, FnType):
			return H.HIndirectCall(callee=callee, contract=callee_ty.contract, args=args, span=span)
		return H.HCall(callee=None, args=[callee, *args], span=span)

	def _static_type(self, expr: A.Expr) -> Optional[ResolvedType]:
		"""Best-effort static type; None when this front-end cannot tell."""
		if isinstance(expr, A.Literal):
			if isinstance(expr.value, bool):
				return TypeRef("bool")
			if isinstance(expr.value, int):
				return TypeRef("int")
			return TypeRef("string")
		if isinstance(expr, A.Name):
			return self._lookup(expr.ident)
		if isinstance(expr, A.Call):
			if not isinstance(expr.func, A.Name) or self._lookup(expr.func.ident) is not None:
				return None
			exc = self._program.exception_type(expr.func.ident)
			if exc is not None:
				return exc
			sig = self._program.resolve_call(expr.func.ident, len(expr.args))
			return sig.return_type if sig is not None else None
		if isinstance(expr, A.Assign):
			return self._static_type(expr.target)
		if isinstance(expr, A.Binary):
			if expr.op in _COMPARISON_OPS:
				return TypeRef("bool")
			return self._static_type(expr.left)
		if isinstance(expr, A.Unary):
			if expr.op == "!":
				return TypeRef("bool")
			return self._static_type(expr.operand)
		return None


def lower_program(sources: Sequence[Tuple[str, A.Program]], diagnostics: List[Diagnostic]) -> List[H.HUnit]:
	"""Lower parsed units (file name, program) that share one declaration space."""
	return ProgramLowering(diagnostics).lower(sources)


__all__ = ["BUILTIN_TYPES", "FnType", "ProgramLowering", "lower_program"]
