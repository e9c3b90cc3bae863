# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Effect inference: compute the set of exception types that may escape a HIR
expression or statement.

The analysis is effect-*may*: every sub-expression and every branch
contributes, whichever one runs at runtime. The only case that removes
exceptions is try/catch:

  remaining = effect(body)
  for each clause, left to right:
      remaining = remaining - {T}        (catch (T))
      remaining = remaining - Universal  (catch (...), always Finite(∅))
  result = remaining ∪ effect(handler_1) ∪ ... ∪ effect(handler_n)

A bare `throw;` inside a handler rethrows exactly the caught type, or
Universal inside `catch (...)` where the dynamic type is unknown.

Calls contribute the callee's contract; a callee without a contract
contributes Universal. A call whose target was never resolved is malformed
input and aborts the analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from throwcheck import hir as H
from throwcheck.core.diagnostics import Diagnostic, DiagnosticKind, malformed, report
from throwcheck.core.exc_set import (
	EMPTY,
	UNIVERSAL,
	ExceptionSet,
	subtract,
	union,
	union_all,
)
from throwcheck.core.function_key import FunctionKey, function_symbol
from throwcheck.core.span import Span
from throwcheck.core.types import TypeRef
from throwcheck.signatures import SignatureProvider


@dataclass(frozen=True)
class UnboundedSite:
	"""A site whose effect is Universal and that is not absorbed by a `catch (...)`."""

	reason: str
	span: Span = field(default_factory=Span)
	callee: Optional[FunctionKey] = None

	def describe(self) -> str:
		if self.span.is_known:
			return f"{self.reason} at {self.span.format()}"
		return self.reason


class EffectInference:
	"""
	Structural effect walker for one function body (or one fragment).

	`diagnostics` collects the recoverable site errors (catch by reference,
	qualified throw/catch types); without a sink the first one is raised.
	`unbounded_sites` lists the escaping sources of Universal, for the
	verifier's UndeclaredEscape notes.
	"""

	def __init__(
		self,
		signatures: SignatureProvider,
		*,
		function: FunctionKey | None = None,
		diagnostics: Optional[List[Diagnostic]] = None,
	) -> None:
		self._signatures = signatures
		self._function = function
		self._diagnostics = diagnostics
		self.unbounded_sites: List[UnboundedSite] = []

	def effect_of(self, node: H.HNode, rethrow: ExceptionSet | None = None) -> ExceptionSet:
		"""
		Effect of `node`. `rethrow` is the set a bare `throw;` produces at this
		point (the innermost enclosing handler's caught type), None outside
		any handler.
		"""
		handler = _DISPATCH.get(type(node))
		if handler is None:
			raise malformed(
				f"unsupported HIR node {type(node).__name__}",
				span=getattr(node, "span", None),
				function=self._function,
				phase="verify",
			)
		return handler(self, node, rethrow)

	def _all(self, nodes: Iterable[Optional[H.HNode]], rethrow: ExceptionSet | None) -> ExceptionSet:
		out = EMPTY
		for node in nodes:
			if node is None:
				continue
			out = union(out, self.effect_of(node, rethrow))
		return out

	def _unbounded(self, reason: str, span: Span, callee: FunctionKey | None = None) -> None:
		self.unbounded_sites.append(UnboundedSite(reason=reason, span=span, callee=callee))

	def _report(self, message: str, kind: DiagnosticKind, span: Span) -> None:
		report(
			Diagnostic(message=message, kind=kind, function=self._function, phase="verify", span=span),
			self._diagnostics,
		)

	def _thrown_type(self, ty: Optional[TypeRef], span: Span) -> ExceptionSet:
		if ty is None:
			raise malformed(
				"throw operand has no resolved static type",
				span=span,
				function=self._function,
				phase="verify",
			)
		if not ty.is_plain_value:
			self._report(
				f"cannot throw a value of type `{ty.render()}`; only unqualified value types may be thrown",
				DiagnosticKind.INVALID_THROW_TYPE,
				span,
			)
		return ExceptionSet.of(ty.exception_id())

	def _caught_type(self, clause: H.HCatch) -> ExceptionSet:
		if clause.type is None:
			return UNIVERSAL
		ty = clause.type
		if ty.is_ref:
			self._report(
				f"cannot catch by reference (`{ty.render()}`); catch the value type `{ty.name}`",
				DiagnosticKind.INVALID_CATCH_BY_REFERENCE,
				clause.span,
			)
		if ty.is_cv_qualified:
			self._report(
				f"cannot catch a value of type `{ty.render()}`; only unqualified value types may be caught",
				DiagnosticKind.INVALID_THROW_TYPE,
				clause.span,
			)
		return ExceptionSet.of(ty.exception_id())

	# expressions

	def _leaf(self, node: H.HExpr, rethrow: ExceptionSet | None) -> ExceptionSet:
		return EMPTY

	def _call(self, node: H.HCall, rethrow: ExceptionSet | None) -> ExceptionSet:
		if node.callee is None:
			name = f" `{node.callee_name}`" if node.callee_name else ""
			raise malformed(
				f"call{name} has no resolved target",
				span=node.span,
				function=self._function,
				phase="verify",
			)
		args = self._all(node.args, rethrow)
		contract = self._signatures.lookup(node.callee)
		effect = contract.effective
		if effect.universal:
			if contract.is_declared:
				reason = f"call to {function_symbol(node.callee)} declared throws(...)"
			else:
				reason = f"call to unannotated function {function_symbol(node.callee)}"
			self._unbounded(reason, node.span, node.callee)
		return union(args, effect)

	def _indirect_call(self, node: H.HIndirectCall, rethrow: ExceptionSet | None) -> ExceptionSet:
		operands = union(self.effect_of(node.callee, rethrow), self._all(node.args, rethrow))
		effect = node.contract.effective
		if effect.universal:
			self._unbounded("call through a function value without a bounded contract", node.span)
		return union(operands, effect)

	def _exception_init(self, node: H.HExceptionInit, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self._all(node.args, rethrow)

	def _unary(self, node: H.HUnary, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self.effect_of(node.expr, rethrow)

	def _binary(self, node: H.HBinary, rethrow: ExceptionSet | None) -> ExceptionSet:
		return union(self.effect_of(node.left, rethrow), self.effect_of(node.right, rethrow))

	# statements

	def _block(self, node: H.HBlock, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self._all(node.statements, rethrow)

	def _expr_stmt(self, node: H.HExprStmt, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self.effect_of(node.expr, rethrow)

	def _let(self, node: H.HLet, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self._all([node.value], rethrow)

	def _return(self, node: H.HReturn, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self._all([node.value], rethrow)

	def _throw(self, node: H.HThrow, rethrow: ExceptionSet | None) -> ExceptionSet:
		operand = self.effect_of(node.value, rethrow)
		return union(operand, self._thrown_type(node.type, node.span))

	def _rethrow(self, node: H.HRethrow, rethrow: ExceptionSet | None) -> ExceptionSet:
		if rethrow is None:
			self._unbounded("rethrow outside of a catch handler", node.span)
			return UNIVERSAL
		if rethrow.universal:
			self._unbounded("rethrow inside catch (...)", node.span)
		return rethrow

	def _if(self, node: H.HIf, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self._all([node.cond, node.then_block, node.else_block], rethrow)

	def _loop(self, node: H.HLoop, rethrow: ExceptionSet | None) -> ExceptionSet:
		return self._all([node.init, node.cond, node.body, node.step], rethrow)

	def _try(self, node: H.HTry, rethrow: ExceptionSet | None) -> ExceptionSet:
		mark = len(self.unbounded_sites)
		remaining = self.effect_of(node.body, rethrow)
		body_end = len(self.unbounded_sites)

		caught_sets: List[ExceptionSet] = []
		for clause in node.catches:
			caught = self._caught_type(clause)
			caught_sets.append(caught)
			remaining = subtract(remaining, caught)
		if not remaining.universal:
			# A catch (...) absorbed the body's Universal; its sources no longer escape.
			del self.unbounded_sites[mark:body_end]

		handlers = [self.effect_of(clause.block, caught) for clause, caught in zip(node.catches, caught_sets)]
		return union_all([remaining, *handlers])


_Handler = Callable[[EffectInference, H.HNode, Optional[ExceptionSet]], ExceptionSet]

_DISPATCH: Dict[type, _Handler] = {
	H.HLiteral: EffectInference._leaf,
	H.HVar: EffectInference._leaf,
	H.HCall: EffectInference._call,
	H.HIndirectCall: EffectInference._indirect_call,
	H.HExceptionInit: EffectInference._exception_init,
	H.HUnary: EffectInference._unary,
	H.HBinary: EffectInference._binary,
	H.HBlock: EffectInference._block,
	H.HExprStmt: EffectInference._expr_stmt,
	H.HLet: EffectInference._let,
	H.HReturn: EffectInference._return,
	H.HThrow: EffectInference._throw,
	H.HRethrow: EffectInference._rethrow,
	H.HIf: EffectInference._if,
	H.HLoop: EffectInference._loop,
	H.HBreak: EffectInference._leaf,
	H.HContinue: EffectInference._leaf,
	H.HTry: EffectInference._try,
}  # type: ignore[dict-item]


def effect_of(
	node: H.HNode,
	signatures: SignatureProvider,
	*,
	diagnostics: Optional[List[Diagnostic]] = None,
) -> ExceptionSet:
	"""
	Effect of a HIR fragment against `signatures`.

	This is the entry point for external consumers (override checking,
	`exceptions_thrown`-style utilities). Site errors go to `diagnostics`
	when supplied, otherwise the first one is raised as ContractError.
	"""
	return EffectInference(signatures, diagnostics=diagnostics).effect_of(node)


__all__ = ["EffectInference", "UnboundedSite", "effect_of"]
