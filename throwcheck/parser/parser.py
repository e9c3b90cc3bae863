from __future__ import annotations

import ast
from pathlib import Path
from typing import Callable, Dict, List, Optional

from lark import Lark, Token, Tree

from .ast import (
	AliasDef,
	Assign,
	Binary,
	Block,
	BlockStmt,
	BreakStmt,
	Call,
	CatchClause,
	ContinueStmt,
	ContractSpec,
	DoWhileStmt,
	EmptyStmt,
	ExceptionDef,
	Expr,
	ExprStmt,
	FnTypeExpr,
	ForStmt,
	FunctionDef,
	IfStmt,
	Literal,
	LocalDecl,
	Located,
	Name,
	Param,
	Program,
	RethrowStmt,
	ReturnStmt,
	Stmt,
	ThrowStmt,
	TryStmt,
	TypeExpr,
	TypeLike,
	Unary,
	WhileStmt,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()


_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="program",
	propagate_positions=True,
	maybe_placeholders=False,
)


def parse_program(source: str) -> Program:
	"""Parse source text; lark's UnexpectedInput propagates to the caller."""
	tree = _PARSER.parse(source)
	return _build_program(tree)


def _build_program(tree: Tree) -> Program:
	program = Program()
	for child in tree.children:
		if not isinstance(child, Tree):
			continue
		kind = _name(child)
		if kind == "exception_def":
			program.exceptions.append(_build_exception_def(child))
		elif kind == "alias_def":
			program.aliases.append(_build_alias_def(child))
		elif kind in ("function_decl", "function_def"):
			program.functions.append(_build_function(child))
		else:
			raise ValueError(f"unexpected top-level item {kind}")
	return program


def _build_exception_def(tree: Tree) -> ExceptionDef:
	name_tok = _first_token(tree, "NAME")
	return ExceptionDef(name=name_tok.value, loc=_loc(tree))


def _build_alias_def(tree: Tree) -> AliasDef:
	name_tok = _first_token(tree, "NAME")
	target = _build_type_ref(_first_tree(tree, "type_ref"))
	return AliasDef(name=name_tok.value, target=target, loc=_loc(tree))


def _build_function(tree: Tree) -> FunctionDef:
	head = _first_tree(tree, "fn_head")
	body_node = next((c for c in tree.children if isinstance(c, Tree) and _name(c) == "block"), None)
	return_type = _build_type_ref(_first_tree(head, "type_ref"))
	name_tok = _first_token(head, "NAME")
	params_node = next((c for c in head.children if isinstance(c, Tree) and _name(c) == "params"), None)
	params = [_build_param(p) for p in params_node.children] if params_node is not None else []
	contract = _build_contract(
		[c for c in head.children if isinstance(c, Tree) and _name(c) in ("throws_clause", "noexcept_clause")]
	)
	return FunctionDef(
		name=name_tok.value,
		params=params,
		return_type=return_type,
		contract=contract,
		body=_build_block(body_node) if body_node is not None else None,
		loc=_loc_from_token(name_tok),
	)


def _build_param(tree: Tree) -> Param:
	type_expr = _build_type_ref(_first_tree(tree, "type_ref"))
	name_tok = next((c for c in tree.children if isinstance(c, Token) and c.type == "NAME"), None)
	return Param(type_expr=type_expr, name=name_tok.value if name_tok is not None else None)


def _build_contract(clauses: List[Tree]) -> ContractSpec:
	"""
	Merge the annotation clauses of one signature. Several `throws` clauses
	concatenate; validity (e.g. `throws` together with `noexcept`) is judged
	later by the signature table.
	"""
	spec = ContractSpec()
	for clause in clauses:
		if spec.loc is None:
			spec.loc = _loc(clause)
		if _name(clause) == "noexcept_clause":
			spec.noexcept = True
			continue
		if spec.throws is None:
			spec.throws = []
		for list_node in clause.children:
			if not isinstance(list_node, Tree):
				continue
			for item in list_node.children:
				if item.type == "ELLIPSIS":
					spec.wildcard = True
				else:
					spec.throws.append(item.value)
	return spec


def _build_type_ref(tree: Tree) -> TypeLike:
	fn_node = next((c for c in tree.children if isinstance(c, Tree) and _name(c) == "fn_type"), None)
	if fn_node is not None:
		return _build_fn_type(fn_node)
	const = volatile = ref = False
	name = None
	for child in tree.children:
		if isinstance(child, Tree) and _name(child) == "qualifier":
			qual = child.children[0]
			if qual.type == "CONST":
				const = True
			else:
				volatile = True
		elif isinstance(child, Token) and child.type == "NAME":
			name = child.value
		elif isinstance(child, Token) and child.type == "AMP":
			ref = True
	if name is None:
		raise ValueError("type_ref missing name")
	return TypeExpr(name=name, const=const, volatile=volatile, ref=ref, loc=_loc(tree))


def _build_fn_type(tree: Tree) -> FnTypeExpr:
	params: List[TypeLike] = []
	list_node = next((c for c in tree.children if isinstance(c, Tree) and _name(c) == "type_list"), None)
	if list_node is not None:
		params = [_build_type_ref(t) for t in list_node.children]
	contract = _build_contract(
		[c for c in tree.children if isinstance(c, Tree) and _name(c) in ("throws_clause", "noexcept_clause")]
	)
	return FnTypeExpr(params=params, contract=contract, loc=_loc(tree))


# Statements

def _build_block(tree: Tree) -> Block:
	statements = [_build_stmt(child) for child in tree.children if isinstance(child, Tree)]
	return Block(statements=statements, loc=_loc(tree))


def _build_stmt(tree: Tree) -> Stmt:
	builder = _STMT_BUILDERS.get(_name(tree))
	if builder is None:
		raise ValueError(f"unexpected statement {_name(tree)}")
	return builder(tree)


def _build_block_stmt(tree: Tree) -> Stmt:
	return BlockStmt(loc=_loc(tree), block=_build_block(tree))


def _build_expr_stmt(tree: Tree) -> Stmt:
	return ExprStmt(loc=_loc(tree), value=_build_expr(tree.children[0]))


def _build_local_decl(tree: Tree) -> LocalDecl:
	type_expr = _build_type_ref(_first_tree(tree, "type_ref"))
	name_tok = _first_token(tree, "NAME")
	exprs = [c for c in tree.children if isinstance(c, Tree) and _name(c) != "type_ref"]
	value = _build_expr(exprs[0]) if exprs else None
	return LocalDecl(loc=_loc(tree), type_expr=type_expr, name=name_tok.value, value=value)


def _build_return_stmt(tree: Tree) -> Stmt:
	value = _build_expr(tree.children[0]) if tree.children else None
	return ReturnStmt(loc=_loc(tree), value=value)


def _build_throw_stmt(tree: Tree) -> Stmt:
	return ThrowStmt(loc=_loc(tree), value=_build_expr(tree.children[0]))


def _build_rethrow_stmt(tree: Tree) -> Stmt:
	return RethrowStmt(loc=_loc(tree))


def _build_try_stmt(tree: Tree) -> Stmt:
	body = _build_block(tree.children[0])
	catches = [_build_catch_clause(c) for c in tree.children[1:]]
	return TryStmt(loc=_loc(tree), body=body, catches=catches)


def _build_catch_clause(tree: Tree) -> CatchClause:
	param = _first_tree(tree, "catch_param")
	block = _build_block(_first_tree(tree, "block"))
	if any(isinstance(c, Token) and c.type == "ELLIPSIS" for c in param.children):
		return CatchClause(type_expr=None, binder=None, block=block, loc=_loc(tree))
	type_expr = _build_type_ref(_first_tree(param, "type_ref"))
	binder = next((c.value for c in param.children if isinstance(c, Token) and c.type == "NAME"), None)
	return CatchClause(type_expr=type_expr, binder=binder, block=block, loc=_loc(tree))


def _build_if_stmt(tree: Tree) -> Stmt:
	cond = _build_expr(tree.children[0])
	then_block = _build_block(tree.children[1])
	else_block: Optional[Block] = None
	if len(tree.children) > 2:
		else_node = tree.children[2]
		if _name(else_node) == "if_stmt":
			# `else if` chains become a nested if inside an else block.
			nested = _build_if_stmt(else_node)
			else_block = Block(statements=[nested], loc=nested.loc)
		else:
			else_block = _build_block(else_node)
	return IfStmt(loc=_loc(tree), condition=cond, then_block=then_block, else_block=else_block)


def _build_while_stmt(tree: Tree) -> Stmt:
	return WhileStmt(loc=_loc(tree), condition=_build_expr(tree.children[0]), body=_build_block(tree.children[1]))


def _build_do_stmt(tree: Tree) -> Stmt:
	return DoWhileStmt(loc=_loc(tree), body=_build_block(tree.children[0]), condition=_build_expr(tree.children[1]))


def _build_for_stmt(tree: Tree) -> Stmt:
	init_node, cond_node, step_node, body_node = tree.children
	init: Optional[Stmt] = None
	if init_node.children:
		inner = init_node.children[0]
		if _name(inner) == "local_decl":
			init = _build_local_decl(inner)
		else:
			init = ExprStmt(loc=_loc(inner), value=_build_expr(inner))
	cond = _build_expr(cond_node.children[0]) if cond_node.children else None
	step = _build_expr(step_node.children[0]) if step_node.children else None
	return ForStmt(loc=_loc(tree), init=init, condition=cond, step=step, body=_build_block(body_node))


def _build_break_stmt(tree: Tree) -> Stmt:
	return BreakStmt(loc=_loc(tree))


def _build_continue_stmt(tree: Tree) -> Stmt:
	return ContinueStmt(loc=_loc(tree))


def _build_empty_stmt(tree: Tree) -> Stmt:
	return EmptyStmt(loc=_loc(tree))


_STMT_BUILDERS: Dict[str, Callable[[Tree], Stmt]] = {
	"block": _build_block_stmt,
	"expr_stmt": _build_expr_stmt,
	"local_decl": _build_local_decl,
	"return_stmt": _build_return_stmt,
	"throw_stmt": _build_throw_stmt,
	"rethrow_stmt": _build_rethrow_stmt,
	"try_stmt": _build_try_stmt,
	"if_stmt": _build_if_stmt,
	"while_stmt": _build_while_stmt,
	"do_stmt": _build_do_stmt,
	"for_stmt": _build_for_stmt,
	"break_stmt": _build_break_stmt,
	"continue_stmt": _build_continue_stmt,
	"empty_stmt": _build_empty_stmt,
}


# Expressions

def _build_expr(node: Tree | Token) -> Expr:
	if isinstance(node, Token):
		# Single-token expressions are always wrapped by an atom alias; a bare
		# token here means the grammar changed underneath us.
		raise ValueError(f"unexpected bare token in expression: {node!r}")
	kind = _name(node)
	loc = _loc(node)
	if kind == "int_lit":
		return Literal(loc=loc, value=int(node.children[0].value))
	if kind == "str_lit":
		return Literal(loc=loc, value=ast.literal_eval(node.children[0].value))
	if kind == "true_lit":
		return Literal(loc=loc, value=True)
	if kind == "false_lit":
		return Literal(loc=loc, value=False)
	if kind == "var":
		tok = node.children[0]
		return Name(loc=_loc_from_token(tok), ident=tok.value)
	if kind == "call":
		func = _build_expr(node.children[0])
		args: List[Expr] = []
		if len(node.children) > 1:
			args = [_build_expr(a) for a in node.children[1].children]
		return Call(loc=func.loc, func=func, args=args)
	if kind == "unary":
		op_tok, operand = node.children
		return Unary(loc=loc, op=op_tok.value, operand=_build_expr(operand))
	if kind == "binary":
		left, op_tok, right = node.children
		return Binary(loc=loc, op=op_tok.value, left=_build_expr(left), right=_build_expr(right))
	if kind == "assign_expr":
		target, value = node.children
		return Assign(loc=loc, target=_build_expr(target), value=_build_expr(value))
	raise ValueError(f"unexpected expression {kind}")


def _first_tree(tree: Tree, name: str) -> Tree:
	for child in tree.children:
		if isinstance(child, Tree) and _name(child) == name:
			return child
	raise ValueError(f"{_name(tree)} missing {name}")


def _first_token(tree: Tree, ttype: str) -> Token:
	for child in tree.children:
		if isinstance(child, Token) and child.type == ttype:
			return child
	raise ValueError(f"{_name(tree)} missing {ttype} token")


def _loc(tree: Tree) -> Located:
	meta = tree.meta
	return Located(line=getattr(meta, "line", 0), column=getattr(meta, "column", 0))


def _loc_from_token(token: Token) -> Located:
	return Located(line=token.line, column=token.column)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)
