from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class Located:
    line: int
    column: int


@dataclass
class ContractSpec:
    """Raw `throws(...)`/`noexcept` clauses of one signature, merged in source order."""

    throws: Optional[List[str]] = None
    wildcard: bool = False
    noexcept: bool = False
    loc: Optional[Located] = None


@dataclass
class TypeExpr:
    name: str
    const: bool = False
    volatile: bool = False
    ref: bool = False
    loc: Optional[Located] = None


@dataclass
class FnTypeExpr:
    """Function type `fn(T1, T2) throws(...)`; its contract is part of the type."""

    params: List["TypeLike"]
    contract: ContractSpec
    loc: Optional[Located] = None


TypeLike = Union[TypeExpr, FnTypeExpr]


@dataclass
class Param:
    type_expr: TypeLike
    name: Optional[str] = None


@dataclass
class ExceptionDef:
    name: str
    loc: Located


@dataclass
class AliasDef:
    name: str
    target: TypeLike
    loc: Located


@dataclass
class Block:
    statements: List["Stmt"]
    loc: Optional[Located] = None


@dataclass
class FunctionDef:
    """A declaration (`body is None`) or a definition."""

    name: str
    params: List[Param]
    return_type: TypeLike
    contract: ContractSpec
    body: Optional[Block]
    loc: Located


@dataclass
class Program:
    exceptions: List[ExceptionDef] = field(default_factory=list)
    aliases: List[AliasDef] = field(default_factory=list)
    functions: List[FunctionDef] = field(default_factory=list)


# Expressions

class Expr:
    loc: Located


@dataclass
class Literal(Expr):
    loc: Located
    value: object


@dataclass
class Name(Expr):
    loc: Located
    ident: str


@dataclass
class Call(Expr):
    loc: Located
    func: Expr
    args: List[Expr]


@dataclass
class Unary(Expr):
    loc: Located
    op: str
    operand: Expr


@dataclass
class Binary(Expr):
    loc: Located
    op: str
    left: Expr
    right: Expr


@dataclass
class Assign(Expr):
    loc: Located
    target: Expr
    value: Expr


# Statements

class Stmt:
    loc: Located


@dataclass
class ExprStmt(Stmt):
    loc: Located
    value: Expr


@dataclass
class LocalDecl(Stmt):
    loc: Located
    type_expr: TypeLike
    name: str
    value: Optional[Expr] = None


@dataclass
class BlockStmt(Stmt):
    loc: Located
    block: Block


@dataclass
class ReturnStmt(Stmt):
    loc: Located
    value: Optional[Expr]


@dataclass
class ThrowStmt(Stmt):
    loc: Located
    value: Expr


@dataclass
class RethrowStmt(Stmt):
    loc: Located


@dataclass
class CatchClause:
    """`catch (T name)`; `type_expr is None` for `catch (...)`."""

    type_expr: Optional[TypeLike]
    binder: Optional[str]
    block: Block
    loc: Located


@dataclass
class TryStmt(Stmt):
    loc: Located
    body: Block
    catches: List[CatchClause]


@dataclass
class IfStmt(Stmt):
    loc: Located
    condition: Expr
    then_block: Block
    else_block: Optional[Block] = None


@dataclass
class WhileStmt(Stmt):
    loc: Located
    condition: Expr
    body: Block


@dataclass
class DoWhileStmt(Stmt):
    loc: Located
    body: Block
    condition: Expr


@dataclass
class ForStmt(Stmt):
    loc: Located
    init: Optional[Stmt]
    condition: Optional[Expr]
    step: Optional[Expr]
    body: Block


@dataclass
class BreakStmt(Stmt):
    loc: Located


@dataclass
class ContinueStmt(Stmt):
    loc: Located


@dataclass
class EmptyStmt(Stmt):
    loc: Located
