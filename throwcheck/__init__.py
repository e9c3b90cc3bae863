# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
throwcheck: static verification of declared exception contracts.

Functions declare the exception types they may propagate (`throws(...)`,
`noexcept`, or nothing at all). The verifier infers what each body can
actually let escape and reports every function whose body exceeds its
declared contract.

The CLI entrypoint is `throwcheck.driver:main` (`python -m throwcheck`).
"""

from throwcheck.core.contracts import (
	UNANNOTATED,
	UNDECLARED,
	ContractAnnotation,
	FunctionContract,
	declared,
	normalize_annotation,
)
from throwcheck.core.diagnostics import (
	ContractError,
	Diagnostic,
	DiagnosticKind,
	MalformedInputError,
)
from throwcheck.core.exc_set import (
	EMPTY,
	UNIVERSAL,
	ExceptionSet,
	ExceptionTypeId,
	equals,
	is_subset_of,
	subtract,
	union,
)
from throwcheck.core.function_key import FunctionKey
from throwcheck.infer import effect_of
from throwcheck.signatures import FrozenSignatureTable, SignatureTable
from throwcheck.variance import check_substitution, is_covariant
from throwcheck.verifier import (
	VerificationResult,
	VerifyOptions,
	verify_program,
	verify_unit,
)

__all__ = [
	"ContractAnnotation",
	"ContractError",
	"Diagnostic",
	"DiagnosticKind",
	"EMPTY",
	"ExceptionSet",
	"ExceptionTypeId",
	"FrozenSignatureTable",
	"FunctionContract",
	"FunctionKey",
	"MalformedInputError",
	"SignatureTable",
	"UNANNOTATED",
	"UNDECLARED",
	"UNIVERSAL",
	"VerificationResult",
	"VerifyOptions",
	"check_substitution",
	"declared",
	"effect_of",
	"equals",
	"is_covariant",
	"is_subset_of",
	"normalize_annotation",
	"subtract",
	"union",
	"verify_program",
	"verify_unit",
]
