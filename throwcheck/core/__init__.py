"""
throwcheck.core: value types shared by every pass.

Modules:
  - exc_set: ExceptionSet algebra (union/subtract/subset/equality)
  - contracts: ContractAnnotation / FunctionContract and normalisation
  - function_key: FunctionKey (function identity)
  - types: TypeRef (resolved type at throw/catch sites)
  - span / diagnostics: source spans, Diagnostic and error kinds
"""

__all__ = [
	"exc_set",
	"contracts",
	"function_key",
	"types",
	"span",
	"diagnostics",
]
