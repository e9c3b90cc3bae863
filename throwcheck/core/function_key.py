# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class FunctionKey:
	"""
Stable identity of a function: qualified name plus rendered parameter and
return types. The exception contract is deliberately not part of the key, so
two declarations that differ only in their contract collide.
"""

	name: str
	param_types: Tuple[str, ...] = ()
	return_type: str = "void"


def function_symbol(key: FunctionKey) -> str:
	"""Return a human-readable signature for diagnostics (e.g. `int f(int, E1)`)."""
	params = ", ".join(key.param_types)
	return f"{key.return_type} {key.name}({params})"


__all__ = ["FunctionKey", "function_symbol"]
