# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source span carried by HIR nodes and diagnostics.

The front-end fills `file`/`line`/`column`; HIR built by hand (tests, host
compilers) may leave everything unset, which renders as an unknown location.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column of a node."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None

	@classmethod
	def from_loc(cls, loc: Any, file: Optional[str] = None) -> "Span":
		"""
		Build a Span from a parser location object (anything with `line` and
		`column`). An existing Span is returned unchanged.
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			return loc
		return cls(
			file=file or getattr(loc, "file", None),
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
		)

	@property
	def is_known(self) -> bool:
		return self.file is not None or self.line is not None

	def format(self) -> str:
		parts = []
		if self.file:
			parts.append(self.file)
		if self.line is not None:
			col = self.column if self.column is not None else 0
			parts.append(f"{self.line}:{col}")
		return ":".join(parts) if parts else "<unknown location>"


__all__ = ["Span"]
