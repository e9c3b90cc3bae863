# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Resolved value types as they appear at throw and catch sites.

The front-end resolves spellings (aliases included) to a canonical `name`
and keeps the qualifiers it saw; the inference engine decides whether a
qualified type is acceptable at a given site.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .exc_set import ExceptionTypeId


@dataclass(frozen=True)
class TypeRef:
	"""Canonical type name plus cv/ref qualifiers."""

	name: str
	is_const: bool = False
	is_volatile: bool = False
	is_ref: bool = False

	@property
	def is_cv_qualified(self) -> bool:
		return self.is_const or self.is_volatile

	@property
	def is_plain_value(self) -> bool:
		return not (self.is_ref or self.is_cv_qualified)

	def unqualified(self) -> "TypeRef":
		return replace(self, is_const=False, is_volatile=False, is_ref=False)

	def exception_id(self) -> ExceptionTypeId:
		"""Identity used in exception sets; qualifiers never take part in it."""
		return ExceptionTypeId(self.name)

	def render(self) -> str:
		parts = []
		if self.is_const:
			parts.append("const")
		if self.is_volatile:
			parts.append("volatile")
		parts.append(self.name)
		text = " ".join(parts)
		return text + "&" if self.is_ref else text

	def __str__(self) -> str:
		return self.render()


__all__ = ["TypeRef"]
