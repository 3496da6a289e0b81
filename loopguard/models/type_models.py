"""
Type Models — Static types answered by the scope oracle.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PhpType(BaseModel):
    """A resolved PHP type with its full supertype closure (lower-cased)."""

    name: str = Field(..., description="Type name as written, e.g. 'Generator' or 'array'")
    ancestors: list[str] = Field(
        default_factory=list, description="All supertypes, lower-cased, without leading '\\'"
    )

    @property
    def is_mixed(self) -> bool:
        return self.name.lower() == "mixed"

    def is_subtype_of(self, type_name: str) -> bool:
        wanted = type_name.lstrip("\\").lower()
        return self.name.lstrip("\\").lower() == wanted or wanted in self.ancestors


MIXED = PhpType(name="mixed")
ARRAY = PhpType(name="array")
