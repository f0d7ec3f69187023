"""
Field descriptors of a (possibly mixed) discretisation.

Each field owns its reference family and order; the local DOF vector of an
element is the concatenation of the field blocks in declaration order, so a
Boussinesq layout ``T, U, V, P`` with Q2-Q2-Q2-DP1 on quads gives
``9 + 9 + 9 + 3`` local DOFs.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Sequence, Tuple

from pyfemasm.fem.reference import get_reference

FAMILIES = ("lagrange", "dg")


@dataclass(frozen=True, slots=True)
class FieldSpec:
    name: str
    order: int = 1
    family: str = "lagrange"

    def __post_init__(self):
        if self.family not in FAMILIES:
            raise ValueError(f"Field '{self.name}': unknown family '{self.family}'.")
        if self.order < 0 or (self.family == "lagrange" and self.order == 0):
            # P0 Lagrange on tensor cells has no nodes; use dg instead
            raise ValueError(f"Field '{self.name}': invalid order {self.order} for {self.family}.")

    @property
    def is_lagrange(self) -> bool:
        return self.family == "lagrange"


class MixedElement:
    """Ordered list of :class:`FieldSpec` with per-element-type block layout."""

    def __init__(self, field_specs: Sequence[FieldSpec]):
        specs = [s if isinstance(s, FieldSpec) else FieldSpec(*s) for s in field_specs]
        if not specs:
            raise ValueError("'field_specs' cannot be empty.")
        names = [s.name for s in specs]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate field names in {names}.")
        self.fields: Tuple[FieldSpec, ...] = tuple(specs)
        self.field_names: Tuple[str, ...] = tuple(names)
        self._by_name: Dict[str, FieldSpec] = {s.name: s for s in specs}

    def __len__(self):
        return len(self.fields)

    def __iter__(self):
        return iter(self.fields)

    def spec(self, name: str) -> FieldSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Unknown field '{name}'. Known: {self.field_names}") from None

    def index(self, name: str) -> int:
        return self.field_names.index(name)

    def reference(self, name: str, element_type: str):
        s = self.spec(name)
        return get_reference(element_type, s.order, s.family)

    @lru_cache(maxsize=None)
    def n_basis(self, name: str, element_type: str) -> int:
        return self.reference(name, element_type).n_basis

    @lru_cache(maxsize=None)
    def component_dof_slices(self, element_type: str) -> Dict[str, slice]:
        slices, start = {}, 0
        for name in self.field_names:
            n_b = self.n_basis(name, element_type)
            slices[name] = slice(start, start + n_b)
            start += n_b
        return slices

    def max_order(self) -> int:
        return max(s.order for s in self.fields)

    def __repr__(self):
        body = ", ".join(f"{s.name}:{s.family}{s.order}" for s in self.fields)
        return f"MixedElement({body})"
