"""Boundary-condition capability queried by the assembly loops.

The engine only ever calls ``evaluate(x, field, region, time)`` and receives
``(is_dirichlet, value)``; for a Neumann boundary ``value`` is the flux ``g``.
"""
import logging
from typing import Callable, Dict, Iterable, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

BCValue = Union[float, Callable[[np.ndarray, float], float]]


class BoundaryCondition:
    """One rule: ``field`` on boundary ``region`` is Dirichlet or Neumann with ``value``.

    ``value`` is a constant or a callable ``value(x, t)``.
    """

    def __init__(self, field: str, method: str, region: int, value: BCValue = 0.0):
        self.field = field
        m = method.lower()
        if m not in ("dirichlet", "neumann"):
            raise ValueError("BC method must be 'dirichlet' or 'neumann'")
        self.method = m
        self.region = int(region)
        self.value = value

    @property
    def is_dirichlet(self) -> bool:
        return self.method == "dirichlet"

    def __call__(self, x, time: float = 0.0) -> float:
        if callable(self.value):
            return float(self.value(np.asarray(x, dtype=float), time))
        return float(self.value)

    def __repr__(self):
        return f"BoundaryCondition({self.field!r}, {self.method!r}, region={self.region})"


class RegionBoundaryConditions:
    """Lookup of :class:`BoundaryCondition` rules by (field, region)."""

    def __init__(self, bcs: Iterable[BoundaryCondition] = ()):
        self._rules: Dict[Tuple[str, int], BoundaryCondition] = {}
        for bc in bcs:
            self.add(bc)

    def add(self, bc: BoundaryCondition):
        key = (bc.field, bc.region)
        if key in self._rules:
            raise ValueError(f"Duplicate boundary condition for field '{bc.field}' "
                             f"on region {bc.region}.")
        self._rules[key] = bc

    def __iter__(self):
        return iter(self._rules.values())

    def __len__(self):
        return len(self._rules)

    def evaluate(self, x, field: str, region: int, time: float = 0.0) -> Tuple[bool, float]:
        bc = self._rules.get((field, int(region)))
        if bc is None:
            # natural (homogeneous Neumann) boundary
            logger.debug("No boundary condition for field '%s' on region %d", field, region)
            return False, 0.0
        return bc.is_dirichlet, bc(x, time)


class CallbackBoundaryConditions:
    """Adapter for a plain ``func(x, field, region, time) -> (is_dirichlet, value)``."""

    def __init__(self, func: Callable[[np.ndarray, str, int, float], Tuple[bool, float]]):
        self.func = func

    def evaluate(self, x, field: str, region: int, time: float = 0.0) -> Tuple[bool, float]:
        is_dir, value = self.func(np.asarray(x, dtype=float), field, int(region), time)
        return bool(is_dir), float(value)
