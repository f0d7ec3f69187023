"""pyfemasm.config
Run-time settings for one assembly pass and for the coupled flow kernel.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

# named quadrature rules and their degree of exactness
QUAD_RULE_NAMES = {
    "zero": 0, "first": 1, "second": 2, "third": 3, "fourth": 4,
    "fifth": 5, "sixth": 6, "seventh": 7, "eighth": 8, "ninth": 9,
}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in {"1", "true", "yes"}


def _env_quad_rule(default):
    raw = os.getenv("PYFEMASM_QUAD_ORDER", "").strip().lower()
    if not raw:
        return default
    return int(raw) if raw.isdigit() else raw


@dataclass
class AssemblyOptions:
    """Settings shared by every element of one assembly pass."""

    quad_rule: int | str = field(default_factory=lambda: _env_quad_rule("seventh"))
    time: float = 0.0                   # physical time handed to boundary data
    dt: float = 1.0                     # time-step size for transient kernels
    debug: bool = field(default_factory=lambda: _env_flag("PYFEMASM_DEBUG_ASSEMBLY"))

    def quad_degree(self) -> int:
        """Degree of exactness requested by ``quad_rule``."""
        if isinstance(self.quad_rule, str):
            try:
                return QUAD_RULE_NAMES[self.quad_rule.lower()]
            except KeyError:
                raise ValueError(f"Unknown quadrature rule name '{self.quad_rule}'.") from None
        if int(self.quad_rule) < 0:
            raise ValueError(f"Quadrature degree must be non-negative, got {self.quad_rule}.")
        return int(self.quad_rule)


@dataclass
class BoussinesqParameters:
    """Material constants of the Boussinesq approximation."""

    prandtl: float = 0.015
    rayleigh: float = 3000.0
    alpha: float = 1.0                  # thermal diffusion scaling
    beta: float = 1.0                   # buoyancy scaling

    @property
    def thermal_diffusivity(self) -> float:
        return self.alpha / (self.rayleigh * self.prandtl) ** 0.5

    @property
    def viscosity(self) -> float:
        return (self.prandtl / self.rayleigh) ** 0.5
