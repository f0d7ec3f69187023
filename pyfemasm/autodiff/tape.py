"""pyfemasm.autodiff.tape
Scoped reverse-mode differentiation of element residuals with JAX.

A :class:`Tape` is opened once per element. The kernel tags its local
unknowns as the ordered independent set, then declares the ordered dependent
set as a ``jax.numpy`` function of that vector. JAX traces the function when
the Jacobian is extracted (``jax.jacrev``); a paused tape only evaluates it,
so the residual comes from the very same code in both passes.

Typical use inside an assembly pass::

    with tape.recording(enabled=need_jacobian):
        u = tape.independent(u_local)
        res = tape.dependent(element_residual, tables)
        if tape.active:
            J = tape.jacobian(shape=(len(res), len(u)))
"""
from jax import config as _jax_config

_jax_config.update("jax_enable_x64", True)

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Callable, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from pyfemasm.errors import TapeSizeMismatchError, TapeStateError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=64)
def _compiled(fn: Callable):
    return jax.jit(fn)

@lru_cache(maxsize=64)
def _compiled_jacrev(fn: Callable):
    # d fn / d (first argument); the remaining arguments are constants
    return jax.jit(jax.jacrev(fn, argnums=0))


class Tape:
    """Ordered independent/dependent sets of one element and their Jacobian.

    At most one recording is open at a time; ``recording`` always clears the
    tape on exit, also when the body raises.
    """

    def __init__(self):
        self._open = False
        self._active = False
        self._x: Optional[np.ndarray] = None
        self._fn: Optional[Callable] = None
        self._args: Tuple = ()
        self._n_dependent = 0

    @property
    def active(self) -> bool:
        """True while the declared sets are kept for differentiation."""
        return self._active

    @property
    def empty(self) -> bool:
        return self._x is None and self._fn is None

    @property
    def n_independent(self) -> int:
        return 0 if self._x is None else len(self._x)

    @property
    def n_dependent(self) -> int:
        return self._n_dependent

    @contextmanager
    def recording(self, enabled: bool = True):
        if self._open:
            raise TapeStateError("A recording is already open on this tape.")
        self.clear()
        self._open = True
        self._active = bool(enabled)
        try:
            yield self
        finally:
            self.clear()

    def clear(self):
        self._x = None
        self._fn = None
        self._args = ()
        self._n_dependent = 0
        self._active = False
        self._open = False

    # ---------------- sets ----------------
    def independent(self, values) -> np.ndarray:
        """Tag ``values`` (flattened, in order) as the independent set."""
        if not self._open:
            raise TapeStateError("tape.independent() called outside a recording.")
        if self._x is not None:
            raise TapeStateError("The independent set was already declared in this recording.")
        self._x = np.array(values, dtype=float).ravel()
        return self._x.copy()

    def dependent(self, fn: Callable, *args) -> np.ndarray:
        """Declare ``fn(independent, *args)`` as the ordered dependent set.

        Returns its values. ``fn`` must be written with ``jax.numpy``; a
        paused tape evaluates it and keeps nothing.
        """
        if self._x is None:
            raise TapeStateError("Declare the independent set before the dependent set.")
        values = np.array(_compiled(fn)(jnp.asarray(self._x), *args), dtype=float).ravel()
        if self._active:
            self._fn = fn
            self._args = args
            self._n_dependent = len(values)
        return values

    # ---------------- extraction ----------------
    def jacobian(self, shape: Optional[Tuple[int, int]] = None) -> np.ndarray:
        """Dense d(dependent)/d(independent) by reverse accumulation."""
        if not self._active:
            raise TapeStateError("tape.jacobian() called outside an active recording.")
        if self._fn is None:
            raise TapeStateError("Dependent and independent sets must be declared first.")
        sizes = (self._n_dependent, len(self._x))
        if shape is not None and sizes != tuple(shape):
            raise TapeSizeMismatchError(
                f"Tape sets are {sizes[0]}x{sizes[1]}, local buffers expect {tuple(shape)}.")
        J = np.array(_compiled_jacrev(self._fn)(jnp.asarray(self._x), *self._args), dtype=float)
        J = J.reshape(sizes)
        logger.debug("Tape: Jacobian %s", J.shape)
        return J
