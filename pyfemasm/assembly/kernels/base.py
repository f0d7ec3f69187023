"""Interface every element kernel implements."""
from typing import Tuple


class LocalKernel:
    """Computes the local residual (and Jacobian) of one element.

    Attributes
    ----------
    fields : tuple[str, ...]
        Unknowns the kernel reads, in local block order.
    uses_tape : bool
        The Jacobian comes from a differentiation tape.
    neumann_fields : tuple[str, ...]
        Fields whose natural-boundary flux the engine adds after the kernel.
    with_hessian : bool
        Quadrature points must carry second derivatives.
    """

    fields: Tuple[str, ...] = ()
    uses_tape: bool = False
    neumann_fields: Tuple[str, ...] = ()
    with_hessian: bool = False

    def check_options(self, options):
        """Validate pass-level settings once per pass."""

    def assemble_element(self, ctx, buffers, tape, need_jacobian: bool, options):
        raise NotImplementedError
