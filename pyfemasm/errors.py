"""pyfemasm.errors
Exception types raised by the assembly engine.
"""


class AssemblyError(RuntimeError):
    """Base class for every error raised while assembling a system."""


class DegenerateJacobianError(AssemblyError):
    """Non-invertible or non-positive geometric Jacobian (corrupt mesh geometry)."""

    def __init__(self, message: str, *, elem_id: int | None = None, qp: int | None = None):
        super().__init__(message)
        self.elem_id = elem_id
        self.qp = qp


class TapeStateError(AssemblyError):
    """Unbalanced use of a differentiation tape (nested recordings, untagged inputs)."""


class TapeSizeMismatchError(AssemblyError, ValueError):
    """Dependent/independent sets disagree with the local buffer layout."""


class SystemNotClosedError(AssemblyError):
    """A global vector or matrix was read before its finalize barrier."""
