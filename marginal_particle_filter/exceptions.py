"""
Errors raised by the Rao-Blackwellized particle filter.

All of them are local to a single time step: the filter leaves its state
untouched when one is raised, so the caller can decide whether to rerun.
"""


class RBPFError(Exception):
    """Base class for filter errors."""


class InvalidDensityError(RBPFError, ValueError):
    """A model density or inner-filter likelihood evaluated to NaN or +inf."""


class ShapeMismatchError(RBPFError, ValueError):
    """An array did not have the shape fixed for this filter instance."""


class DegenerateWeightsError(RBPFError, FloatingPointError):
    """
    Every particle carries zero weight.

    The predictive likelihood log p(y_t | y_{1:t-1}) is undefined in this
    case (log of zero), so it is reported instead of returned as -inf/NaN.
    """
