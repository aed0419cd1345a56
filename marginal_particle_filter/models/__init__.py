"""
Conditional model definitions.
"""

from .base import ConditionalModel, make_hmm_model, make_kalman_model
from .volatility import make_log_volatility_process
from .regime_switching import make_regime_switching_sv_model
from .conditionally_linear import make_conditionally_linear_sv_model

__all__ = [
    "ConditionalModel",
    "make_hmm_model",
    "make_kalman_model",
    "make_log_volatility_process",
    "make_regime_switching_sv_model",
    "make_conditionally_linear_sv_model",
]
