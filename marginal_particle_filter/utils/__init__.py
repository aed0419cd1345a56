"""
Utility functions.
"""

from .weights import (
    log_sum_exp,
    log_mean_exp,
    log_ratio_of_sums,
    weighted_expectation,
)

from .resampling import (
    Resampler,
    systematic_resample,
    stratified_resample,
    multinomial_resample,
    residual_resample,
    effective_sample_size,
    normalize_log_weights,
)

__all__ = [
    "log_sum_exp",
    "log_mean_exp",
    "log_ratio_of_sums",
    "weighted_expectation",
    "Resampler",
    "systematic_resample",
    "stratified_resample",
    "multinomial_resample",
    "residual_resample",
    "effective_sample_size",
    "normalize_log_weights",
]
