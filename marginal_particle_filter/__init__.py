"""
Marginal Particle Filtering Library.

A NumPy-based library for Rao-Blackwellized particle filtering:
- Embedded closed-form filters (discrete HMM forward filter, Kalman filter)
- A sequential importance resampling engine over (sample, filter, weight) particles
- Log-domain weight arithmetic and swarm resampling
"""

from . import models
from . import filters
from . import simulation
from . import utils
from .exceptions import (
    RBPFError,
    InvalidDensityError,
    ShapeMismatchError,
    DegenerateWeightsError,
)

__version__ = "0.1.0"
