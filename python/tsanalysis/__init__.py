"""
Kalman filtering, forecasting and smoothing for linear Gaussian state space
models with arbitrary missing-data patterns.

Models are described by ``ImmutableKalmanSettings`` (fixed matrices) or
``MutableKalmanSettings`` (matrices replaceable between runs, e.g. inside a
likelihood optimiser).  A run owns a ``KalmanStatus`` which ``kfilter``
advances one period at a time; ``ksmoother`` and ``kforecast`` consume the
result.
"""

from .abstract_system import AbstractSystem
from .kalman_settings import (
    ImmutableKalmanSettings,
    KalmanSettings,
    MutableKalmanSettings,
    unconditional_covariance,
)
from .kalman_status import FilterPhase, KalmanStatus
from .observations import NONE_OBSERVED, NoneObserved, ObservedRows, find_observed_data
from .kalman import kfilter, kfilter_full_sample, kforecast, ksmoother

__all__ = [
    "AbstractSystem",
    "KalmanSettings",
    "ImmutableKalmanSettings",
    "MutableKalmanSettings",
    "unconditional_covariance",
    "FilterPhase",
    "KalmanStatus",
    "ObservedRows",
    "NoneObserved",
    "NONE_OBSERVED",
    "find_observed_data",
    "kfilter",
    "kfilter_full_sample",
    "kforecast",
    "ksmoother",
]
