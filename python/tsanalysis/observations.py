"""
Missing-data resolution shared by the filter and the smoother.

Both passes must agree on which measurements were observed at each time, so
the test lives in :func:`find_observed_data` only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

from .kalman_settings import KalmanSettings


@dataclass(frozen=True, eq=False)
class ObservedRows:
    """Rows of ``Y[:, t]`` holding an observation, in ascending order."""

    indices: np.ndarray

    def __len__(self) -> int:
        return int(self.indices.size)


@dataclass(frozen=True)
class NoneObserved:
    """Every measurement is missing at the requested time."""


NONE_OBSERVED = NoneObserved()

Observed = Union[ObservedRows, NoneObserved]


def find_observed_data(settings: KalmanSettings, t: int) -> Observed:
    """
    Return the observed measurement rows at time ``t``.

    Parameters
    ----------
    settings:
        Model configuration holding the data ``Y``.
    t:
        Time index, 1-based (``t = 1`` is the first column of ``Y``).

    Returns
    -------
    ObservedRows or NoneObserved
        ``NONE_OBSERVED`` when ``t`` lies outside ``1..T`` or when every
        entry of ``Y[:, t]`` is missing.
    """
    if t < 1 or t > settings.T:
        return NONE_OBSERVED

    indices = np.flatnonzero(~np.isnan(settings.Y[:, t - 1]))
    if indices.size == 0:
        return NONE_OBSERVED
    return ObservedRows(indices)


__all__ = ["ObservedRows", "NoneObserved", "NONE_OBSERVED", "Observed", "find_observed_data"]
