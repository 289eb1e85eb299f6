"""
Mutable state of a single Kalman filtering run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .kalman_settings import KalmanSettings


class FilterPhase(enum.Enum):
    """Whether a posterior exists yet for the a-priori prediction to start from."""

    UNINITIALIZED = "uninitialized"
    RUNNING = "running"


HISTORY_FIELDS = ("X_prior", "X_post", "P_prior", "P_post", "e", "inv_F", "L")


@dataclass(eq=False)
class KalmanStatus:
    """
    Filter state owned by the caller driving :func:`tsanalysis.kalman.kfilter`.

    Build it with :meth:`from_settings`; a status is never reset, a new run
    takes a fresh instance.  The ``history_*`` lists are ``None`` unless the
    settings request history, in which case entry ``t - 1`` holds the
    quantities computed at time ``t``.
    """

    t: int
    X_prior: np.ndarray
    P_prior: np.ndarray
    X_post: np.ndarray
    P_post: np.ndarray
    e: np.ndarray
    inv_F: np.ndarray
    L: np.ndarray
    phase: FilterPhase = FilterPhase.UNINITIALIZED
    _loglik: Optional[float] = field(default=None, repr=False)

    history_X_prior: Optional[List[np.ndarray]] = field(default=None, repr=False)
    history_X_post: Optional[List[np.ndarray]] = field(default=None, repr=False)
    history_P_prior: Optional[List[np.ndarray]] = field(default=None, repr=False)
    history_P_post: Optional[List[np.ndarray]] = field(default=None, repr=False)
    history_e: Optional[List[np.ndarray]] = field(default=None, repr=False)
    history_inv_F: Optional[List[np.ndarray]] = field(default=None, repr=False)
    history_L: Optional[List[np.ndarray]] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings: KalmanSettings) -> "KalmanStatus":
        """Seed a status at ``t = 0`` from the initial conditions in ``settings``."""
        m = settings.m
        status = cls(
            t=0,
            X_prior=settings.X0.copy(),
            P_prior=settings.P0.copy(),
            X_post=settings.X0.copy(),
            P_post=settings.P0.copy(),
            e=np.zeros(1),
            inv_F=np.zeros((1, 1)),
            L=np.eye(m),
        )
        if settings.compute_loglik:
            status._loglik = 0.0
        if settings.store_history:
            for name in HISTORY_FIELDS:
                setattr(status, f"history_{name}", [])
        return status

    @property
    def loglik(self) -> float:
        """
        Log-likelihood accumulated so far.

        Raises ``RuntimeError`` when the settings disabled its computation.
        """
        if self._loglik is None:
            raise RuntimeError("Log-likelihood is not computed; set compute_loglik=True.")
        return self._loglik

    @loglik.setter
    def loglik(self, value: float) -> None:
        if self._loglik is None:
            raise RuntimeError("Log-likelihood is not computed; set compute_loglik=True.")
        self._loglik = float(value)

    @property
    def has_loglik(self) -> bool:
        return self._loglik is not None

    @property
    def has_history(self) -> bool:
        return self.history_X_prior is not None

    def record_history(self) -> None:
        """Append the quantities of the current step to the history."""
        for name in HISTORY_FIELDS:
            getattr(self, f"history_{name}").append(getattr(self, name))

    def history_array(self, name: str) -> np.ndarray:
        """
        Stack a history sequence along a new leading time axis.

        Only the fixed-size histories (``X_prior``, ``X_post``, ``P_prior``,
        ``P_post``, ``L``) can be stacked; the innovation quantities change
        size with the missing-data pattern.
        """
        if name not in HISTORY_FIELDS:
            raise ValueError(f"Unknown history field '{name}'.")
        if name in ("e", "inv_F"):
            raise ValueError(f"History of '{name}' is ragged and cannot be stacked.")
        if not self.has_history:
            raise RuntimeError("History is not stored; set store_history=True.")
        history = getattr(self, f"history_{name}")
        if not history:
            raise RuntimeError("History is empty; call kfilter at least once.")
        return np.stack(history)


__all__ = ["FilterPhase", "KalmanStatus", "HISTORY_FIELDS"]
