"""
Model configuration for the Kalman filter, forecaster and smoother.

The state space form is

    Y_t = B X_t + e_t,            e_t ~ N(0, R)
    X_t = C X_{t-1} + D u_t,      u_t ~ N(0, Q)

with ``X_0 ~ N(X0, P0)``.  The recursions only ever see the process noise
through ``DQD = D Q D'``.  Missing observations are ``NaN`` entries of ``Y``.

Two variants share the same read interface: ``ImmutableKalmanSettings``
freezes every array at construction, whereas ``MutableKalmanSettings`` lets an
outer optimiser (or a resampling loop) replace matrices between runs.
"""

from __future__ import annotations

import copy
import logging
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .abstract_system import AbstractSystem

logger = logging.getLogger(__name__)

ArrayLike = Union[np.ndarray, Sequence[float], Sequence[Sequence[float]], float, int]

_SYMMETRY_TOL = 1e-8


def _as_matrix(value: ArrayLike, name: str) -> np.ndarray:
    """Return ``value`` as a float 2D array; scalars become ``1 x 1``."""
    matrix = np.array(value, dtype=float)
    if matrix.ndim == 0:
        matrix = matrix.reshape(1, 1)
    if matrix.ndim != 2:
        raise ValueError(f"{name} must be a 2D array, got {matrix.ndim} dimensions.")
    return matrix


def _as_vector(value: ArrayLike, name: str) -> np.ndarray:
    """Return ``value`` as a float 1D array; column vectors are flattened."""
    vector = np.array(value, dtype=float)
    if vector.ndim == 0:
        vector = vector.reshape(1)
    elif vector.ndim == 2 and 1 in vector.shape:
        vector = vector.reshape(-1)
    if vector.ndim != 1:
        raise ValueError(f"{name} must be a vector.")
    return vector


def _prepare_data(Y: ArrayLike) -> np.ndarray:
    """
    Convert the observations to an ``n x T`` float array with ``NaN`` marking
    missing entries.

    Masked arrays are filled with ``NaN``; ``None`` entries in nested lists
    are converted to ``NaN`` by numpy.  A 1D input is treated as a single
    series.
    """
    if isinstance(Y, np.ma.MaskedArray):
        Y = Y.astype(float).filled(np.nan)
    data = np.array(Y, dtype=float)
    if data.ndim == 1:
        data = data.reshape(1, -1)
    if data.ndim != 2:
        raise ValueError("Y must be an n x T matrix.")
    if np.isinf(data).any():
        raise ValueError("Y must not contain infs; mark missing observations with NaN.")
    return data


def _expect_shape(matrix: np.ndarray, shape: Tuple[int, ...], name: str) -> None:
    if matrix.shape != shape:
        raise ValueError(f"{name} has invalid shape {matrix.shape}; expected {shape}.")


def _expect_symmetric(matrix: np.ndarray, name: str) -> None:
    if not np.allclose(matrix, matrix.T, atol=_SYMMETRY_TOL, equal_nan=False):
        raise ValueError(f"{name} must be symmetric.")


def unconditional_covariance(C: np.ndarray, DQD: np.ndarray) -> np.ndarray:
    """
    Solve ``P = C P C' + DQD`` for the unconditional state covariance.

    Uses ``vec(P) = (I - C kron C)^{-1} vec(DQD)``.  The linear system is
    only meaningful for a stationary ``C``; ``numpy.linalg.LinAlgError`` is
    raised when an eigenvalue of ``C`` lies on or outside the unit circle.
    """
    m = C.shape[0]
    if np.max(np.abs(np.linalg.eigvals(C))) >= 1:
        raise np.linalg.LinAlgError(
            "C is not stationary; the unconditional covariance does not exist. Pass P0 explicitly."
        )
    vec_P = np.linalg.solve(np.eye(m * m) - np.kron(C, C), DQD.reshape(-1))
    logger.debug("Initialised P0 with the unconditional covariance (m=%d).", m)
    return AbstractSystem.enforce_symmetric(vec_P.reshape(m, m))


class KalmanSettings(AbstractSystem):
    """
    Read interface shared by the immutable and mutable settings.

    Parameters
    ----------
    Y:
        ``n x T`` observations; ``NaN`` marks a missing entry.
    B:
        ``n x m`` measurement loadings.
    R:
        ``n x n`` measurement noise covariance.
    C:
        ``m x m`` transition matrix.
    DQD:
        ``m x m`` process noise covariance in state space.  Alternatively pass
        ``D`` (``m x g``) and ``Q`` (``g x g``) and ``DQD = D Q D'`` is built.
    X0, P0:
        Initial conditions.  Default to a zero mean and to the unconditional
        covariance implied by ``C`` and ``DQD``.
    compute_loglik, store_history:
        Whether the filter accumulates the log-likelihood and keeps the
        per-step history required by the smoother.

    The dimensions and both flags are fixed at construction.
    """

    parameter_names: Tuple[str, ...] = ("Y", "B", "R", "C", "DQD", "X0", "P0")
    symmetric_params: Tuple[str, ...] = ("R", "DQD", "P0")
    _read_only: bool = False

    def __init__(  # type: ignore[override]
        self,
        Y: ArrayLike,
        B: ArrayLike,
        R: ArrayLike,
        C: ArrayLike,
        DQD: Optional[ArrayLike] = None,
        *,
        D: Optional[ArrayLike] = None,
        Q: Optional[ArrayLike] = None,
        X0: Optional[ArrayLike] = None,
        P0: Optional[ArrayLike] = None,
        compute_loglik: bool = True,
        store_history: bool = True,
    ) -> None:
        B_arr = _as_matrix(B, "B")
        self._n, self._m = B_arr.shape
        self._T: Optional[int] = None
        self._compute_loglik = bool(compute_loglik)
        self._store_history = bool(store_history)

        self._assign("Y", Y)
        self._assign("B", B_arr)
        self._assign("R", R)
        self._assign("C", C)
        self._assign("DQD", self._interpret_process_noise(DQD, D, Q))
        self._assign("X0", np.zeros(self.m) if X0 is None else X0)
        if P0 is None:
            P0 = unconditional_covariance(self._C, self._DQD)
        self._assign("P0", P0)

    # ------------------------------------------------------------------
    # Read interface
    # ------------------------------------------------------------------
    @property
    def n(self) -> int:
        return self._n

    @property
    def m(self) -> int:
        return self._m

    @property
    def T(self) -> int:
        return self._T

    @property
    def compute_loglik(self) -> bool:
        return self._compute_loglik

    @property
    def store_history(self) -> bool:
        return self._store_history

    @property
    def Y(self) -> np.ndarray:
        return self._Y

    @property
    def B(self) -> np.ndarray:
        return self._B

    @property
    def R(self) -> np.ndarray:
        return self._R

    @property
    def C(self) -> np.ndarray:
        return self._C

    @property
    def DQD(self) -> np.ndarray:
        return self._DQD

    @property
    def X0(self) -> np.ndarray:
        return self._X0

    @property
    def P0(self) -> np.ndarray:
        return self._P0

    def copy(self) -> "KalmanSettings":
        """
        Return an independent copy with its own arrays.

        Each concurrent run that varies the configuration should work on its
        own copy.
        """
        duplicate = copy.copy(self)
        for name in self.parameter_names:
            duplicate._store(name, getattr(self, name).copy())
        return duplicate

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _interpret_process_noise(
        self,
        DQD: Optional[ArrayLike],
        D: Optional[ArrayLike],
        Q: Optional[ArrayLike],
    ) -> np.ndarray:
        """
        Handle the two ways of specifying the process noise.
        """
        if DQD is not None:
            if D is not None or Q is not None:
                raise ValueError("Specify either DQD or (D, Q), not both.")
            return _as_matrix(DQD, "DQD")

        if D is None or Q is None:
            raise ValueError("Process noise requires DQD or both D and Q.")

        D_arr = _as_matrix(D, "D")
        Q_arr = _as_matrix(Q, "Q")
        if D_arr.shape[0] != self.m:
            raise ValueError(f"D has invalid shape {D_arr.shape}; expected ({self.m}, g).")
        g = D_arr.shape[1]
        _expect_shape(Q_arr, (g, g), "Q")
        _expect_symmetric(Q_arr, "Q")
        return AbstractSystem.enforce_symmetric(D_arr @ Q_arr @ D_arr.T)

    def _assign(self, name: str, value: ArrayLike) -> None:
        """
        Validate ``value`` against the fixed dimensions and store a copy.
        """
        if name == "Y":
            data = _prepare_data(value)
            if data.shape[0] != self.n:
                raise ValueError(
                    f"Y has {data.shape[0]} series; expected {self.n} (rows of B)."
                )
            self._T = data.shape[1]
            self._store(name, data)
            return

        if name == "X0":
            vector = _as_vector(value, name)
            _expect_shape(vector, (self.m,), name)
            self._store(name, vector)
            return

        matrix = _as_matrix(value, name)
        expected = {
            "B": (self.n, self.m),
            "R": (self.n, self.n),
            "C": (self.m, self.m),
            "DQD": (self.m, self.m),
            "P0": (self.m, self.m),
        }
        _expect_shape(matrix, expected[name], name)
        if name in self.symmetric_params:
            _expect_symmetric(matrix, name)
        self._store(name, matrix)

    def _store(self, name: str, array: np.ndarray) -> None:
        if self._read_only:
            array.setflags(write=False)
        setattr(self, f"_{name}", array)


class ImmutableKalmanSettings(KalmanSettings):
    """
    Settings whose arrays are fixed at construction.

    Every stored array is flagged read-only, so in-place edits raise
    ``ValueError`` and attribute assignment raises ``AttributeError``.
    """

    _read_only = True


class MutableKalmanSettings(KalmanSettings):
    """
    Settings whose matrices may be replaced between filtering runs.

    Assignments are validated against the dimensions fixed at construction.
    A new ``Y`` must keep the number of series but may change ``T``.
    """

    @KalmanSettings.Y.setter
    def Y(self, value: ArrayLike) -> None:
        self._assign("Y", value)

    @KalmanSettings.B.setter
    def B(self, value: ArrayLike) -> None:
        self._assign("B", value)

    @KalmanSettings.R.setter
    def R(self, value: ArrayLike) -> None:
        self._assign("R", value)

    @KalmanSettings.C.setter
    def C(self, value: ArrayLike) -> None:
        self._assign("C", value)

    @KalmanSettings.DQD.setter
    def DQD(self, value: ArrayLike) -> None:
        self._assign("DQD", value)

    @KalmanSettings.X0.setter
    def X0(self, value: ArrayLike) -> None:
        self._assign("X0", value)

    @KalmanSettings.P0.setter
    def P0(self, value: ArrayLike) -> None:
        self._assign("P0", value)


__all__ = [
    "KalmanSettings",
    "ImmutableKalmanSettings",
    "MutableKalmanSettings",
    "unconditional_covariance",
]
