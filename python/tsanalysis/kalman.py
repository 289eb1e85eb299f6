"""
Kalman filter, forecaster and smoother for linear Gaussian state space models.

The filter handles arbitrary missing-data patterns by restricting the
measurement equation to the observed rows at each time.  The posterior
covariance uses the Joseph form, and every covariance is forced symmetric
before it is stored.  The smoother runs the backward recursion on the
filter history, down to the initial conditions at ``t = 0``.

The log-likelihood omits the ``-0.5 * k * log(2 pi)`` constant, ``k`` being
the number of observed series at each step.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

import numpy as np

from .abstract_system import AbstractSystem
from .kalman_settings import KalmanSettings
from .kalman_status import FilterPhase, KalmanStatus
from .observations import NONE_OBSERVED, NoneObserved, Observed, ObservedRows, find_observed_data

logger = logging.getLogger(__name__)

enforce_symmetric = AbstractSystem.enforce_symmetric


# ----------------------------------------------------------------------
# A-priori prediction
# ----------------------------------------------------------------------
def apriori_mean(X: np.ndarray, settings: KalmanSettings) -> np.ndarray:
    """One-step prediction of the state mean, ``C X``."""
    return settings.C @ X


def apriori_cov(P: np.ndarray, settings: KalmanSettings) -> np.ndarray:
    """One-step prediction of the state covariance, ``C P C' + DQD``."""
    return enforce_symmetric(settings.C @ P @ settings.C.T + settings.DQD)


def apriori(settings: KalmanSettings, status: KalmanStatus) -> None:
    """
    A-priori prediction for ``status.t``.

    The first call predicts from the initial conditions ``X0, P0`` and moves
    the status to ``FilterPhase.RUNNING``; later calls predict from the
    previous posterior.
    """
    if status.phase is FilterPhase.UNINITIALIZED:
        status.X_prior = apriori_mean(settings.X0, settings)
        status.P_prior = apriori_cov(settings.P0, settings)
        status.phase = FilterPhase.RUNNING
    else:
        status.X_prior = apriori_mean(status.X_post, settings)
        status.P_prior = apriori_cov(status.P_post, settings)


# ----------------------------------------------------------------------
# A-posteriori update
# ----------------------------------------------------------------------
def loglik_contribution(e: np.ndarray, inv_F: np.ndarray, t: int) -> float:
    """
    Gaussian log-density of the innovation ``e``, without the ``2 pi`` term.

    Raises ``numpy.linalg.LinAlgError`` when ``inv_F`` is not positive
    definite.
    """
    sign, logdet_inv_F = np.linalg.slogdet(inv_F)
    if sign <= 0:
        raise np.linalg.LinAlgError(
            f"Innovation covariance is not positive definite at t={t}."
        )
    return -0.5 * (-logdet_inv_F + float(e @ inv_F @ e))


def aposteriori(settings: KalmanSettings, status: KalmanStatus, observed: Observed) -> None:
    """
    A-posteriori update for ``status.t`` given the observed measurement rows.

    The log-likelihood is accumulated when ``status`` was seeded with it.
    On error the posterior fields of ``status`` are left untouched.

    Raises
    ------
    numpy.linalg.LinAlgError
        When the innovation covariance of the observed rows is singular or
        not positive definite.
    """
    if isinstance(observed, NoneObserved):
        status.X_post = status.X_prior.copy()
        status.P_post = status.P_prior.copy()
        status.e = np.zeros(1)
        status.inv_F = np.zeros((1, 1))
        status.L = np.eye(settings.m)
        return

    idx = observed.indices
    Y_t = settings.Y[idx, status.t - 1]
    B_t = settings.B[idx, :]
    R_t = settings.R[np.ix_(idx, idx)]
    X_prior, P_prior = status.X_prior, status.P_prior

    # Forecast error
    e = Y_t - B_t @ X_prior
    F = enforce_symmetric(B_t @ P_prior @ B_t.T + R_t)
    try:
        inv_F = enforce_symmetric(np.linalg.inv(F))
    except np.linalg.LinAlgError as err:
        raise np.linalg.LinAlgError(
            f"Innovation covariance is singular at t={status.t} "
            f"(observed rows {idx.tolist()})."
        ) from err

    if status.has_loglik:
        contribution = loglik_contribution(e, inv_F, status.t)

    shortcut_gain = B_t.T @ inv_F

    # Kalman gain
    K_t = P_prior @ shortcut_gain

    # Shared by the Joseph form and the smoother
    L = np.eye(settings.m) - P_prior @ enforce_symmetric(shortcut_gain @ B_t)

    status.e = e
    status.inv_F = inv_F
    status.L = L
    status.X_post = X_prior + K_t @ e
    status.P_post = enforce_symmetric(L @ P_prior @ L.T + K_t @ R_t @ K_t.T)

    if status.has_loglik:
        status.loglik += contribution


# ----------------------------------------------------------------------
# Filter driver
# ----------------------------------------------------------------------
def kfilter(settings: KalmanSettings, status: KalmanStatus) -> None:
    """
    Advance ``status`` by one period: a-priori prediction, then a-posteriori
    update on whatever is observed at the new ``status.t``.

    Raises
    ------
    RuntimeError
        When the status already reached the last period of the sample.
    numpy.linalg.LinAlgError
        When the innovation covariance is singular or not positive
        definite; ``status`` is then restored to its state before the call.
    """
    if status.t >= settings.T:
        raise RuntimeError(
            f"Kalman filter already reached the end of the sample (T={settings.T})."
        )

    snapshot = (status.t, status.phase, status.X_prior, status.P_prior)
    status.t += 1
    apriori(settings, status)
    observed = find_observed_data(settings, status.t)
    try:
        aposteriori(settings, status, observed)
    except np.linalg.LinAlgError:
        status.t, status.phase, status.X_prior, status.P_prior = snapshot
        raise

    if status.has_history:
        status.record_history()


def kfilter_full_sample(
    settings: KalmanSettings,
    status: Optional[KalmanStatus] = None,
) -> KalmanStatus:
    """
    Run the filter up to the last period of the sample.

    Parameters
    ----------
    settings:
        Model configuration.
    status:
        Status to advance.  A fresh one is built from ``settings`` when
        omitted.

    Returns
    -------
    KalmanStatus
        The status after ``t = T``.
    """
    if status is None:
        status = KalmanStatus.from_settings(settings)

    logger.debug("Kalman filter from t=%d to T=%d.", status.t, settings.T)
    for _ in range(status.t, settings.T):
        kfilter(settings, status)

    if status.has_loglik:
        logger.debug("Kalman filter finished with loglik=%.6f.", status.loglik)
    return status


# ----------------------------------------------------------------------
# Forecast
# ----------------------------------------------------------------------
def kforecast(
    settings: KalmanSettings,
    X: np.ndarray,
    h: int,
    P: Optional[np.ndarray] = None,
) -> Union[List[np.ndarray], Tuple[List[np.ndarray], List[np.ndarray]]]:
    """
    Forecast the state up to ``h`` steps ahead.

    Parameters
    ----------
    settings:
        Model configuration (only ``C`` and ``DQD`` are used).
    X:
        Starting state mean, typically ``status.X_post``.
    h:
        Forecast horizon, ``h >= 0``.
    P:
        Optional starting covariance.  When given, the covariance is
        propagated as well.

    Returns
    -------
    list or tuple of lists
        Means for horizons ``1..h`` in chronological order, and the matching
        covariances when ``P`` is provided.
    """
    if h < 0:
        raise ValueError("Forecast horizon must be non-negative.")

    history_X: List[np.ndarray] = []
    X_h = np.array(X, dtype=float)

    if P is None:
        for _ in range(h):
            X_h = apriori_mean(X_h, settings)
            history_X.append(X_h)
        return history_X

    history_P: List[np.ndarray] = []
    P_h = np.array(P, dtype=float)
    for _ in range(h):
        X_h = apriori_mean(X_h, settings)
        P_h = apriori_cov(P_h, settings)
        history_X.append(X_h)
        history_P.append(P_h)
    return history_X, history_P


# ----------------------------------------------------------------------
# Smoother
# ----------------------------------------------------------------------
def update_smoothing_factors(
    settings: KalmanSettings,
    observed: Observed,
    J1: np.ndarray,
    J2: np.ndarray,
    e: Optional[np.ndarray] = None,
    inv_F: Optional[np.ndarray] = None,
    L: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    One backward step of the smoothing factors ``J1`` and ``J2``.

    When nothing is observed the step reduces to ``J1 <- C' J1`` and
    ``J2 <- C' J2 C``; ``e``, ``inv_F`` and ``L`` are then ignored.
    """
    C = settings.C
    if isinstance(observed, ObservedRows):
        B_t = settings.B[observed.indices, :]
        B_inv_F = B_t.T @ inv_F
        L_C = L.T @ C.T
        J1 = B_inv_F @ e + L_C @ J1
        J2 = enforce_symmetric(B_inv_F @ B_t + L_C @ J2 @ L_C.T)
    else:
        J1 = C.T @ J1
        J2 = enforce_symmetric(C.T @ J2 @ C)
    return J1, J2


def backwards_pass_mean(Xp: np.ndarray, Pp: np.ndarray, J1: np.ndarray) -> np.ndarray:
    return Xp + Pp @ J1


def backwards_pass_cov(Pp: np.ndarray, J2: np.ndarray) -> np.ndarray:
    return enforce_symmetric(Pp - Pp @ J2 @ Pp)


def ksmoother(
    settings: KalmanSettings,
    status: KalmanStatus,
) -> Tuple[List[np.ndarray], List[np.ndarray], np.ndarray, np.ndarray]:
    """
    Smooth the states from ``status.t`` back to ``t = 0``.

    ``settings`` must hold the same data the filter ran on, so the observed
    rows are resolved identically at each time.  Neither argument is
    modified.

    Returns
    -------
    X_smooth, P_smooth : list of ndarray
        Smoothed means and covariances for ``t = 1..status.t`` in
        chronological order.
    X0, P0 : ndarray
        Smoothed mean and covariance at ``t = 0``.

    Raises
    ------
    RuntimeError
        When the filter history is not stored or the filter has not run.
    """
    if not status.has_history:
        raise RuntimeError("Kalman smoother requires the filter history; set store_history=True.")
    if status.t == 0:
        raise RuntimeError("Kalman smoother called before any filter step.")

    logger.debug("Kalman smoother from t=%d to t=0.", status.t)

    history_X: List[np.ndarray] = []
    history_P: List[np.ndarray] = []

    J1 = np.zeros(settings.m)
    J2 = np.zeros((settings.m, settings.m))

    for t in range(status.t, 0, -1):
        Xp = status.history_X_prior[t - 1]
        Pp = status.history_P_prior[t - 1]
        e = status.history_e[t - 1]
        inv_F = status.history_inv_F[t - 1]
        L = status.history_L[t - 1]

        observed = find_observed_data(settings, t)
        J1, J2 = update_smoothing_factors(settings, observed, J1, J2, e, inv_F, L)
        history_X.append(backwards_pass_mean(Xp, Pp, J1))
        history_P.append(backwards_pass_cov(Pp, J2))

    history_X.reverse()
    history_P.reverse()

    J1, J2 = update_smoothing_factors(settings, NONE_OBSERVED, J1, J2)
    X0 = backwards_pass_mean(settings.X0, settings.P0, J1)
    P0 = backwards_pass_cov(settings.P0, J2)

    return history_X, history_P, X0, P0


__all__ = [
    "apriori_mean",
    "apriori_cov",
    "apriori",
    "aposteriori",
    "loglik_contribution",
    "kfilter",
    "kfilter_full_sample",
    "kforecast",
    "update_smoothing_factors",
    "backwards_pass_mean",
    "backwards_pass_cov",
    "ksmoother",
]
