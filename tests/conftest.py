from __future__ import annotations

import numpy as np
import pytest

from tsanalysis import ImmutableKalmanSettings


def make_random_settings(
    seed: int,
    n: int = 3,
    m: int = 2,
    T: int = 12,
    missing_share: float = 0.3,
    all_missing_at=(),
    settings_cls=ImmutableKalmanSettings,
    **kwargs,
):
    """Stationary random model with a random missing-data pattern."""
    rng = np.random.default_rng(seed)

    C = rng.normal(size=(m, m))
    C = 0.8 * C / max(1.0, np.max(np.abs(np.linalg.eigvals(C))))
    B = rng.normal(size=(n, m))
    A = rng.normal(size=(n, n))
    R = A @ A.T / n + 0.1 * np.eye(n)
    D = rng.normal(size=(m, m))
    DQD = D @ D.T / m + 0.05 * np.eye(m)

    Y = rng.normal(size=(n, T))
    Y[rng.random(size=(n, T)) < missing_share] = np.nan
    for t in all_missing_at:
        Y[:, t - 1] = np.nan

    return settings_cls(Y, B, R, C, DQD, **kwargs)


def joint_gaussian_posterior(settings):
    """
    Condition the joint distribution of ``X_0..X_T`` on every observed entry
    of ``Y`` in one batch.

    Returns the conditional means (``(T + 1) x m``), covariances
    (``(T + 1) x m x m``) and the Gaussian log-density of the observations.
    """
    m, n, T = settings.m, settings.n, settings.T
    C, B, R = settings.C, settings.B, settings.R

    # X = A z with z = (X_0, w_1, ..., w_T)
    A = np.zeros(((T + 1) * m, (T + 1) * m))
    for t in range(T + 1):
        for s in range(t + 1):
            A[t * m:(t + 1) * m, s * m:(s + 1) * m] = np.linalg.matrix_power(C, t - s)
    cov_z = np.zeros_like(A)
    cov_z[:m, :m] = settings.P0
    for s in range(1, T + 1):
        cov_z[s * m:(s + 1) * m, s * m:(s + 1) * m] = settings.DQD
    mean_z = np.zeros((T + 1) * m)
    mean_z[:m] = settings.X0

    mean_X = A @ mean_z
    cov_X = A @ cov_z @ A.T

    rows, y_obs, blocks = [], [], []
    for t in range(1, T + 1):
        for i in range(n):
            if not np.isnan(settings.Y[i, t - 1]):
                row = np.zeros((T + 1) * m)
                row[t * m:(t + 1) * m] = B[i]
                rows.append(row)
                y_obs.append(settings.Y[i, t - 1])
                blocks.append((t, i))
    if not rows:
        covs = np.array([cov_X[t * m:(t + 1) * m, t * m:(t + 1) * m] for t in range(T + 1)])
        return mean_X.reshape(T + 1, m), covs, 0.0, 0
    H = np.array(rows)
    y_obs = np.array(y_obs)
    noise = np.array([[R[i, j] if s == t else 0.0 for (t, j) in blocks] for (s, i) in blocks])

    cov_Y = H @ cov_X @ H.T + noise
    cov_XY = cov_X @ H.T
    resid = y_obs - H @ mean_X
    gain = cov_XY @ np.linalg.inv(cov_Y)

    post_mean = mean_X + gain @ resid
    post_cov = cov_X - gain @ cov_XY.T

    _, logdet = np.linalg.slogdet(cov_Y)
    logdens = -0.5 * (y_obs.size * np.log(2 * np.pi) + logdet + resid @ np.linalg.solve(cov_Y, resid))

    means = post_mean.reshape(T + 1, m)
    covs = np.array([post_cov[t * m:(t + 1) * m, t * m:(t + 1) * m] for t in range(T + 1)])
    return means, covs, logdens, y_obs.size


@pytest.fixture
def ar1_settings():
    """Scalar AR(1) whose first prediction is ``X_prior = 0, P_prior = 10``."""
    Y = np.array([[1.0, np.nan, -0.5, 2.0]])
    return ImmutableKalmanSettings(Y, 1.0, 1.0, 0.5, 1.0, X0=0.0, P0=36.0)


@pytest.fixture
def random_settings():
    return make_random_settings(seed=7, all_missing_at=(4, 5))
