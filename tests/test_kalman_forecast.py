from __future__ import annotations

import numpy as np
import pytest

from tsanalysis import kfilter_full_sample, kforecast
from tsanalysis.kalman import apriori_cov, apriori_mean


def test_one_step_forecast_is_one_prediction(random_settings):
    status = kfilter_full_sample(random_settings)

    X_fc, P_fc = kforecast(random_settings, status.X_post, 1, P=status.P_post)

    assert len(X_fc) == len(P_fc) == 1
    np.testing.assert_array_equal(X_fc[0], apriori_mean(status.X_post, random_settings))
    np.testing.assert_array_equal(P_fc[0], apriori_cov(status.P_post, random_settings))


def test_mean_only_forecast_matches_covariance_forecast_means(random_settings):
    status = kfilter_full_sample(random_settings)

    means = kforecast(random_settings, status.X_post, 5)
    means_with_cov, covs = kforecast(random_settings, status.X_post, 5, P=status.P_post)

    assert isinstance(means, list)
    assert len(means) == 5
    for lhs, rhs in zip(means, means_with_cov):
        np.testing.assert_array_equal(lhs, rhs)
    for P in covs:
        np.testing.assert_array_equal(P, P.T)


def test_forecasts_are_chronological(ar1_settings):
    means = kforecast(ar1_settings, np.array([8.0]), 3)
    np.testing.assert_allclose(np.concatenate(means), [4.0, 2.0, 1.0])


def test_long_horizon_converges_to_unconditional_moments(ar1_settings):
    means, covs = kforecast(ar1_settings, np.array([3.0]), 200, P=np.zeros((1, 1)))

    np.testing.assert_allclose(means[-1], [0.0], atol=1e-12)
    np.testing.assert_allclose(covs[-1], [[1.0 / 0.75]])


def test_forecast_does_not_modify_starting_point(ar1_settings):
    X = np.array([1.0])
    P = np.array([[2.0]])
    kforecast(ar1_settings, X, 4, P=P)

    np.testing.assert_array_equal(X, [1.0])
    np.testing.assert_array_equal(P, [[2.0]])


def test_zero_horizon_returns_empty_sequences(ar1_settings):
    assert kforecast(ar1_settings, np.zeros(1), 0) == []
    assert kforecast(ar1_settings, np.zeros(1), 0, P=np.eye(1)) == ([], [])


def test_negative_horizon_raises(ar1_settings):
    with pytest.raises(ValueError, match="non-negative"):
        kforecast(ar1_settings, np.zeros(1), -1)
