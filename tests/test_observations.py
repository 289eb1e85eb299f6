from __future__ import annotations

import numpy as np

from tsanalysis import NONE_OBSERVED, ImmutableKalmanSettings, NoneObserved, ObservedRows, find_observed_data


def _settings():
    Y = np.array(
        [
            [1.0, np.nan, np.nan, 4.0],
            [np.nan, 2.0, np.nan, 0.0],
            [3.0, 1.0, np.nan, 5.0],
        ]
    )
    return ImmutableKalmanSettings(Y, np.ones((3, 1)), np.eye(3), 0.5, 1.0)


def test_observed_rows_are_ascending_indices():
    settings = _settings()

    first = find_observed_data(settings, 1)
    assert isinstance(first, ObservedRows)
    np.testing.assert_array_equal(first.indices, [0, 2])
    assert len(first) == 2

    np.testing.assert_array_equal(find_observed_data(settings, 2).indices, [1, 2])
    np.testing.assert_array_equal(find_observed_data(settings, 4).indices, [0, 1, 2])


def test_fully_missing_period_is_none_observed():
    assert find_observed_data(_settings(), 3) is NONE_OBSERVED


def test_out_of_sample_periods_are_none_observed():
    settings = _settings()
    assert isinstance(find_observed_data(settings, 5), NoneObserved)
    assert find_observed_data(settings, 0) is NONE_OBSERVED


def test_resolution_is_deterministic():
    settings = _settings()
    for t in range(1, settings.T + 1):
        lhs, rhs = find_observed_data(settings, t), find_observed_data(settings, t)
        assert type(lhs) is type(rhs)
        if isinstance(lhs, ObservedRows):
            np.testing.assert_array_equal(lhs.indices, rhs.indices)
