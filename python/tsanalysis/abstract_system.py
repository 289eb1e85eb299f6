"""
Core abstractions describing a linear Gaussian state space system.

``AbstractSystem`` carries the model dimensions together with the small
numerical helpers the recursions rely on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(eq=False)
class AbstractSystem:
    """
    Base class for systems containing measurements and states.

    Dimensions default to ``None``; subclasses derive them from the system
    matrices and the data.  Instances compare by identity.
    """

    n: Optional[int] = None  # Number of observed series
    m: Optional[int] = None  # Number of states
    T: Optional[int] = None  # Number of time periods

    @staticmethod
    def enforce_symmetric(matrix: np.ndarray) -> np.ndarray:
        """
        Force a matrix to be symmetric.

        Parameters
        ----------
        matrix:
            Input matrix, typically a covariance matrix that accumulated
            numerical noise.

        Returns
        -------
        numpy.ndarray
            Symmetric part ``0.5 * (matrix + matrix.T)``.
        """
        if not isinstance(matrix, np.ndarray):
            raise TypeError("matrix must be a numpy array.")
        return 0.5 * (matrix + matrix.T)


__all__ = ["AbstractSystem"]
