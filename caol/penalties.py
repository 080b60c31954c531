from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .exceptions import ConfigurationError


def hard(z, beta, out=None):
    """
    Hard thresholding operator.

    Returns 0 where |z| < beta and z unchanged otherwise. The comparison is
    strict, so |z| == beta is kept.

    Parameters
    ----------
    z : scalar or np.ndarray
        Input values (real or complex)
    beta : float
        Threshold (non-negative)
    out : np.ndarray, optional
        Destination array, may be z itself for in-place thresholding

    Returns
    -------
    z_hard : scalar or np.ndarray
    """
    if out is None and np.isscalar(z):
        return z * 0 if abs(z) < beta else z
    z = np.asarray(z)
    if out is None:
        out = z.copy()
    elif out is not z:
        np.copyto(out, z)
    out[np.abs(z) < beta] = 0
    return out


@dataclass
class L0Penalty:
    """
    Counting penalty lam * ||z||_0 with its closed-form proximal map.

    The scalar problem min_x 0.5*(z - x)^2 + lam*1[x != 0] is solved by hard
    thresholding at beta = sqrt(2*lam), and its minimum value is
    0.5*|z|^2 if |z| < beta, else lam.

    Reference: Blumensath & Davies (2008). Iterative thresholding for sparse
    approximations.
    """
    lam: float

    def __post_init__(self):
        if not self.lam > 0:
            raise ConfigurationError(f"lam must be positive, got {self.lam}")

    @property
    def threshold(self) -> float:
        return float(np.sqrt(2 * self.lam))

    def prox(self, z, out=None):
        """Hard thresholding at sqrt(2*lam)."""
        return hard(z, self.threshold, out=out)

    def value(self, a) -> float:
        """lam * number of nonzeros"""
        return self.lam * float(np.count_nonzero(a))

    def objective(self, z) -> float:
        """
        Minimum of 0.5*(z - x)^2 + lam*1[x != 0] over x, summed over elements of z.

        Equals 0.5*||z - prox(z)||^2 + value(prox(z)) without forming prox(z).
        """
        a = np.abs(np.asarray(z))
        return float(np.sum(np.where(a < self.threshold, 0.5 * a * a, self.lam)))
