"""
Orthogonality-constrained filter updaters.

Both updaters project onto scaled-orthonormal filter banks with a polar
factorization (orthogonal Procrustes): the orthogonal factor U V^H of the SVD
M = U S V^H is the nearest orthogonal matrix to M and maximizes Re tr(Q^H M).
"""

import logging

import numpy as np
import scipy.linalg

from ..exceptions import NumericalFailure, ShapeError

logger = logging.getLogger(__name__)


def polar_factor(M, out=None, iteration=None):
    """
    Orthogonal polar factor U V^H of M (m x n, m >= n).

    The all-zero matrix maps to eye(m, n). M is overwritten when out is M.

    Raises:
        NumericalFailure: If M is not finite or the SVD does not converge
    """
    M = np.asarray(M)
    if out is None:
        out = np.empty(M.shape, dtype=M.dtype)

    if not np.any(M):
        out[...] = np.eye(*M.shape, dtype=out.dtype)
        return out
    if not np.all(np.isfinite(M)):
        raise NumericalFailure("Non-finite values in polar factorization input", iteration)

    try:
        U, _, Vh = scipy.linalg.svd(M, full_matrices=False, overwrite_a=out is M, check_finite=False)
    except np.linalg.LinAlgError as e:
        logger.error(f"SVD did not converge for {M.shape} matrix")
        raise NumericalFailure(f"SVD did not converge: {e}", iteration) from e

    np.matmul(U, Vh, out=out)
    return out


class ProcrustesUpdater:
    """
    Filter update relative to a fixed reference bank H0.

    Solves max Re tr(H^H PsiZ) over H = H0 Q with Q unitary:
        M = H0^H PsiZ,  Q = polar(M),  H = H0 Q
    Every H produced this way satisfies H^H H = H0^H H0.
    """

    def __init__(self, H0):
        self.H0 = H0
        self.H0h = H0.conj().T
        K = H0.shape[1]
        self.work = np.empty((K, K), dtype=H0.dtype)    # holds M, then Q

    def step(self, psi_z, out, iteration=None):
        """Write H0 polar(H0^H psi_z) into out and return it."""
        if psi_z.shape != self.H0.shape:
            raise ShapeError(f"Accumulator has shape {psi_z.shape}, expected {self.H0.shape}")
        np.matmul(self.H0h, psi_z, out=self.work)
        polar_factor(self.work, out=self.work, iteration=iteration)
        np.matmul(self.H0, self.work, out=out)
        return out

    @property
    def name(self) -> str:
        return "procrustes"


class PolarUpdater:
    """
    Filter update from natural-form data without a reference bank.

    Packs K natural-form arrays as the columns of a (prod(R), K) matrix, takes
    its polar factor and rescales by 1/sqrt(prod(R)).
    """

    def step(self, psi_z, out, iteration=None):
        """Write polar([vec(psi_1) ... vec(psi_K)]) / sqrt(prod(R)) into out and return it."""
        n, K = out.shape
        if isinstance(psi_z, np.ndarray) and psi_z.ndim == 2 and psi_z.shape == out.shape:
            if psi_z is not out:
                np.copyto(out, psi_z)
        else:
            if len(psi_z) != K:
                raise ShapeError(f"Expected {K} filters, got {len(psi_z)}")
            for k, psi in enumerate(psi_z):
                psi = np.asarray(psi)
                if psi.size != n:
                    raise ShapeError(f"Filter {k} has {psi.size} coefficients, expected {n}")
                out[:, k] = psi.reshape(-1)

        polar_factor(out, out=out, iteration=iteration)
        out /= np.sqrt(n)
        return out

    @property
    def name(self) -> str:
        return "polar"
