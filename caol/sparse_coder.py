"""
Convolutional sparse coding by hard thresholding.

For every signal x_l and filter h_k the code is the hard-thresholded valid
correlation of the padded signal with the filter,

    z_lk = hard(xpad_l ⋆ h_k, sqrt(2*lam)),

and the filter update consumes the accumulated correlations

    psi_k = sum_l xpad_l ⋆ z_lk     (valid region, shape R).

The correlation operator conjugates its second argument, so psi_k is the
adjoint of the coding map applied to z_lk and Re <h_k, psi_k> is the data fit
cross term of the objective.

Reference: Chun & Fessler (2019). Convolutional analysis operator learning:
acceleration and convergence. IEEE Transactions on Image Processing.
"""

from typing import List, Optional, Sequence

import numpy as np
import scipy.signal
from joblib import Parallel, delayed

from .penalties import L0Penalty


class ConvolutionalSparseCoder:
    """
    Sparse coding and correlation accumulation over all (signal, filter) pairs.

    Args:
        padded_signals: Circularly padded signals (see ``caol.core.pad_signals``)
        filters: K natural-shape filters; normally live views into the filter
            bank, so the coder always sees the current filters
        penalty: L0Penalty providing the threshold and the objective
        n_jobs: None or 1 for serial accumulation, otherwise the number of
            threads processing filters concurrently (-1 for all cores)
        method: Correlation method passed to ``scipy.signal.correlate``
    """

    def __init__(self, padded_signals: Sequence[np.ndarray], filters: Sequence[np.ndarray],
                 penalty: L0Penalty, n_jobs: Optional[int] = None, method: str = "auto"):
        self.padded_signals = list(padded_signals)
        self.filters = list(filters)
        self.penalty = penalty
        self.n_jobs = n_jobs
        self.method = method

    @property
    def parallel(self) -> bool:
        return self.n_jobs not in (None, 1) and len(self.filters) > 1

    def response(self, xpad, h) -> np.ndarray:
        """Valid-region correlation of a padded signal with a filter."""
        return scipy.signal.correlate(xpad, h, mode="valid", method=self.method)

    def codes(self, l: int) -> List[np.ndarray]:
        """Thresholded codes of signal l for every filter."""
        xpad = self.padded_signals[l]
        return [self.penalty.prox(self.response(xpad, h)) for h in self.filters]

    def objective(self) -> float:
        """Objective value at the current filters with optimal codes."""
        return sum(self.penalty.objective(self.response(xpad, h))
                   for h in self.filters for xpad in self.padded_signals)

    def _accumulate_filter(self, k: int, psi: np.ndarray, track_objective: bool) -> float:
        h = self.filters[k]
        obj = 0.0
        for xpad in self.padded_signals:
            z = self.response(xpad, h)
            if track_objective:
                obj += self.penalty.objective(z)
            self.penalty.prox(z, out=z)
            psi += scipy.signal.correlate(xpad, z, mode="valid", method=self.method)
        return obj

    def accumulate(self, psi_z: np.ndarray, psi_views: Sequence[np.ndarray],
                   track_objective: bool = False) -> Optional[float]:
        """
        Rebuild the accumulator in place.

        Args:
            psi_z: Accumulator matrix (prod(R), K), zeroed here
            psi_views: K natural-shape views into psi_z
            track_objective: Also return the objective at the current filters

        Returns:
            Objective value, or None when not tracked
        """
        psi_z.fill(0)
        K = len(self.filters)
        if self.parallel:
            objs = Parallel(n_jobs=self.n_jobs, prefer="threads")(
                delayed(self._accumulate_filter)(k, psi_views[k], track_objective) for k in range(K)
            )
        else:
            objs = [self._accumulate_filter(k, psi_views[k], track_objective) for k in range(K)]
        return float(sum(objs)) if track_objective else None
