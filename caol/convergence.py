"""
Relative-change convergence test on consecutive filter matrices.
"""

from typing import Optional

import numpy as np

from .core.norms import relative_change


class ConvergenceMonitor:
    """
    Tracks ||H - H_prev||_F / ||H||_F across iterations.

    The baseline starts at H0 and is replaced by every new H after the test,
    whatever its outcome.

    Args:
        H0: Initial filter matrix (copied)
        tol: Halt when the relative change is <= tol
    """

    def __init__(self, H0, tol: float):
        self.H_prev = np.array(H0, copy=True)
        self.tol = float(tol)
        self.last_change: Optional[float] = None
        self.n_updates = 0

    def update(self, H) -> bool:
        """Test H against the stored baseline, store H and return whether to halt."""
        self.last_change = relative_change(H, self.H_prev)
        np.copyto(self.H_prev, H)
        self.n_updates += 1
        return self.last_change <= self.tol

    @property
    def converged(self) -> bool:
        return self.last_change is not None and self.last_change <= self.tol
