"""
Difference norms and sums of squares.

One implementation serves bare scalars and arrays alike: for scalars the
Frobenius norm of a difference reduces to the absolute difference.
"""

import numpy as np


def sos(a) -> float:
    """Sum of squared magnitudes."""
    a = np.asarray(a)
    return float(np.sum(a.real ** 2 + a.imag ** 2)) if np.iscomplexobj(a) else float(np.sum(a * a))


def sosdiff(a, b) -> float:
    """Sum of squared magnitudes of a - b."""
    return sos(np.subtract(a, b))


def normdiff(a, b) -> float:
    """Frobenius norm of a - b (absolute difference for scalars)."""
    return float(np.sqrt(sosdiff(a, b)))


def relative_change(H, H_prev) -> float:
    """||H - H_prev||_F / ||H||_F"""
    return normdiff(H, H_prev) / float(np.sqrt(sos(H)))
