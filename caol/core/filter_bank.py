"""
Filter bank with aliased flattened/natural-shape representations.

The bank stores K filters of shape R as the columns of a (prod(R), K) matrix H.
H is kept in column-major order so that every column is contiguous and can be
reshaped into its natural shape without copying: writing through a natural
view changes H and vice versa.

The bank must be scaled-orthonormal, H^H H = I / prod(R), which is checked once
for the initial filters H0 at construction.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import ConfigurationError, ShapeError
from .padding import filter_shape


def working_dtype(dtype) -> np.dtype:
    """Floating point dtype used for filters derived from dtype."""
    dtype = np.dtype(dtype)
    return dtype if dtype.kind in "fc" else np.dtype(np.float64)


def default_rtol(dtype) -> float:
    """sqrt(machine epsilon) of the real part of dtype."""
    return float(np.sqrt(np.finfo(working_dtype(dtype)).eps))


def orthonormality_error(H) -> float:
    """Relative Frobenius deviation of H^H H from I / H.shape[0]."""
    H = np.asarray(H)
    n, K = H.shape
    target = np.eye(K) / n
    gram = H.conj().T @ H
    return float(np.linalg.norm(gram - target) / np.linalg.norm(target))


def is_scaled_orthonormal(H, rtol: Optional[float] = None) -> bool:
    H = np.asarray(H)
    if rtol is None:
        rtol = default_rtol(H.dtype)
    return orthonormality_error(H) <= rtol


def natural_views(H: np.ndarray, R) -> List[np.ndarray]:
    """K natural-shape views over the columns of H."""
    views = [H[:, k].reshape(R) for k in range(H.shape[1])]
    for v in views:
        if not np.shares_memory(v, H):
            raise ShapeError("Filter matrix columns cannot be viewed in natural shape without copying")
    return views


def pack_filters(filters: Sequence) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """Stack K natural-shape filters of a common shape R as columns of a (prod(R), K) matrix."""
    filters = [np.asarray(h) for h in filters]
    if not filters:
        raise ShapeError("At least one filter is required")
    R = filters[0].shape
    for k, h in enumerate(filters):
        if h.shape != R:
            raise ShapeError(f"Filter {k} has shape {h.shape}, expected {R}")
    return np.column_stack([h.reshape(-1) for h in filters]), R


class FilterBank:
    """
    Scaled-orthonormal bank of K filters of shape R.

    Attributes:
        H0: Read-only copy of the initial flattened filters (prod(R), K)
        H: Live flattened filters, column-major, overwritten in place
        views: K natural-shape views into H
        shape: Filter shape R
    """

    def __init__(self, H0, R, rtol: Optional[float] = None, dtype=None):
        R = filter_shape(R)
        H0 = np.asarray(H0)
        if H0.ndim == 1:
            H0 = H0[:, np.newaxis]
        if dtype is None:
            dtype = working_dtype(H0.dtype)
        dtype = np.dtype(dtype)
        if dtype.kind not in "fc":
            raise ShapeError(f"Filters must be floating point or complex, got dtype {dtype}")

        n = int(np.prod(R))
        if H0.ndim != 2 or H0.shape[0] != n:
            raise ShapeError(f"Initial filter matrix has shape {H0.shape}, expected ({n}, K) for filter shape {R}")
        K = H0.shape[1]
        if K < 1 or K > n:
            raise ShapeError(f"Number of filters must be between 1 and {n}, got {K}")

        self.shape = R
        self.size = n
        self.n_filters = K
        # tolerance follows the precision the filters were given in
        self.rtol = default_rtol(H0.dtype) if rtol is None else float(rtol)

        self.H0 = np.array(H0, dtype=dtype, order="F")
        error = orthonormality_error(self.H0)
        if not error <= self.rtol:
            raise ConfigurationError(
                f"Initial filters are not scaled-orthonormal: "
                f"||H0^H H0 - I/{n}|| / ||I/{n}|| = {error:.3e} > {self.rtol:.3e}"
            )
        self.H0.flags.writeable = False

        self.H = np.array(self.H0, order="F")
        self.views = natural_views(self.H, R)

    @classmethod
    def from_filters(cls, filters: Sequence, rtol: Optional[float] = None, dtype=None) -> "FilterBank":
        """Pack K natural-shape filters of a common shape into a bank."""
        H0, R = pack_filters(filters)
        return cls(H0, R, rtol=rtol, dtype=dtype)

    @property
    def dtype(self):
        return self.H.dtype

    def update(self, source) -> None:
        """Overwrite H in place from a (prod(R), K) matrix; views stay valid."""
        source = np.asarray(source)
        if source.shape != self.H.shape:
            raise ShapeError(f"Update has shape {source.shape}, expected {self.H.shape}")
        np.copyto(self.H, source)

    def reset(self) -> None:
        np.copyto(self.H, self.H0)

    def filters(self) -> List[np.ndarray]:
        return self.views

    def copy_filters(self) -> List[np.ndarray]:
        return [v.copy() for v in self.views]

    def orthonormality_error(self, H=None) -> float:
        return orthonormality_error(self.H if H is None else H)

    def __repr__(self):
        return f"FilterBank(shape={self.shape}, n_filters={self.n_filters}, dtype={self.dtype})"
