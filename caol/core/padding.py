"""
Circular boundary extension of signals.

Each signal is wrapped periodically so that a valid-region correlation with a
filter of shape R returns an output with exactly the shape of the original
signal. Along dimension d the extension is ``R_d // 2`` samples before and
``R_d - 1 - R_d // 2`` samples after, i.e. ⌊R_d/2⌋ on both sides for odd
extents.
"""

import warnings
from typing import List, Sequence, Tuple

import numpy as np

from ..exceptions import ShapeError


def filter_shape(R) -> Tuple[int, ...]:
    """Validate a filter shape and return it as a tuple of ints."""
    if np.isscalar(R):
        R = (R,)
    try:
        R = tuple(int(n) for n in R)
    except (TypeError, ValueError) as e:
        raise ShapeError(f"Filter shape must be a tuple of integers, got {R!r}") from e
    if not R or any(n < 1 for n in R):
        raise ShapeError(f"Filter shape must contain positive extents, got {R}")
    if any(n % 2 == 0 for n in R):
        warnings.warn(f"Filter shape {R} has even extents; circular padding is asymmetric")
    return R


def pad_widths(R: Sequence[int]) -> List[Tuple[int, int]]:
    return [(n // 2, n - 1 - n // 2) for n in R]


def pad_signal(x, R) -> np.ndarray:
    """
    Circularly pad a single signal for valid correlation with filters of shape R.

    Args:
        x: D-dimensional signal
        R: Filter shape (length D)

    Returns:
        Read-only padded copy of x

    Raises:
        ShapeError: If x has the wrong dimensionality or is smaller than R
    """
    x = np.asarray(x)
    R = tuple(R)
    if x.ndim != len(R):
        raise ShapeError(f"Signal has {x.ndim} dimensions but filters have {len(R)}")
    if any(n < r for n, r in zip(x.shape, R)):
        raise ShapeError(f"Signal of shape {x.shape} is smaller than filter shape {R}")

    xpad = np.pad(x, pad_widths(R), mode="wrap")
    xpad.flags.writeable = False
    return xpad


def pad_signals(signals, R) -> List[np.ndarray]:
    """Pad a collection of signals, all of which must share one element type."""
    signals = [np.asarray(x) for x in signals]
    if not signals:
        raise ShapeError("At least one signal is required")

    dtype = signals[0].dtype
    for l, x in enumerate(signals):
        if x.dtype != dtype:
            raise ShapeError(f"Signal {l} has dtype {x.dtype}, expected {dtype} like signal 0")
    if not (np.issubdtype(dtype, np.number) and not np.issubdtype(dtype, np.timedelta64)):
        raise ShapeError(f"Signals must be numeric, got dtype {dtype}")

    return [pad_signal(x, R) for x in signals]
