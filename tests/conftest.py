"""
Test configuration and fixtures for CAOL tests.

Provides common test fixtures, utilities, and configuration for all test modules.
"""

import numpy as np
import pytest
from scipy import linalg


@pytest.fixture
def random_seed():
    """Fixed random seed for reproducible tests."""
    return 42


@pytest.fixture
def rng(random_seed):
    return np.random.default_rng(random_seed)


@pytest.fixture
def filter_shape_2d():
    """Standard 3x3 filter support."""
    return (3, 3)


@pytest.fixture
def tolerance():
    """Standard numerical tolerance for the orthonormality invariant."""
    return 1e-6


@pytest.fixture
def impulse_image():
    """8x8 image of zeros with a single impulse of 10 at the center."""
    x = np.zeros((8, 8))
    x[4, 4] = 10.0
    return x


@pytest.fixture
def delta_bank():
    """Single 3x3 centered delta filter scaled to squared norm 1/9."""
    h = np.zeros((3, 3))
    h[1, 1] = 1.0 / 3.0
    return [h]


@pytest.fixture
def random_images(rng):
    """Three random images of different sizes."""
    return [rng.standard_normal(shape) for shape in [(12, 10), (10, 10), (9, 14)]]


@pytest.fixture
def random_bank(filter_shape_2d, random_seed):
    """Four random scaled-orthonormal 3x3 filters as a (9, 4) matrix."""
    return create_orthonormal_bank(filter_shape_2d, 4, seed=random_seed)


def create_orthonormal_bank(R, K, seed=42, dtype=float):
    """Random (prod(R), K) matrix H with H^H H = I / prod(R)."""
    rng = np.random.default_rng(seed)
    n = int(np.prod(R))
    A = rng.standard_normal((n, K))
    if np.issubdtype(np.dtype(dtype), np.complexfloating):
        A = A + 1j * rng.standard_normal((n, K))
    Q, _ = linalg.qr(A, mode="economic")
    return (Q / np.sqrt(n)).astype(dtype)


def assert_scaled_orthonormal(H, tolerance=1e-6):
    """Assert H^H H = I / H.shape[0] up to a relative Frobenius deviation."""
    H = np.asarray(H)
    n, K = H.shape
    target = np.eye(K) / n
    deviation = np.linalg.norm(H.conj().T @ H - target) / np.linalg.norm(target)
    assert deviation <= tolerance, (
        f"Filters are not scaled-orthonormal: relative deviation {deviation:.3e} > {tolerance:.1e}"
    )


def assert_non_increasing(values, rtol=1e-9):
    """Assert a sequence never increases beyond a relative tolerance."""
    values = np.asarray(values, dtype=float)
    for t in range(1, len(values)):
        slack = rtol * max(abs(values[t - 1]), 1.0)
        assert values[t] <= values[t - 1] + slack, (
            f"Objective increased at iteration {t + 1}: {values[t - 1]:.12e} -> {values[t]:.12e}"
        )
