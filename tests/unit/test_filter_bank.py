"""
Unit tests for the FilterBank: orthonormality validation and aliasing.
"""

import numpy as np
import pytest

from caol import ConfigurationError, FilterBank, ShapeError, is_scaled_orthonormal, pack_filters
from tests.conftest import assert_scaled_orthonormal, create_orthonormal_bank


class TestFilterBankValidation:
    """Fail-fast checks at construction."""

    def test_accepts_scaled_orthonormal_bank(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)

        assert bank.shape == (3, 3)
        assert bank.size == 9
        assert bank.n_filters == 4
        assert_scaled_orthonormal(bank.H, tolerance=1e-12)

    def test_identical_columns_rejected(self):
        h = np.full(9, 1.0 / 9.0)
        H0 = np.column_stack([h, h])
        with pytest.raises(ConfigurationError, match="not scaled-orthonormal"):
            FilterBank(H0, (3, 3))

    def test_unit_norm_filters_rejected(self, random_bank, filter_shape_2d):
        """Orthonormal but not scaled by 1/prod(R)."""
        with pytest.raises(ConfigurationError):
            FilterBank(random_bank * 3.0, filter_shape_2d)

    def test_custom_tolerance(self, random_bank, filter_shape_2d):
        perturbed = random_bank * (1 + 1e-5)
        with pytest.raises(ConfigurationError):
            FilterBank(perturbed, filter_shape_2d)
        FilterBank(perturbed, filter_shape_2d, rtol=1e-3)

    def test_default_tolerance_follows_filter_precision(self, filter_shape_2d):
        H0 = create_orthonormal_bank(filter_shape_2d, 4, dtype=np.float32)
        bank = FilterBank(H0, filter_shape_2d, dtype=np.float64)

        assert bank.dtype == np.float64
        assert bank.rtol == pytest.approx(np.sqrt(np.finfo(np.float32).eps))

    def test_wrong_row_count(self, random_bank):
        with pytest.raises(ShapeError, match="expected"):
            FilterBank(random_bank, (3, 4))

    def test_too_many_filters(self):
        with pytest.raises(ShapeError, match="between 1 and"):
            FilterBank(np.zeros((4, 5)), (2, 2))

    def test_integer_filters_rejected_by_dtype(self, random_bank, filter_shape_2d):
        with pytest.raises(ShapeError, match="floating point"):
            FilterBank(random_bank, filter_shape_2d, dtype=np.int64)

    def test_single_filter_vector(self):
        h = np.zeros(9)
        h[4] = 1.0 / 3.0
        bank = FilterBank(h, (3, 3))
        assert bank.H.shape == (9, 1)

    def test_complex_bank(self, filter_shape_2d):
        H0 = create_orthonormal_bank(filter_shape_2d, 3, dtype=complex)
        bank = FilterBank(H0, filter_shape_2d)
        assert bank.dtype == np.complex128
        assert_scaled_orthonormal(bank.H, tolerance=1e-12)


class TestFilterBankAliasing:
    """Flattened matrix and natural-shape views share storage."""

    def test_views_have_natural_shape(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)
        assert len(bank.views) == 4
        for k, v in enumerate(bank.views):
            assert v.shape == (3, 3)
            assert np.shares_memory(v, bank.H)
            np.testing.assert_array_equal(v.ravel(), random_bank[:, k])

    def test_view_mutation_visible_in_matrix(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)
        bank.views[2][0, 1] = 123.0
        assert bank.H[1, 2] == 123.0

    def test_matrix_mutation_visible_in_view(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)
        bank.H[5, 1] = -7.0
        assert bank.views[1][1, 2] == -7.0

    def test_update_keeps_views_valid(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)
        views = bank.views
        new = create_orthonormal_bank(filter_shape_2d, 4, seed=7)
        bank.update(new)

        for k in range(4):
            np.testing.assert_array_equal(views[k].ravel(), new[:, k])

    def test_update_shape_mismatch(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)
        with pytest.raises(ShapeError):
            bank.update(np.zeros((9, 3)))

    def test_reference_bank_is_immutable_copy(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)
        bank.H[:] = 0.0
        np.testing.assert_array_equal(bank.H0, random_bank)
        with pytest.raises(ValueError):
            bank.H0[0, 0] = 1.0

        bank.reset()
        np.testing.assert_array_equal(bank.H, random_bank)

    def test_copy_filters_are_independent(self, random_bank, filter_shape_2d):
        bank = FilterBank(random_bank, filter_shape_2d)
        copies = bank.copy_filters()
        copies[0][:] = 0.0
        assert np.any(bank.views[0] != 0.0)


class TestPackFilters:

    def test_from_filters_roundtrip(self, random_bank, filter_shape_2d):
        filters = [random_bank[:, k].reshape(filter_shape_2d) for k in range(4)]
        bank = FilterBank.from_filters(filters)

        np.testing.assert_array_equal(bank.H, random_bank)
        for h, v in zip(filters, bank.views):
            np.testing.assert_array_equal(h, v)

    def test_mismatched_filter_shapes(self):
        with pytest.raises(ShapeError, match="Filter 1"):
            pack_filters([np.zeros((3, 3)), np.zeros((3, 5))])

    def test_empty(self):
        with pytest.raises(ShapeError):
            pack_filters([])


def test_is_scaled_orthonormal(random_bank):
    assert is_scaled_orthonormal(random_bank)
    assert not is_scaled_orthonormal(2 * random_bank)
