"""Unit tests for PCAReducer component selection and back-projection."""

import numpy as np
import pytest

from pathcluster.core.models import ConfigurationError, InvalidDataError
from pathcluster.core.pca import PCAReducer


def test_line_data_selects_one_component():
    """Points on a line carry all their variance in one component."""
    t = np.linspace(0.0, 1.0, 10)
    data = np.column_stack([t, 2.0 * t, -t])

    result = PCAReducer().fit(data)

    assert result.n_components == 1
    assert result.reduced.shape == (10, 1)
    assert result.components.shape == (1, 3)
    np.testing.assert_allclose(result.mean, data.mean(axis=0))


def test_reconstruction_of_planar_data():
    """Data in a plane embedded in 4-D is rebuilt exactly from two components."""
    rng = np.random.default_rng(0)
    coeffs = rng.normal(size=(20, 2)) * np.array([5.0, 2.0])
    basis = np.array([[1.0, 0.0, 1.0, 0.0], [0.0, 1.0, 0.0, -1.0]])
    data = coeffs @ basis + np.array([3.0, -1.0, 0.5, 2.0])

    result = PCAReducer().fit(data)

    assert result.n_components == 2
    np.testing.assert_allclose(result.back_project(result.reduced), data, atol=1e-9)
    np.testing.assert_allclose(result.project(data), result.reduced, atol=1e-9)


def test_selected_components_exceed_threshold():
    rng = np.random.default_rng(3)
    data = rng.normal(size=(30, 6)) * np.array([10.0, 5.0, 1.0, 0.5, 0.1, 0.01])

    result = PCAReducer().fit(data)

    assert result.explained_ratio > 0.999
    assert 1 <= result.n_components <= 6


def test_identical_rows_raise_configuration_error():
    """No variance means zero components, which must abort the run."""
    data = np.ones((5, 4))
    with pytest.raises(ConfigurationError):
        PCAReducer().fit(data)


def test_float32_input_keeps_precision():
    rng = np.random.default_rng(1)
    data = rng.normal(size=(12, 5)).astype(np.float32)

    result = PCAReducer().fit(data)

    assert result.mean.dtype == np.float32
    assert result.reduced.dtype == np.float32


def test_integer_input_is_promoted():
    data = np.array([[0, 0], [1, 2], [2, 4], [3, 7]])
    result = PCAReducer().fit(data)
    assert np.issubdtype(result.reduced.dtype, np.floating)


@pytest.mark.parametrize("bad", [np.zeros((0, 3)), np.zeros(4), np.zeros((3, 0))])
def test_invalid_shapes_raise(bad):
    with pytest.raises(InvalidDataError):
        PCAReducer().fit(bad)
