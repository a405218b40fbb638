"""Pytest configuration and fixtures for pagelife tests."""

import matplotlib
matplotlib.use("Agg")

import pytest

from .common import make_series, make_raw_traffic, get_test_config


@pytest.fixture
def temp_output_dir(tmp_path):
    """Create a temporary output directory for testing."""
    output_dir = tmp_path / "test_output"
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def example_series():
    """Day 0 below threshold, launch on day 1, day 2 missing, traffic on day 3."""
    return make_series([(0, 1), (1, 3), (3, 5)])


@pytest.fixture
def raw_traffic():
    """Three pages: a normal launch, a gappy launch, and one that never clears the threshold."""
    return make_raw_traffic({
        '/blog/launch': [(0, 20), (1, 12), (2, 8), (3, 5), (5, 4)],
        '/blog/slow-start': [(2, 1), (4, 6), (8, 3), (9, 10)],
        '/blog/quiet': [(0, 1), (1, 2), (6, 1)],
    })


@pytest.fixture
def test_config():
    return get_test_config()
