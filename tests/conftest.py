"""
Pytest configuration and fixtures for depth volume tests.
"""

import pytest
import numpy as np
from depth_volume.data_models import CameraIntrinsics, DepthSampleStore
from depth_volume.utils.config_manager import ConfigManager


@pytest.fixture
def config_manager():
    """Fixture providing a configuration manager instance."""
    return ConfigManager()


@pytest.fixture
def sample_intrinsics():
    """Fixture providing VGA-referenced camera intrinsics."""
    return CameraIntrinsics(fx=1000.0, fy=1000.0, cx=320.0, cy=240.0,
                            ref_width=640.0, ref_height=480.0)


@pytest.fixture
def grid_store(sample_intrinsics):
    """Fixture providing a 10x10 pixel grid of samples at 0.5 m."""
    xs, ys = np.meshgrid(np.arange(10), np.arange(10), indexing='xy')
    samples = np.column_stack([xs.ravel(), ys.ravel(), np.full(100, 0.5)])
    return DepthSampleStore(samples, sample_intrinsics, sample_intrinsics.to_comment_lines())


@pytest.fixture
def raised_square_store(sample_intrinsics):
    """Fixture providing a 50x50 table at 0.6 m with a 20x20 block raised to 0.5 m."""
    rng = np.random.default_rng(0)
    depth = 0.6 + rng.normal(0, 1e-4, (50, 50))
    depth[15:35, 15:35] = 0.5 + rng.normal(0, 1e-4, (20, 20))
    rows, cols = np.indices(depth.shape)
    samples = np.column_stack([cols.ravel(), rows.ravel(), depth.ravel()])
    return DepthSampleStore(samples, sample_intrinsics, sample_intrinsics.to_comment_lines())


@pytest.fixture
def sample_csv_text():
    """Fixture providing a small CSV artifact with intrinsics and junk rows."""
    return "\n".join([
        "x,y,depth_meters",
        "# Camera Intrinsics: fx=1000.0, fy=1000.0, cx=320.0, cy=240.0",
        "# Reference Dimensions: width=640.0, height=480.0",
        "# Original Data: Depth",
        "0,0,0.500000",
        "1,0,0.510000",
        "",
        "2,0,not-a-number",
        "3,0",
        "4,0,-0.2",
        "5,0,nan",
        "0,1,0.520000",
    ])


@pytest.fixture
def solid_box_cloud():
    """Factory fixture: lattice of points filling an axis-aligned box."""
    def make(size_x, size_y, size_z, steps=11, origin=(0.0, 0.0, 0.0)):
        axes = [np.linspace(0.0, size, steps) for size in (size_x, size_y, size_z)]
        grid = np.stack(np.meshgrid(*axes, indexing='ij'), axis=-1).reshape(-1, 3)
        return grid + np.asarray(origin, dtype=np.float64)
    return make
