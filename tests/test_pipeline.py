"""
Integration tests for the volume pipeline and background worker
"""

import threading

import pytest
import numpy as np

from depth_volume.capture import DepthMapCaptureSource
from depth_volume.cropping.mask_cropper import MaskImage
from depth_volume.data_models import CameraIntrinsics, DepthSampleStore, PipelineResult, VolumeEstimate, VoxelGrid
from depth_volume.exceptions import MissingCalibrationError
from depth_volume.pipeline import PipelineRequest, VisualizationWorker, VolumePipeline


def left_half_mask(width=10, height=10):
    """Mask painting the left half of the display image."""
    painted = np.zeros((height, width), dtype=bool)
    painted[:, :width // 2] = True
    return MaskImage.from_painted(painted)


@pytest.fixture
def small_budget_config(config_manager):
    """Fixture providing a configuration with a 1000-voxel accuracy budget."""
    config_manager.set('voxelizer.voxel_budget', 1000)
    return config_manager


@pytest.fixture
def pipeline(small_budget_config):
    """Fixture providing a pipeline with a small budget."""
    return VolumePipeline(small_budget_config)


@pytest.mark.integration
class TestVolumePipeline:
    """End-to-end tests from samples to voxel mesh."""

    def test_grid_end_to_end(self, pipeline, grid_store):
        """Test a flat 10x10 grid becomes one filled voxel layer."""
        result = pipeline.run(PipelineRequest(store=grid_store, sample_resolution=(640, 480)))

        assert result.point_cloud.shape == (100, 3)
        assert not result.voxel_grid.is_empty
        assert result.voxel_grid.cell_count <= 1000
        assert result.voxel_grid.dims[2] == 1

        extent = 9 * 0.5 / 1000
        expected = extent * extent * result.volume.voxel_size
        assert 0.5 * expected <= result.volume.total_volume <= 2.0 * expected
        assert result.error is None

    def test_full_frame_at_reference_resolution(self, pipeline):
        """Test that a full frame matching its reference dims keeps its metric extent."""
        intrinsics = CameraIntrinsics(fx=100.0, fy=100.0, cx=32.0, cy=24.0, ref_width=64.0, ref_height=48.0)
        xs, ys = np.meshgrid(np.arange(64), np.arange(48))
        samples = np.column_stack([xs.ravel(), ys.ravel(), np.full(xs.size, 0.5)])
        store = DepthSampleStore(samples, intrinsics, intrinsics.to_comment_lines())

        result = pipeline.run(PipelineRequest(store=store))

        extent = result.point_cloud.max(axis=0) - result.point_cloud.min(axis=0)
        np.testing.assert_allclose(extent[:2], [63 * 0.5 / 100, 47 * 0.5 / 100])

    def test_cropped_frame_uses_full_grid(self, pipeline):
        """Test that cropping does not change the sample grid used for rescaling."""
        intrinsics = CameraIntrinsics(fx=100.0, fy=100.0, cx=32.0, cy=24.0, ref_width=64.0, ref_height=48.0)
        xs, ys = np.meshgrid(np.arange(64), np.arange(48))
        samples = np.column_stack([xs.ravel(), ys.ravel(), np.full(xs.size, 0.5)])
        store = DepthSampleStore(samples, intrinsics, intrinsics.to_comment_lines())

        # display y is sensor x, so this band keeps sensor columns 0-10
        outline = [(-1, -1), (49, -1), (49, 10.5), (-1, 10.5)]
        result = pipeline.run(PipelineRequest(store=store, outline=outline))

        assert len(result.cropped_store) == 11 * 48
        extent = result.point_cloud.max(axis=0) - result.point_cloud.min(axis=0)
        np.testing.assert_allclose(extent[:2], [10 * 0.5 / 100, 47 * 0.5 / 100])

    def test_mesh_and_stats(self, pipeline, grid_store):
        """Test mesh counts and reported statistics."""
        result = pipeline.run(PipelineRequest(store=grid_store, sample_resolution=(640, 480)))

        assert len(result.mesh.vertices) == 8 * len(result.voxel_grid)
        assert len(result.mesh.faces) == 12 * len(result.voxel_grid)
        assert result.stats['input_samples'] == 100
        assert result.stats['cropped_samples'] == 100
        assert result.stats['voxel_budget'] == 1000
        assert result.stats['elapsed_seconds'] >= 0

    def test_mesh_disabled(self, pipeline, grid_store):
        """Test skipping mesh generation per request."""
        result = pipeline.run(PipelineRequest(store=grid_store, build_mesh=False))
        assert result.mesh is None

    def test_latency_mode(self, pipeline, grid_store):
        """Test the latency-first budget preset."""
        result = pipeline.run(PipelineRequest(store=grid_store, mode='latency'))
        assert result.stats['voxel_budget'] == 50_000
        assert result.voxel_grid.cell_count <= 50_000

    def test_missing_calibration(self, pipeline):
        """Test that uncalibrated samples surface MissingCalibrationError."""
        store = DepthSampleStore(np.array([[0.0, 0.0, 0.5], [1.0, 1.0, 0.5]]))
        with pytest.raises(MissingCalibrationError):
            pipeline.run(PipelineRequest(store=store))

    def test_outline_request(self, pipeline, grid_store):
        """Test that an outline crops before back-projection."""
        request = PipelineRequest(store=grid_store, outline=[(0, 0), (5, 0), (5, 10), (0, 10)])
        result = pipeline.run(request)

        assert len(result.cropped_store) == 50
        assert result.point_cloud.shape == (50, 3)

    def test_mask_request(self, pipeline, grid_store):
        """Test that a mask crops before back-projection."""
        result = pipeline.run(PipelineRequest(store=grid_store, mask=left_half_mask()))

        assert len(result.cropped_store) == 50
        assert result.cropped_store.metadata_lines[-1] == "# Cropped with segmentation mask (10x10)"

    def test_outline_and_mask_rejected(self, grid_store):
        """Test that a request cannot carry both an outline and a mask."""
        with pytest.raises(ValueError, match="either an outline or a mask"):
            PipelineRequest(store=grid_store, outline=[(0, 0), (5, 0), (5, 5)], mask=left_half_mask())

    def test_empty_crop(self, pipeline, grid_store):
        """Test that an outline selecting nothing yields zero volume without raising."""
        request = PipelineRequest(store=grid_store, outline=[(100, 100), (120, 100), (120, 120)])
        result = pipeline.run(request)

        assert result.voxel_grid.is_empty
        assert result.volume.total_volume == 0.0
        assert len(result.mesh.vertices) == 0

    def test_refinement_mask(self, pipeline, grid_store):
        """Test that a refinement mask trims the primary solid to its columns."""
        unrestricted = pipeline.run(PipelineRequest(store=grid_store, sample_resolution=(640, 480)))
        refined = pipeline.run(PipelineRequest(store=grid_store, refinement_mask=left_half_mask(),
                                               sample_resolution=(640, 480)))

        assert refined.refinement_cloud.shape == (50, 3)
        assert refined.refinement_grid is not None
        assert refined.refinement_volume.total_volume > 0
        assert 0 < len(refined.voxel_grid) < len(unrestricted.voxel_grid)

    def test_run_capture(self, pipeline, sample_intrinsics):
        """Test running directly from a dense depth map."""
        source = DepthMapCaptureSource(np.full((10, 10), 0.5), sample_intrinsics)
        result = pipeline.run_capture(source, sample_resolution=(640, 480))

        assert len(result.cropped_store) == 100
        assert result.volume.total_volume > 0


class BlockingPipeline:
    """Pipeline stand-in whose 'accuracy' requests wait for a release event."""

    def __init__(self):
        self.release = threading.Event()

    def run(self, request):
        if request.mode == 'accuracy':
            self.release.wait(timeout=5)
        return PipelineResult(cropped_store=request.store, point_cloud=np.zeros((0, 3)),
                              voxel_grid=VoxelGrid.empty(), volume=VolumeEstimate.empty())


class TestVisualizationWorker:
    """Test suite for the newest-result-wins background worker."""

    def test_stale_result_not_delivered(self, grid_store):
        """Test that a result superseded by a newer request is dropped."""
        stub = BlockingPipeline()
        delivered = []

        with VisualizationWorker(pipeline=stub) as worker:
            first = worker.submit(PipelineRequest(store=grid_store, mode='accuracy'), delivered.append)
            second = worker.submit(PipelineRequest(store=grid_store, mode='latency'), delivered.append)
            stub.release.set()

            first_result = first.result(timeout=10)
            second_result = second.result(timeout=10)

        assert first_result.generation == 1
        assert second_result.generation == 2
        assert len(delivered) == 1 and delivered[0] is second_result
        assert worker.latest_generation == 2

    def test_result_delivered(self, small_budget_config, grid_store):
        """Test that the newest result reaches the callback."""
        delivered = []
        with VisualizationWorker(config_manager=small_budget_config) as worker:
            future = worker.submit(PipelineRequest(store=grid_store), delivered.append)
            result = future.result(timeout=30)

        assert len(delivered) == 1 and delivered[0] is result
        assert result.volume.total_volume > 0

    def test_error_reported_in_result(self, small_budget_config):
        """Test that stage failures are reported rather than raised."""
        store = DepthSampleStore(np.array([[0.0, 0.0, 0.5]]))
        delivered = []
        with VisualizationWorker(config_manager=small_budget_config) as worker:
            result = worker.submit(PipelineRequest(store=store), delivered.append).result(timeout=10)

        assert isinstance(result.error, MissingCalibrationError)
        assert result.voxel_grid.is_empty
        assert len(delivered) == 1 and delivered[0] is result
