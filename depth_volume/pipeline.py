"""
Volume Estimation Pipeline

Chains cropping, back-projection, voxelization and meshing for one request,
and runs requests on a single background worker that only delivers the
newest result.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from .capture import CaptureSource
from .cropping.display_transform import DisplayTransform
from .cropping.mask_cropper import MaskCropper, MaskImage
from .cropping.polygon_cropper import PolygonCropper
from .data_models import DepthSampleStore, DisplayRect, PipelineResult, VolumeEstimate, VoxelGrid
from .exceptions import DepthVolumeError
from .reconstruction.back_projector import BackProjector, center_point_clouds
from .utils.config_manager import ConfigManager
from .volume.mesh_exporter import MeshExporter
from .volume.voxelizer import Voxelizer


@dataclass
class PipelineRequest:
    """
    One visualization request.

    At most one of ``outline`` / ``mask`` selects the primary region; with
    neither, every sample is used. ``refinement_mask`` optionally restricts
    the primary solid to the columns it covers.
    """
    store: DepthSampleStore
    outline: Optional[Sequence[Sequence[float]]] = None
    mask: Optional[MaskImage] = None
    refinement_mask: Optional[MaskImage] = None
    display_rect: Optional[DisplayRect] = None
    sample_resolution: Optional[Tuple[float, float]] = None
    mode: Optional[str] = None
    build_mesh: Optional[bool] = None

    def __post_init__(self):
        if self.outline is not None and self.mask is not None:
            raise ValueError("Provide either an outline or a mask, not both")


class VolumePipeline:
    """Synchronous crop -> back-project -> voxelize -> mesh pipeline."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize pipeline.

        Args:
            config_manager: Configuration manager instance shared by all stages
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        self.polygon_cropper = PolygonCropper(self.config)
        self.mask_cropper = MaskCropper(self.config)
        self.back_projector = BackProjector(self.config)
        self.mesh_exporter = MeshExporter(self.config)

        pipeline_config = self.config.get_pipeline_params()
        self.build_mesh = bool(pipeline_config.get('build_mesh', True))

        self.logger.info("Volume pipeline initialized")

    def crop(self, request: PipelineRequest, transform: DisplayTransform) -> DepthSampleStore:
        """Apply the request's outline or mask to the full store."""
        if request.outline is not None:
            return self.polygon_cropper.crop(request.store, request.outline, transform).store
        if request.mask is not None:
            return self.mask_cropper.crop(request.store, request.mask, request.display_rect, transform).store
        return request.store

    def run(self, request: PipelineRequest) -> PipelineResult:
        """
        Run every stage for one request.

        Args:
            request: Samples plus cropping and quality options

        Returns:
            PipelineResult with the cropped store, clouds, grids and mesh

        Raises:
            MissingCalibrationError: If the store has no intrinsics
        """
        start_time = time.perf_counter()
        transform = DisplayTransform.from_store(request.store)

        cropped = self.crop(request, transform)
        resolution = self.back_projector.resolve_sample_resolution(request.store, request.sample_resolution)
        points = self.back_projector.back_project(cropped, resolution, center=False)

        refinement_cloud = None
        if request.refinement_mask is not None:
            refined = self.mask_cropper.crop(request.store, request.refinement_mask,
                                             request.display_rect, transform).store
            refinement_cloud = self.back_projector.back_project(refined, resolution, center=False)
            points, refinement_cloud = center_point_clouds(points, refinement_cloud)
        elif self.back_projector.center_point_cloud:
            points = center_point_clouds(points)[0]

        voxelizer = Voxelizer.for_mode(request.mode or self.config.get('pipeline.quality_mode', 'accuracy'),
                                       self.config)
        grid = voxelizer.voxelize(points, restrict_to=refinement_cloud)
        volume = grid.volume_estimate()

        refinement_grid = None
        refinement_volume = None
        if refinement_cloud is not None:
            refinement_grid = voxelizer.voxelize(refinement_cloud)
            refinement_volume = refinement_grid.volume_estimate()

        build_mesh = self.build_mesh if request.build_mesh is None else request.build_mesh
        mesh = self.mesh_exporter.build_mesh(grid) if build_mesh else None

        elapsed = time.perf_counter() - start_time
        stats = {
            'input_samples': len(request.store),
            'cropped_samples': len(cropped),
            'points': int(points.shape[0]),
            'voxels': len(grid),
            'surface_voxels': grid.surface_count,
            'voxel_budget': voxelizer.voxel_budget,
            'elapsed_seconds': elapsed,
        }

        self.logger.info(f"Volume estimate: {volume.total_volume_cm3:.2f} cm^3 "
                         f"({volume.voxel_count} voxels of {volume.voxel_size * 1000:.3f} mm) in {elapsed:.3f}s")

        return PipelineResult(
            cropped_store=cropped,
            point_cloud=points,
            voxel_grid=grid,
            volume=volume,
            refinement_cloud=refinement_cloud,
            refinement_grid=refinement_grid,
            refinement_volume=refinement_volume,
            mesh=mesh,
            stats=stats,
        )

    def run_capture(self, source: CaptureSource, **options) -> PipelineResult:
        """Capture a store from a source and run the pipeline on it."""
        return self.run(PipelineRequest(store=source.capture(), **options))


def _failed_result(request: PipelineRequest, error: Exception, generation: int) -> PipelineResult:
    return PipelineResult(
        cropped_store=DepthSampleStore.empty(request.store.intrinsics),
        point_cloud=np.zeros((0, 3)),
        voxel_grid=VoxelGrid.empty(),
        volume=VolumeEstimate.empty(),
        generation=generation,
        error=error,
    )


class VisualizationWorker:
    """
    Runs pipeline requests on one background thread.

    Each submission bumps a generation counter. A finished result is handed
    to its callback only if no newer request was submitted meanwhile.
    """

    def __init__(self, pipeline: Optional[VolumePipeline] = None,
                 config_manager: Optional[ConfigManager] = None):
        self.pipeline = pipeline or VolumePipeline(config_manager)
        self.logger = logging.getLogger(__name__)

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="depth-volume")
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def latest_generation(self) -> int:
        with self._lock:
            return self._generation

    def submit(self, request: PipelineRequest,
               on_result: Callable[[PipelineResult], None]) -> "Future[PipelineResult]":
        """
        Queue a request.

        Args:
            request: Pipeline request
            on_result: Called on the worker thread with the result, if the
                result is still the newest when it completes

        Returns:
            Future resolving to the result (stale or not)
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
        return self._executor.submit(self._process, request, generation, on_result)

    def _process(self, request: PipelineRequest, generation: int,
                 on_result: Callable[[PipelineResult], None]) -> PipelineResult:
        try:
            result = self.pipeline.run(request)
            result.generation = generation
        except (DepthVolumeError, ValueError) as e:
            self.logger.error(f"Request {generation} failed: {e}")
            result = _failed_result(request, e, generation)

        with self._lock:
            stale = generation != self._generation
        if stale:
            self.logger.warning(f"Discarding stale result for request {generation}")
            return result

        on_result(result)
        return result

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "VisualizationWorker":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
