"""
Depth Volume Estimation

Estimates the physical volume of an object (typically a food item) from
depth-camera samples.

This package implements:
- Depth CSV artifacts with embedded camera intrinsics
- Outline and segmentation-mask cropping in display space
- Average-depth pinhole back-projection into metric point clouds
- Budgeted voxelization with per-layer convex-hull interior fill
- Two-pass primary/refinement column restriction
- Voxel cube meshes, point-cloud export and volume summaries
- Depth-gradient outline proposals and colorized depth rendering
"""

__version__ = "1.0.0"
__author__ = "Depth Volume Team"

from .exceptions import DepthVolumeError, MissingCalibrationError, DepthArtifactIOError
from .data_models import (
    DepthSample, CameraIntrinsics, DepthSampleStore, VoxelKey, VoxelGrid,
    VolumeEstimate, VolumeResult, DisplayRect, CropResult, SegmentationResult, PipelineResult
)
from .storage import DepthCSVReader, DepthCSVWriter
from .cropping import DisplayTransform, PolygonCropper, MaskCropper, MaskImage, composite_masks, fold_masks
from .reconstruction import BackProjector, center_point_clouds
from .volume import Voxelizer, MeshExporter
from .segmentation import DepthGradientSegmenter
from .visualization import DepthVisualizer
from .capture import CaptureSource, MaskProvider, CSVCaptureSource, DepthMapCaptureSource, accumulate_masks
from .pipeline import PipelineRequest, VolumePipeline, VisualizationWorker

__all__ = [
    # Errors
    'DepthVolumeError', 'MissingCalibrationError', 'DepthArtifactIOError',
    # Data Models
    'DepthSample', 'CameraIntrinsics', 'DepthSampleStore', 'VoxelKey', 'VoxelGrid',
    'VolumeEstimate', 'VolumeResult', 'DisplayRect', 'CropResult', 'SegmentationResult', 'PipelineResult',
    # Storage
    'DepthCSVReader', 'DepthCSVWriter',
    # Cropping
    'DisplayTransform', 'PolygonCropper', 'MaskCropper', 'MaskImage', 'composite_masks', 'fold_masks',
    # Reconstruction
    'BackProjector', 'center_point_clouds',
    # Volume
    'Voxelizer', 'MeshExporter',
    # Segmentation and visualization
    'DepthGradientSegmenter', 'DepthVisualizer',
    # Capture
    'CaptureSource', 'MaskProvider', 'CSVCaptureSource', 'DepthMapCaptureSource', 'accumulate_masks',
    # Pipeline
    'PipelineRequest', 'VolumePipeline', 'VisualizationWorker',
]
