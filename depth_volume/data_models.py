"""
Data Models for Depth Volume Pipeline

Defines all data structures used throughout the system.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Optional, Tuple, FrozenSet
import numpy as np


@dataclass(frozen=True)
class DepthSample:
    """Single depth measurement in sensor pixel space."""
    x: float  # pixel column
    y: float  # pixel row
    depth: float  # meters

    def is_valid(self) -> bool:
        return math.isfinite(self.depth) and self.depth > 0


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole intrinsics and the resolution they were calibrated at."""
    fx: float
    fy: float
    cx: float
    cy: float
    ref_width: float
    ref_height: float

    def scaled(self, scale_x: float, scale_y: float) -> "CameraIntrinsics":
        """Return intrinsics linearly scaled along each image axis."""
        return CameraIntrinsics(
            fx=self.fx * scale_x,
            fy=self.fy * scale_y,
            cx=self.cx * scale_x,
            cy=self.cy * scale_y,
            ref_width=self.ref_width * scale_x,
            ref_height=self.ref_height * scale_y,
        )

    def rescaled_to(self, width: float, height: float) -> "CameraIntrinsics":
        """Return intrinsics for an image of the given resolution."""
        if self.ref_width <= 0 or self.ref_height <= 0:
            raise ValueError("Reference dimensions must be positive to rescale intrinsics")
        return self.scaled(width / self.ref_width, height / self.ref_height)

    def to_comment_lines(self) -> Tuple[str, str]:
        """Render the two CSV header comment lines describing these intrinsics."""
        return (
            f"# Camera Intrinsics: fx={self.fx}, fy={self.fy}, cx={self.cx}, cy={self.cy}",
            f"# Reference Dimensions: width={self.ref_width}, height={self.ref_height}",
        )


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class DepthSampleStore:
    """
    Immutable collection of depth samples.

    Cropping never mutates a store; it produces a new one that carries the
    same intrinsics and metadata lines so calibration survives chained crops.
    """
    samples: np.ndarray  # Nx3 array of (x, y, depth)
    intrinsics: Optional[CameraIntrinsics] = None
    metadata_lines: Tuple[str, ...] = ()

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float64).reshape(-1, 3)
        object.__setattr__(self, 'samples', _readonly(samples))
        object.__setattr__(self, 'metadata_lines', tuple(self.metadata_lines))

    @classmethod
    def from_samples(cls,
                     samples: Iterable[DepthSample],
                     intrinsics: Optional[CameraIntrinsics] = None,
                     metadata_lines: Iterable[str] = ()) -> "DepthSampleStore":
        """Build a store, discarding samples with non-positive or non-finite depth."""
        rows = [(s.x, s.y, s.depth) for s in samples if s.is_valid()]
        return cls(np.array(rows, dtype=np.float64).reshape(-1, 3), intrinsics, tuple(metadata_lines))

    @classmethod
    def empty(cls, intrinsics: Optional[CameraIntrinsics] = None) -> "DepthSampleStore":
        return cls(np.zeros((0, 3)), intrinsics)

    def __len__(self) -> int:
        return self.samples.shape[0]

    def __iter__(self):
        for x, y, depth in self.samples:
            yield DepthSample(float(x), float(y), float(depth))

    @property
    def xs(self) -> np.ndarray:
        return self.samples[:, 0]

    @property
    def ys(self) -> np.ndarray:
        return self.samples[:, 1]

    @property
    def depths(self) -> np.ndarray:
        return self.samples[:, 2]

    @property
    def original_width(self) -> int:
        """Sensor image width implied by the samples (``ceil(max x) + 1``)."""
        if len(self) == 0:
            return 0
        return int(math.ceil(float(self.xs.max()))) + 1

    @property
    def original_height(self) -> int:
        """Sensor image height implied by the samples (``ceil(max y) + 1``)."""
        if len(self) == 0:
            return 0
        return int(math.ceil(float(self.ys.max()))) + 1

    def subset(self, mask: np.ndarray) -> "DepthSampleStore":
        """Return a new store holding the samples selected by a boolean mask."""
        return DepthSampleStore(self.samples[np.asarray(mask, dtype=bool)],
                                self.intrinsics, self.metadata_lines)

    def with_metadata(self, line: str) -> "DepthSampleStore":
        """Return a copy with one extra metadata comment line."""
        if not line.startswith('#'):
            line = f"# {line}"
        return DepthSampleStore(self.samples, self.intrinsics, self.metadata_lines + (line,))

    def depth_statistics(self) -> dict:
        """Min, max, mean and std of sample depths (zeros when empty)."""
        if len(self) == 0:
            return {'min': 0.0, 'max': 0.0, 'mean': 0.0, 'std': 0.0}
        depths = self.depths
        return {
            'min': float(depths.min()),
            'max': float(depths.max()),
            'mean': float(depths.mean()),
            'std': float(depths.std()),
        }


class VoxelKey(NamedTuple):
    """Integer grid cell index."""
    ix: int
    iy: int
    iz: int


@dataclass(frozen=True)
class VolumeEstimate:
    """Volume derived from a voxel set."""
    total_volume: float  # cubic meters
    voxel_count: int
    voxel_size: float  # meters

    @property
    def total_volume_cm3(self) -> float:
        return self.total_volume * 1_000_000.0

    @classmethod
    def empty(cls) -> "VolumeEstimate":
        return cls(total_volume=0.0, voxel_count=0, voxel_size=0.0)


@dataclass(eq=False)
class VoxelGrid:
    """Regular voxel grid anchored at the point cloud's bounding-box minimum."""
    origin: np.ndarray  # (3,) grid origin in meters
    voxel_size: float
    dims: Tuple[int, int, int]  # (gx, gy, gz)
    indices: np.ndarray  # Mx3 sorted unique integer voxel indices
    surface_count: int = 0

    @classmethod
    def empty(cls) -> "VoxelGrid":
        return cls(origin=np.zeros(3), voxel_size=0.0, dims=(0, 0, 0),
                   indices=np.zeros((0, 3), dtype=np.int64))

    def __len__(self) -> int:
        return self.indices.shape[0]

    def __contains__(self, key) -> bool:
        return VoxelKey(*key) in self.occupied

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def cell_count(self) -> int:
        gx, gy, gz = self.dims
        return gx * gy * gz

    @property
    def occupied(self) -> FrozenSet[VoxelKey]:
        cached = self.__dict__.get('_occupied')
        if cached is None:
            cached = frozenset(VoxelKey(int(x), int(y), int(z)) for x, y, z in self.indices)
            self.__dict__['_occupied'] = cached
        return cached

    def voxel_centers(self) -> np.ndarray:
        """Metric centers of occupied voxels (Mx3)."""
        if self.is_empty:
            return np.zeros((0, 3))
        return self.origin + (self.indices.astype(np.float64) + 0.5) * self.voxel_size

    def volume_estimate(self) -> VolumeEstimate:
        if self.is_empty:
            return VolumeEstimate(total_volume=0.0, voxel_count=0, voxel_size=self.voxel_size)
        count = len(self)
        return VolumeEstimate(total_volume=count * float(self.voxel_size) ** 3,
                              voxel_count=count,
                              voxel_size=float(self.voxel_size))


@dataclass(frozen=True)
class DisplayRect:
    """Axis-aligned rectangle in display coordinates (x, y, width, height)."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CropResult:
    """Outcome of cropping a depth sample store."""
    store: DepthSampleStore
    accepted_count: int
    total_count: int
    method: str  # "polygon" or "mask"

    @property
    def is_empty(self) -> bool:
        return self.accepted_count == 0

    @property
    def acceptance_ratio(self) -> float:
        return self.accepted_count / self.total_count if self.total_count > 0 else 0.0


@dataclass
class VolumeResult:
    """Numeric summary reported alongside the exported mesh."""
    volume_cubic_meters: float
    volume_liters: float
    volume_cubic_cm: float
    voxel_count: int
    voxel_size: float
    mesh_vertices: int
    mesh_faces: int
    calculation_method: str = "per_layer_convex_fill"

    def to_dict(self) -> dict:
        return {
            'volume_cubic_meters': self.volume_cubic_meters,
            'volume_liters': self.volume_liters,
            'volume_cubic_cm': self.volume_cubic_cm,
            'voxel_count': self.voxel_count,
            'voxel_size': self.voxel_size,
            'mesh_vertices': self.mesh_vertices,
            'mesh_faces': self.mesh_faces,
            'calculation_method': self.calculation_method,
        }


@dataclass
class SegmentationResult:
    """Outline found by depth-gradient segmentation, in display coordinates."""
    outline: np.ndarray  # Kx2 polygon vertices
    edge_mask: np.ndarray  # uint8 edge image in display space
    contour_area: float = 0.0

    @property
    def found(self) -> bool:
        return self.outline.shape[0] >= 3


@dataclass
class PipelineResult:
    """Everything produced by one visualization request."""
    cropped_store: DepthSampleStore
    point_cloud: np.ndarray
    voxel_grid: VoxelGrid
    volume: VolumeEstimate
    refinement_cloud: Optional[np.ndarray] = None
    refinement_grid: Optional[VoxelGrid] = None
    refinement_volume: Optional[VolumeEstimate] = None
    mesh: Optional[object] = None
    generation: int = 0
    error: Optional[Exception] = None
    stats: dict = field(default_factory=dict)
